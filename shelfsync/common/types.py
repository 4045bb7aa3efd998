"""
Shared result types for shelfsync.
Kept apart from the domain models because they describe a sync pass, not a game.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from shelfsync.core.models import NormalizedGame, Platform


class SourceStatus(str, Enum):
    OK = "ok"  # database parsed, possibly zero games
    UNAVAILABLE = "unavailable"  # no database found
    FAILED = "failed"  # unreadable or query failure
    DISCONNECTED = "disconnected"


@dataclass
class SourceResult:
    """What one vendor source produced in a sync pass."""
    platform: Platform
    status: SourceStatus
    games: list[NormalizedGame] = field(default_factory=list)
    used_fallback: bool = False
    db_path: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def game_count(self) -> int:
        return len(self.games)

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform.value,
            "status": self.status.value,
            "games": self.game_count,
            "fallback": self.used_fallback,
            "db_path": self.db_path,
            "error": self.error_message,
        }


@dataclass
class SyncReport:
    """Summary of one user's sync pass."""
    user_id: str
    games: list[NormalizedGame] = field(default_factory=list)
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    needs_enrichment: list[str] = field(default_factory=list)
    sources: list[SourceResult] = field(default_factory=list)
    duration_ms: float = 0
    correlation_id: Optional[str] = None

    @property
    def used_fallback(self) -> bool:
        return any(s.used_fallback for s in self.sources)

    @property
    def failed_sources(self) -> list[Platform]:
        return [s.platform for s in self.sources if s.status is SourceStatus.FAILED]

    def to_dict(self) -> dict[str, Any]:
        return {
            "user": self.user_id,
            "games": len(self.games),
            "inserted": self.inserted,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "needs_enrichment": list(self.needs_enrichment),
            "fallback": self.used_fallback,
            "sources": [s.to_dict() for s in self.sources],
            "duration_ms": self.duration_ms,
        }

    def __str__(self) -> str:
        return (
            f"sync {self.user_id}: "
            f"{len(self.games)} games, "
            f"{self.inserted} new, "
            f"{self.updated} updated "
            f"({self.duration_ms:.0f}ms)"
        )
