"""Reconciles a freshly extracted batch with the stored library.

The policy is additive:

* unknown games are inserted verbatim;
* known games always take the batch's title, cover, playtime and last played;
* description, release date, developer, publisher and genres are only filled
  when the stored record has nothing there, so enrichment done in an earlier
  pass survives a sync that lacks it.

The engine computes the changes; writing them is the store's job.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Iterable, Optional, Protocol

from shelfsync.core.models import NormalizedGame, PersistedGame, Platform
from shelfsync.logging_cfg import get_logger

VOLATILE_FIELDS = ("title", "cover_image_url", "playtime_minutes", "last_played")
DESCRIPTIVE_FIELDS = ("description", "release_date", "developer", "publisher", "genres")


class GameStore(Protocol):
    def get_game(
        self, user_id: str, platform: Platform, product_id: str
    ) -> Optional[PersistedGame]: ...


@dataclass
class MergeResult:
    inserts: list[PersistedGame] = field(default_factory=list)
    updates: list[PersistedGame] = field(default_factory=list)
    unchanged: list[PersistedGame] = field(default_factory=list)
    needs_enrichment: list[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.inserts or self.updates)

    def __str__(self) -> str:
        return (
            f"{len(self.inserts)} new, {len(self.updates)} updated, "
            f"{len(self.unchanged)} unchanged, "
            f"{len(self.needs_enrichment)} need enrichment"
        )


def _is_empty(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, list):
        return not value
    return False


def merge_fields(existing: PersistedGame, game: NormalizedGame) -> PersistedGame:
    """Return ``existing`` with the batch values applied (``updated_at`` untouched)."""
    changes = {name: getattr(game, name) for name in VOLATILE_FIELDS}
    for name in DESCRIPTIVE_FIELDS:
        if _is_empty(getattr(existing, name)) and not _is_empty(getattr(game, name)):
            value = getattr(game, name)
            changes[name] = list(value) if isinstance(value, list) else value
    return replace(existing, **changes)


def _differs(before: PersistedGame, after: PersistedGame) -> bool:
    return any(
        getattr(before, name) != getattr(after, name)
        for name in VOLATILE_FIELDS + DESCRIPTIVE_FIELDS
    )


def new_record(
    user_id: str, game: NormalizedGame, manually_added: bool, now: datetime
) -> PersistedGame:
    return PersistedGame(
        user_id=user_id,
        platform=game.platform,
        product_id=game.product_id,
        title=game.title,
        cover_image_url=game.cover_image_url,
        playtime_minutes=game.playtime_minutes,
        last_played=game.last_played,
        is_manually_added=manually_added,
        added_at=now,
        updated_at=now,
        description=game.description,
        release_date=game.release_date,
        developer=game.developer,
        publisher=game.publisher,
        genres=list(game.genres),
    )


class MergeEngine:
    def __init__(self):
        self.logger = get_logger("core.merge")

    def merge(
        self,
        user_id: str,
        games: Iterable[NormalizedGame],
        store: GameStore,
        manually_added: bool = False,
        now: Optional[datetime] = None,
    ) -> MergeResult:
        """Diff ``games`` against ``store`` for one user. Never writes.

        A game appearing twice in the batch is merged into the first
        occurrence's pending record.
        """
        now = now or datetime.now(timezone.utc)
        result = MergeResult()
        # key -> (stored version or None, pending version)
        pending: dict[tuple, tuple[Optional[PersistedGame], PersistedGame]] = {}

        for game in games:
            key = (user_id, game.platform, game.product_id)
            if key in pending:
                stored, current = pending[key]
                pending[key] = (stored, merge_fields(current, game))
                continue

            existing = store.get_game(user_id, game.platform, game.product_id)
            if existing is None:
                pending[key] = (None, new_record(user_id, game, manually_added, now))
            else:
                pending[key] = (existing, merge_fields(existing, game))

        for stored, current in pending.values():
            if stored is None:
                result.inserts.append(current)
            elif _differs(stored, current):
                current.updated_at = now
                result.updates.append(current)
            else:
                result.unchanged.append(stored)

            if _is_empty(current.description):
                result.needs_enrichment.append(current.id)

        self.logger.info("Merge for user %s: %s", user_id, result)
        return result
