from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class Platform(str, Enum):
    """Storefronts a library entry can belong to."""

    STEAM = "Steam"
    EPIC_GAMES = "EpicGames"
    GOG = "GOG"
    AMAZON_GAMES = "AmazonGames"
    UBISOFT_CONNECT = "UbisoftConnect"
    ROCKSTAR = "Rockstar"

    @property
    def slug(self) -> str:
        return self.value.lower()

    @classmethod
    def parse(cls, value: str) -> "Platform":
        text = (value or "").strip().lower()
        for member in cls:
            if text in (member.value.lower(), member.name.lower()):
                return member
        raise ValueError(f"Unknown platform: {value}")


# The vendor whose database we read
NATIVE_PLATFORM = Platform.GOG


class BlobKind(str, Enum):
    ABSENT = "absent"
    TEXT = "text"
    JSON = "json"


@dataclass(frozen=True, slots=True)
class BlobField:
    """One column of a vendor row: absent, a plain string or a JSON object.

    The vendor stores heterogeneous shapes in the same column, so the shape is
    detected once when the row is read instead of at every use.
    """

    kind: BlobKind
    text: Optional[str] = None
    data: Optional[dict[str, Any]] = None

    @classmethod
    def from_raw(cls, raw: Any) -> "BlobField":
        if raw is None:
            return cls(BlobKind.ABSENT)
        if isinstance(raw, (bytes, bytearray)):
            raw = bytes(raw).decode("utf-8", errors="replace")
        text = str(raw)
        if not text.strip():
            return cls(BlobKind.ABSENT)
        if text.lstrip().startswith("{"):
            try:
                value = json.loads(text)
            except ValueError:
                return cls(BlobKind.TEXT, text=text)
            if isinstance(value, dict):
                return cls(BlobKind.JSON, text=text, data=value)
        return cls(BlobKind.TEXT, text=text)

    @property
    def is_absent(self) -> bool:
        return self.kind is BlobKind.ABSENT

    def get_str(self, key: str) -> Optional[str]:
        """Return ``data[key]`` when this is a JSON object holding a string there."""
        if self.kind is not BlobKind.JSON or self.data is None:
            return None
        value = self.data.get(key)
        return value if isinstance(value, str) else None


ABSENT = BlobField(BlobKind.ABSENT)


@dataclass(frozen=True, slots=True)
class RawRecord:
    release_key: str
    title: BlobField = ABSENT
    metadata: BlobField = ABSENT
    images: BlobField = ABSENT


@dataclass(frozen=True, slots=True)
class ClassifiedRecord:
    record: RawRecord
    platform: Platform
    product_id: str

    @property
    def release_key(self) -> str:
        return self.record.release_key

    @property
    def game_id(self) -> str:
        return make_game_id(self.platform, self.product_id)


def make_game_id(platform: Platform, product_id: str) -> str:
    return f"{platform.slug}-{product_id}"


@dataclass(slots=True)
class NormalizedGame:
    """A library entry ready to be handed to the persistence collaborator."""

    title: str
    platform: Platform
    product_id: str
    cover_image_url: Optional[str] = None
    playtime_minutes: Optional[int] = None
    last_played: Optional[datetime] = None
    release_date: Optional[datetime] = None
    developer: Optional[str] = None
    publisher: Optional[str] = None
    genres: list[str] = field(default_factory=list)
    description: Optional[str] = None

    def __post_init__(self):
        if not self.title or not self.title.strip():
            raise ValueError("Game title must not be empty")
        if self.playtime_minutes is not None and self.playtime_minutes < 0:
            raise ValueError("Playtime cannot be negative")
        self.genres = unique_genres(self.genres)

    @property
    def id(self) -> str:
        return make_game_id(self.platform, self.product_id)


@dataclass(frozen=True, slots=True)
class PlaytimeEntry:
    raw_key: str
    minutes: int

    def __post_init__(self):
        if self.minutes <= 0:
            raise ValueError(f"Playtime must be positive: {self.raw_key}={self.minutes}")


@dataclass(slots=True)
class PersistedGame:
    """A row of the user's stored library."""

    user_id: str
    platform: Platform
    product_id: str
    title: str
    cover_image_url: Optional[str] = None
    playtime_minutes: Optional[int] = None
    last_played: Optional[datetime] = None
    is_manually_added: bool = False
    added_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    description: Optional[str] = None
    release_date: Optional[datetime] = None
    developer: Optional[str] = None
    publisher: Optional[str] = None
    genres: list[str] = field(default_factory=list)

    @property
    def id(self) -> str:
        return make_game_id(self.platform, self.product_id)

    @property
    def key(self) -> tuple[str, Platform, str]:
        return (self.user_id, self.platform, self.product_id)


def unique_genres(genres) -> list[str]:
    """Strip, drop blanks and de-duplicate (case-insensitive), keeping order."""
    result: list[str] = []
    seen: set[str] = set()
    for genre in genres or ():
        if not isinstance(genre, str):
            continue
        text = genre.strip()
        if not text or text.casefold() in seen:
            continue
        seen.add(text.casefold())
        result.append(text)
    return result
