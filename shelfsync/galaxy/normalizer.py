from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Optional

from shelfsync import config
from shelfsync.common.exceptions import RecordParseError
from shelfsync.core.models import (
    BlobKind,
    ClassifiedRecord,
    NATIVE_PLATFORM,
    NormalizedGame,
    unique_genres,
)

logger = logging.getLogger(__name__)


def resolve_title(classified: ClassifiedRecord) -> str:
    """Title piece (plain or ``{"title": ...}``), then metadata title, then release key."""
    record = classified.record
    title: Optional[str] = None

    if record.title.kind is BlobKind.TEXT:
        title = record.title.text
    elif record.title.kind is BlobKind.JSON:
        title = record.title.get_str("title")

    if not title or not title.strip():
        title = record.metadata.get_str("title")

    if not title or not title.strip():
        title = record.release_key

    return title.strip()


def is_denied_title(title: str, deny_list: Iterable[str] = config.TITLE_DENY_LIST) -> bool:
    lowered = title.casefold()
    return any(entry.casefold() in lowered for entry in deny_list)


def is_placeholder_title(title: str, release_key: str) -> bool:
    """An empty title, or one equal to the release key, means the pieces did not parse."""
    text = title.strip()
    return not text or text.casefold() == release_key.strip().casefold()


def resolve_cover(classified: ClassifiedRecord) -> Optional[str]:
    images = classified.record.images
    for field_name in config.COVER_IMAGE_FIELDS:
        url = images.get_str(field_name)
        if url and url.strip():
            return url.strip()

    # Only GOG's own CDN can be derived from a product id
    if classified.platform is NATIVE_PLATFORM:
        return config.GOG_CDN_COVER_TEMPLATE.format(product_id=classified.product_id)
    return None


def parse_release_date(value: Any) -> Optional[datetime]:
    """Parse an ISO date string or Unix seconds into an aware UTC datetime."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    return None


def _first_string(value: Any) -> Optional[str]:
    if isinstance(value, list) and value:
        head = value[0]
        if isinstance(head, str) and head.strip():
            return head.strip()
    return None


def apply_vendor_metadata(game: NormalizedGame, classified: ClassifiedRecord) -> None:
    """Copy release date, developer, publisher and genres from the metadata piece.

    Descriptions are left to enrichment.
    """
    data = classified.record.metadata.data
    if not data:
        return

    if "releaseDate" in data:
        released = parse_release_date(data["releaseDate"])
        if released is None:
            logger.debug(
                "Unparseable releaseDate for %s: %r", game.title, data["releaseDate"]
            )
        else:
            game.release_date = released

    developer = _first_string(data.get("developers"))
    if developer:
        game.developer = developer

    publisher = _first_string(data.get("publishers"))
    if publisher:
        game.publisher = publisher

    genres = data.get("genres")
    if isinstance(genres, list):
        game.genres = unique_genres(genres)


def normalize(classified: ClassifiedRecord) -> Optional[NormalizedGame]:
    """Turn one classified record into a game, or ``None`` when it is filtered."""
    title = resolve_title(classified)

    if is_denied_title(title):
        logger.debug("Skipping filtered game: %s", title)
        return None

    if is_placeholder_title(title, classified.release_key):
        logger.debug(
            "Skipping game with invalid title: %s (releaseKey: %s)",
            title,
            classified.release_key,
        )
        return None

    try:
        game = NormalizedGame(
            title=title,
            platform=classified.platform,
            product_id=classified.product_id,
            cover_image_url=resolve_cover(classified),
        )
    except ValueError as e:
        raise RecordParseError(NATIVE_PLATFORM.value, classified.release_key, str(e)) from e

    apply_vendor_metadata(game, classified)
    return game


class TitleNormalizer:
    """Filters and normalizes one pass of classified records.

    Duplicate suppression is scoped to the instance, so use a fresh one per
    extraction pass.
    """

    def __init__(self):
        self.seen_ids: set[str] = set()
        self.filtered = 0
        self.duplicates = 0
        self.failed = 0

    def accept(self, classified: ClassifiedRecord) -> Optional[NormalizedGame]:
        try:
            game = normalize(classified)
        except RecordParseError as e:
            self.failed += 1
            logger.debug("Skipping record: %s", e)
            return None

        if game is None:
            self.filtered += 1
            return None

        if game.id in self.seen_ids:
            self.duplicates += 1
            logger.debug("Skipping duplicate %s (%s)", game.id, classified.release_key)
            return None

        self.seen_ids.add(game.id)
        return game

    def run(self, records: Iterable[ClassifiedRecord]) -> Iterator[NormalizedGame]:
        for classified in records:
            game = self.accept(classified)
            if game is not None:
                yield game
