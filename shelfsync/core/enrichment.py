from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from shelfsync.core.models import PersistedGame, unique_genres
from shelfsync.galaxy.normalizer import parse_release_date
from shelfsync.library import LibraryDB
from shelfsync.logging_cfg import get_logger
from shelfsync.metadata_providers.base import GameMetadata, MetadataProvider


def fill_missing(game: PersistedGame, meta: GameMetadata) -> dict:
    """Return the field changes ``meta`` brings to ``game``; set fields are kept."""
    changes: dict = {}
    if not game.description and meta.description and meta.description.strip():
        changes["description"] = meta.description.strip()
    if not game.developer and meta.developer:
        changes["developer"] = meta.developer
    if not game.publisher and meta.publisher:
        changes["publisher"] = meta.publisher
    if not game.genres and meta.genres:
        genres = unique_genres(meta.genres)
        if genres:
            changes["genres"] = genres
    if game.release_date is None and meta.release_date:
        released = parse_release_date(meta.release_date)
        if released is not None:
            changes["release_date"] = released
    return changes


class Enricher:
    """Fills empty descriptive fields of stored games from a metadata provider."""

    def __init__(
        self,
        store: LibraryDB,
        provider: MetadataProvider,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.provider = provider
        self.clock = clock
        self.logger = get_logger("core.enrichment")

    def enrich_game(self, game: PersistedGame) -> Optional[PersistedGame]:
        """Return the enriched record, or ``None`` when nothing was added."""
        try:
            meta = self.provider.get_metadata(game.platform.value, game.product_id, game.title)
        except Exception as e:
            self.logger.warning("Metadata lookup failed for %s: %s", game.title, e)
            return None

        if meta is None:
            return None

        changes = fill_missing(game, meta)
        if not changes:
            self.logger.info("No new data to add for '%s'", game.title)
            return None

        return replace(game, updated_at=self.clock(), **changes)

    def enrich(self, user_id: str, game_ids: Iterable[str]) -> int:
        """Enrich the given games; returns how many records were written."""
        enriched = 0
        for game_id in game_ids:
            game = self.store.get_game_by_id(user_id, game_id)
            if game is None:
                self.logger.warning("Game %s not found for user %s", game_id, user_id)
                continue

            updated = self.enrich_game(game)
            if updated is None:
                continue

            self.store.update_game(updated)
            enriched += 1
            self.logger.info("Enriched '%s' with %s data", game.title, self.provider.name)

        self.logger.info("Enriched %d games for user %s", enriched, user_id)
        return enriched
