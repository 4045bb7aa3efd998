from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional

from shelfsync import config
from shelfsync.common.exceptions import ExtractionError, format_exception_chain
from shelfsync.common.types import SourceResult, SourceStatus
from shelfsync.core.models import NATIVE_PLATFORM, NormalizedGame
from shelfsync.galaxy.classifier import classify_all
from shelfsync.galaxy.extractor import GalaxyExtractor
from shelfsync.galaxy.locator import locate_database
from shelfsync.galaxy.mock import mock_games
from shelfsync.galaxy.normalizer import TitleNormalizer
from shelfsync.galaxy.playtime import correlate, read_playtime
from shelfsync.logging_cfg import get_logger

if TYPE_CHECKING:
    from shelfsync.core.session import SourceConnection


class GalaxySource:
    """Library source backed by a local GOG Galaxy database.

    Runs locate, extract, classify, normalize and playtime correlation for one
    connection. A missing or unreadable database degrades to the demo catalog
    (unless ``use_fallback`` is off); a database that parses to zero games is
    reported as an empty library.
    """

    platform = NATIVE_PLATFORM

    def __init__(
        self,
        known_paths: Iterable[str] = config.KNOWN_DB_PATHS,
        use_fallback: bool = True,
        timeout: Optional[float] = None,
    ):
        self.known_paths = tuple(known_paths)
        self.use_fallback = use_fallback
        self.timeout = timeout
        self.logger = get_logger("galaxy.reader")

    def read_games(self, db_path: Path | str) -> list[NormalizedGame]:
        """Read every accepted game from ``db_path``.

        Raises:
            ExtractionError: if the release query fails. Nothing read before the
                failure is returned.
        """
        extractor = GalaxyExtractor(self.timeout)
        normalizer = TitleNormalizer()
        games = list(normalizer.run(classify_all(extractor.extract(db_path))))

        playtimes = read_playtime(db_path)
        matched = correlate(games, playtimes)

        self.logger.info(
            "Found %d valid games in %s (%d filtered, %d duplicates, %d with playtime)",
            len(games),
            db_path,
            normalizer.filtered,
            normalizer.duplicates,
            matched,
        )
        return games

    def fetch(self, connection: Optional[SourceConnection]) -> SourceResult:
        if connection is None or not connection.connected:
            user = connection.user_id if connection else "?"
            self.logger.warning("No GOG account connected for user %s", user)
            return SourceResult(self.platform, SourceStatus.DISCONNECTED)

        db_path = locate_database(connection.custom_path, self.known_paths)
        if db_path is None:
            result = SourceResult(
                self.platform,
                SourceStatus.UNAVAILABLE,
                error_message="GOG Galaxy database not found",
            )
        else:
            try:
                games = self.read_games(db_path)
                return SourceResult(
                    self.platform, SourceStatus.OK, games=games, db_path=str(db_path)
                )
            except ExtractionError as e:
                self.logger.error("Error reading GOG Galaxy database: %s", e)
                result = SourceResult(
                    self.platform,
                    SourceStatus.FAILED,
                    db_path=str(db_path),
                    error_message=format_exception_chain(e),
                )

        if self.use_fallback:
            self.logger.info("No GOG games found, returning mock data")
            result.games = mock_games()
            result.used_fallback = True
        return result
