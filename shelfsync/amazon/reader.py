from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional

from shelfsync import config
from shelfsync.amazon.extractor import PLATFORM, AmazonExtractor
from shelfsync.amazon.locator import locate_databases
from shelfsync.common.exceptions import ExtractionError, format_exception_chain
from shelfsync.common.types import SourceResult, SourceStatus
from shelfsync.core.models import NormalizedGame
from shelfsync.logging_cfg import get_logger

if TYPE_CHECKING:
    from shelfsync.core.session import SourceConnection


class AmazonSource:
    """Library source backed by the Amazon Games client databases.

    Every database found is read, ProductDetails first; later files only add
    products not seen yet. One unreadable file does not hide the others. There
    is no demo catalog: a missing client is an unavailable source.
    """

    platform = PLATFORM

    def __init__(
        self,
        known_dirs: Iterable[str] = config.AMAZON_KNOWN_DB_DIRS,
        timeout: Optional[float] = None,
    ):
        self.known_dirs = tuple(known_dirs)
        self.timeout = timeout
        self.logger = get_logger("amazon.reader")

    def read_games(self, db_paths: Iterable[Path | str]) -> list[NormalizedGame]:
        """Read and de-duplicate games from ``db_paths``.

        Raises:
            ExtractionError: if every file fails. The last error is raised.
        """
        games: dict[str, NormalizedGame] = {}
        error: Optional[ExtractionError] = None
        read_any = False

        for db_path in db_paths:
            extractor = AmazonExtractor(self.timeout)
            try:
                batch = list(extractor.extract(db_path))
            except ExtractionError as e:
                self.logger.error("Error reading Amazon Games database: %s", e)
                error = e
                continue
            read_any = True
            added = 0
            for game in batch:
                if game.id not in games:
                    games[game.id] = game
                    added += 1
            self.logger.info("Added %d of %d games from %s", added, len(batch), db_path)

        if not read_any and error is not None:
            raise error
        return list(games.values())

    def fetch(self, connection: Optional[SourceConnection]) -> SourceResult:
        if connection is None or not connection.connected:
            user = connection.user_id if connection else "?"
            self.logger.warning("No Amazon Games account connected for user %s", user)
            return SourceResult(self.platform, SourceStatus.DISCONNECTED)

        db_paths = locate_databases(connection.custom_path, self.known_dirs)
        if not db_paths:
            return SourceResult(
                self.platform,
                SourceStatus.UNAVAILABLE,
                error_message="Amazon Games database not found",
            )

        location = str(db_paths[0])
        try:
            games = self.read_games(db_paths)
        except ExtractionError as e:
            return SourceResult(
                self.platform,
                SourceStatus.FAILED,
                db_path=location,
                error_message=format_exception_chain(e),
            )

        if not games:
            self.logger.warning("No Amazon Games found in any database")
        return SourceResult(self.platform, SourceStatus.OK, games=games, db_path=location)
