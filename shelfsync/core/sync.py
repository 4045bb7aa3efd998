from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Protocol, Sequence

from shelfsync.common.exceptions import SourceError, format_exception_chain
from shelfsync.common.types import SourceResult, SourceStatus, SyncReport
from shelfsync.core.merge import MergeEngine
from shelfsync.core.models import NormalizedGame, Platform
from shelfsync.core.session import SourceConnection
from shelfsync.library import LibraryDB
from shelfsync.logging_cfg import get_logger, set_correlation_id


class LibrarySource(Protocol):
    platform: Platform

    def fetch(self, connection: SourceConnection) -> SourceResult: ...


class LibrarySync:
    """Runs one user's sync pass: fetch every connected source, merge, persist.

    A source that raises is recorded as failed and the others still run. A
    persistence failure is not caught: the pass is aborted and nothing from it
    is written.
    """

    def __init__(
        self,
        store: LibraryDB,
        sources: Sequence[LibrarySource],
        merge_engine: Optional[MergeEngine] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.sources = list(sources)
        self.merge_engine = merge_engine or MergeEngine()
        self.clock = clock
        self.logger = get_logger("core.sync")

    def _fetch(self, source: LibrarySource, connection: SourceConnection) -> SourceResult:
        try:
            return source.fetch(connection)
        except SourceError as e:
            message = format_exception_chain(e)
            self.logger.error(
                "Source %s failed for user %s: %s",
                source.platform.value,
                connection.user_id,
                message,
                extra={"user_id": connection.user_id, "platform": source.platform},
            )
        except Exception as e:
            message = format_exception_chain(e)
            self.logger.exception(
                "Source %s failed for user %s",
                source.platform.value,
                connection.user_id,
                extra={"user_id": connection.user_id, "platform": source.platform},
            )
        return SourceResult(source.platform, SourceStatus.FAILED, error_message=message)

    def sync_user(
        self,
        user_id: str,
        connections: Optional[Iterable[SourceConnection]] = None,
    ) -> SyncReport:
        """Sync ``user_id`` against the given connections (stored ones by default).

        Raises:
            PersistenceError: if the merged batch cannot be written.
        """
        cid = set_correlation_id()
        start = time.time()
        now = self.clock()

        if connections is None:
            connections = self.store.list_connections(user_id)
        by_platform = {c.platform: c for c in connections if c.user_id == user_id}

        report = SyncReport(user_id=user_id, correlation_id=cid)
        fetched: list[SourceConnection] = []

        for source in self.sources:
            connection = by_platform.get(source.platform)
            if connection is None or not connection.connected:
                self.logger.debug("Skipping %s: not connected", source.platform.value)
                report.sources.append(
                    SourceResult(source.platform, SourceStatus.DISCONNECTED)
                )
                continue

            result = self._fetch(source, connection)
            report.sources.append(result)
            report.games.extend(result.games)
            fetched.append(connection)
            self.logger.info(
                "%s: %d games (%s%s)",
                source.platform.value,
                result.game_count,
                result.status.value,
                ", fallback" if result.used_fallback else "",
                extra={"user_id": user_id, "platform": source.platform, "db_path": result.db_path},
            )

        merged = self.merge_engine.merge(user_id, report.games, self.store, now=now)
        self.store.apply(merged)

        for connection in fetched:
            self.store.save_connection(connection.mark_synced(now))

        report.inserted = len(merged.inserts)
        report.updated = len(merged.updates)
        report.unchanged = len(merged.unchanged)
        report.needs_enrichment = list(merged.needs_enrichment)
        report.duration_ms = (time.time() - start) * 1000.0
        self.logger.info("%s", report)
        return report

    def import_games(self, user_id: str, games: Iterable[NormalizedGame]) -> SyncReport:
        """Merge user supplied games, flagging new rows as manually added."""
        cid = set_correlation_id()
        start = time.time()
        batch = list(games)

        merged = self.merge_engine.merge(
            user_id, batch, self.store, manually_added=True, now=self.clock()
        )
        self.store.apply(merged)

        report = SyncReport(
            user_id=user_id,
            games=batch,
            inserted=len(merged.inserts),
            updated=len(merged.updates),
            unchanged=len(merged.unchanged),
            needs_enrichment=list(merged.needs_enrichment),
            correlation_id=cid,
        )
        report.duration_ms = (time.time() - start) * 1000.0
        self.logger.info("Imported %d games for user %s", len(batch), user_id)
        return report
