from __future__ import annotations

import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Iterator, Optional

from shelfsync import config
from shelfsync.common.exceptions import ExtractionError, RecordParseError
from shelfsync.core.models import BlobField, RawRecord, NATIVE_PLATFORM
from shelfsync.logging_cfg import get_logger

SOURCE = NATIVE_PLATFORM.value

# One row per owned release; the three pieces are optional
RELEASES_QUERY = f"""
    SELECT DISTINCT
        lr.releaseKey,
        gp_title.value AS title,
        gp_meta.value AS metadata,
        gp_images.value AS images
    FROM LibraryReleases lr
    LEFT JOIN GamePieces gp_title ON lr.releaseKey = gp_title.releaseKey
        AND gp_title.gamePieceTypeId = {config.PIECE_TYPE_TITLE}
    LEFT JOIN GamePieces gp_meta ON lr.releaseKey = gp_meta.releaseKey
        AND gp_meta.gamePieceTypeId = {config.PIECE_TYPE_METADATA}
    LEFT JOIN GamePieces gp_images ON lr.releaseKey = gp_images.releaseKey
        AND gp_images.gamePieceTypeId = {config.PIECE_TYPE_IMAGES}
"""


def open_readonly(
    db_path: Path | str, timeout: Optional[float] = None
) -> sqlite3.Connection:
    """Open the vendor database read-only with a busy timeout.

    WAL read mode is requested so rows written by a running Galaxy client are
    visible; a database that refuses the pragma is still read.
    """
    uri = f"{Path(db_path).resolve().as_uri()}?mode=ro"
    conn = sqlite3.connect(
        uri,
        uri=True,
        timeout=config.DB_TIMEOUT_SECONDS if timeout is None else timeout,
    )
    try:
        conn.execute("PRAGMA journal_mode=WAL")
    except sqlite3.DatabaseError as e:
        get_logger("galaxy.extractor").debug("WAL pragma refused for %s: %s", db_path, e)
    return conn


def _to_record(row: tuple) -> RawRecord:
    release_key = row[0]
    if isinstance(release_key, bytes):
        release_key = release_key.decode("utf-8", errors="replace")
    if not isinstance(release_key, str) or not release_key.strip():
        raise RecordParseError(SOURCE, repr(release_key), "missing release key")
    try:
        return RawRecord(
            release_key=release_key,
            title=BlobField.from_raw(row[1]),
            metadata=BlobField.from_raw(row[2]),
            images=BlobField.from_raw(row[3]),
        )
    except (TypeError, ValueError) as e:
        raise RecordParseError(SOURCE, release_key, str(e)) from e


class GalaxyExtractor:
    """Streams :class:`RawRecord` rows out of a Galaxy database.

    The connection lives only for the duration of one :meth:`extract` call.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout
        self.logger = get_logger("galaxy.extractor")
        self.rows_read = 0
        self.rows_skipped = 0

    def extract(self, db_path: Path | str) -> Iterator[RawRecord]:
        """Yield one raw record per library release.

        Malformed rows are skipped with a debug line.

        Raises:
            ExtractionError: if the database cannot be opened or queried.
        """
        self.rows_read = 0
        self.rows_skipped = 0
        try:
            conn = open_readonly(db_path, self.timeout)
        except sqlite3.Error as e:
            raise ExtractionError(SOURCE, str(db_path), str(e)) from e

        with closing(conn):
            try:
                cursor = conn.execute(RELEASES_QUERY)
                for row in cursor:
                    self.rows_read += 1
                    try:
                        record = _to_record(row)
                    except RecordParseError as e:
                        self.rows_skipped += 1
                        self.logger.debug("Skipping row %d: %s", self.rows_read, e)
                        continue
                    yield record
            except sqlite3.Error as e:
                raise ExtractionError(SOURCE, str(db_path), str(e)) from e

        self.logger.info(
            "Read %d rows from %s (%d skipped)",
            self.rows_read,
            db_path,
            self.rows_skipped,
        )
