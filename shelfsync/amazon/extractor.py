from __future__ import annotations

import json
import sqlite3
from contextlib import closing
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

from shelfsync import config
from shelfsync.common.exceptions import ExtractionError, RecordParseError
from shelfsync.core.models import NormalizedGame, Platform
from shelfsync.galaxy.extractor import open_readonly
from shelfsync.galaxy.normalizer import parse_release_date
from shelfsync.logging_cfg import get_logger

PLATFORM = Platform.AMAZON_GAMES
SOURCE = PLATFORM.value


class AmazonLayout(str, Enum):
    """The three database shapes the Amazon Games client writes."""

    PRODUCT_DETAILS = "ProductDetails"  # JSON documents keyed by product
    PRODUCT_INFO = "GameProductInfo"  # one DbSet row per owned product
    INSTALL_INFO = "GameInstallInfo"  # DbSet rows of installed games only


PRODUCT_DETAILS_QUERY = f"""
    SELECT key, CAST(value AS TEXT)
    FROM game_product_info
    WHERE key LIKE '{config.AMAZON_PRODUCT_KEY_PREFIX}%'
    ORDER BY key
"""

PRODUCT_INFO_QUERY = """
    SELECT ProductTitle, ProductIdStr, ProductDescription, ProductIconUrl,
           ProductPublisher, GenresJson, DevelopersJson, ReleaseDate
    FROM DbSet
    ORDER BY ProductTitle
"""

INSTALL_INFO_QUERY = """
    SELECT ProductTitle, Id
    FROM DbSet
    WHERE Installed = 1
    ORDER BY ProductTitle
"""


def detect_layout(conn: sqlite3.Connection) -> Optional[AmazonLayout]:
    tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    if "game_product_info" in tables:
        return AmazonLayout.PRODUCT_DETAILS
    if "DbSet" not in tables:
        return None

    columns = {row[1] for row in conn.execute("PRAGMA table_info(DbSet)")}
    # GameInstallInfo has both columns, GameProductInfo only ProductIdStr
    if "ProductIdStr" in columns and "Installed" not in columns:
        return AmazonLayout.PRODUCT_INFO
    return AmazonLayout.INSTALL_INFO


def _text(value: Any) -> Optional[str]:
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _json_strings(raw: Any) -> list[str]:
    """Strings of a JSON array column; anything unparseable is an empty list."""
    if isinstance(raw, list):
        values = raw
    else:
        text = _text(raw)
        if not text:
            return []
        try:
            values = json.loads(text)
        except ValueError:
            return []
    if not isinstance(values, list):
        return []
    return [v.strip() for v in values if isinstance(v, str) and v.strip()]


def _make_game(title: Optional[str], product_id: Optional[str], **fields: Any) -> NormalizedGame:
    if not title or not product_id:
        raise RecordParseError(SOURCE, product_id or "?", "missing title or product id")
    try:
        return NormalizedGame(title=title, platform=PLATFORM, product_id=product_id, **fields)
    except ValueError as e:
        raise RecordParseError(SOURCE, product_id, str(e)) from e


def parse_product_details(row: tuple) -> NormalizedGame:
    key, document = row
    try:
        data = json.loads(document)
    except (TypeError, ValueError) as e:
        raise RecordParseError(SOURCE, str(key), f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise RecordParseError(SOURCE, str(key), "document is not an object")

    product = data.get("ProductId")
    product_id = _text(product.get("Id")) if isinstance(product, dict) else None
    developers = _json_strings(data.get("Developers"))
    return _make_game(
        _text(data.get("ProductTitle")),
        product_id,
        description=_text(data.get("ProductDescription")),
        cover_image_url=_text(data.get("ProductIconUrl")),
        publisher=_text(data.get("ProductPublisher")),
        developer=developers[0] if developers else None,
        genres=_json_strings(data.get("Genres")),
        release_date=parse_release_date(_text(data.get("ReleaseDate"))),
    )


def parse_product_info(row: tuple) -> NormalizedGame:
    title, product_id, description, icon, publisher, genres, developers, released = row
    developer_list = _json_strings(developers)
    return _make_game(
        _text(title),
        _text(product_id),
        description=_text(description),
        cover_image_url=_text(icon),
        publisher=_text(publisher),
        developer=developer_list[0] if developer_list else None,
        genres=_json_strings(genres),
        release_date=parse_release_date(_text(released)),
    )


def parse_install_info(row: tuple) -> NormalizedGame:
    title, product_id = row
    return _make_game(_text(title), _text(product_id))


_LAYOUTS: dict[AmazonLayout, tuple[str, Callable[[tuple], NormalizedGame]]] = {
    AmazonLayout.PRODUCT_DETAILS: (PRODUCT_DETAILS_QUERY, parse_product_details),
    AmazonLayout.PRODUCT_INFO: (PRODUCT_INFO_QUERY, parse_product_info),
    AmazonLayout.INSTALL_INFO: (INSTALL_INFO_QUERY, parse_install_info),
}


class AmazonExtractor:
    """Streams games out of one Amazon Games database file.

    Rows that cannot be decoded are skipped with a debug line; a file whose
    layout is not recognised, or whose query fails, aborts the file.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout
        self.logger = get_logger("amazon.extractor")
        self.layout: Optional[AmazonLayout] = None
        self.rows_read = 0
        self.rows_skipped = 0

    def extract(self, db_path: Path | str) -> Iterator[NormalizedGame]:
        """Yield one game per usable row.

        Raises:
            ExtractionError: if the database cannot be opened, has no known
                layout, or a query fails.
        """
        self.layout = None
        self.rows_read = 0
        self.rows_skipped = 0
        try:
            conn = open_readonly(db_path, self.timeout)
        except sqlite3.Error as e:
            raise ExtractionError(SOURCE, str(db_path), str(e)) from e

        with closing(conn):
            try:
                self.layout = detect_layout(conn)
                if self.layout is None:
                    raise ExtractionError(
                        SOURCE, str(db_path), "no recognized Amazon Games tables"
                    )
                query, parse = _LAYOUTS[self.layout]
                for row in conn.execute(query):
                    self.rows_read += 1
                    try:
                        game = parse(row)
                    except RecordParseError as e:
                        self.rows_skipped += 1
                        self.logger.debug("Skipping row %d: %s", self.rows_read, e)
                        continue
                    yield game
            except sqlite3.Error as e:
                raise ExtractionError(SOURCE, str(db_path), str(e)) from e

        self.logger.info(
            "Read %d rows from %s database %s (%d skipped)",
            self.rows_read,
            self.layout.value,
            db_path,
            self.rows_skipped,
        )
