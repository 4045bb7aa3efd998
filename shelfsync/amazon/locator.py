"""Finds the Amazon Games client databases on disk.

The client keeps two sqlite files side by side: ``ProductDetails.sqlite``
(rich metadata) and ``GameProductInfo.sqlite`` (every owned product). A user
path may name either file directly or the folder holding them.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from pathlib import Path
from typing import Iterable, Optional

from shelfsync import config
from shelfsync.galaxy.locator import expand_path, has_any_table

logger = logging.getLogger(__name__)


def resolve_db_paths(raw: str) -> list[Path]:
    """Expand a user path; a directory stands for every known database file in it."""
    path = Path(expand_path(raw))
    if path.is_dir():
        return [path / name for name in config.AMAZON_DB_FILES]
    return [path]


def _readable(paths: Iterable[Path]) -> list[Path]:
    return [p for p in paths if p.is_file() and os.access(p, os.R_OK)]


def locate_databases(
    user_path: Optional[str] = None,
    known_dirs: Iterable[str] = config.AMAZON_KNOWN_DB_DIRS,
) -> list[Path]:
    """Return the Amazon databases to read, ProductDetails first.

    An empty list means none was found. As with Galaxy, a user supplied path
    wins outright and the known folders are not searched.
    """
    if user_path and user_path.strip():
        found = _readable(resolve_db_paths(user_path))
        if found:
            logger.info("Using Amazon Games databases: %s", ", ".join(map(str, found)))
        else:
            logger.warning("Amazon Games database not found at user path: %s", user_path)
        return found

    for candidate in known_dirs:
        found = _readable(resolve_db_paths(candidate))
        if found:
            logger.info("Found Amazon Games databases in: %s", found[0].parent)
            return found

    logger.info("Amazon Games database not found in any known location")
    return []


def is_amazon_installed(known_dirs: Iterable[str] = config.AMAZON_KNOWN_DB_DIRS) -> bool:
    return bool(locate_databases(None, known_dirs))


def is_valid_amazon_database(raw: Optional[str]) -> bool:
    """True when ``raw`` holds a sqlite file with a ``DbSet`` or ``game_product_info`` table."""
    if not raw or not raw.strip():
        return False

    for path in _readable(resolve_db_paths(raw)):
        try:
            if has_any_table(path, config.AMAZON_TABLES):
                return True
        except sqlite3.Error as e:
            logger.warning("Invalid Amazon Games database at path %s: %s", path, e)
    return False
