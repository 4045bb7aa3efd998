"""Finds the GOG Galaxy database on disk.

Nothing here raises for a missing database: "not found" is ``None`` (or
``False`` for the validity check) and the caller decides whether to fall back
to demo data.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import sqlite3
import tempfile
import uuid
from pathlib import Path
from typing import BinaryIO, Callable, Iterable, Optional

from shelfsync import config
from shelfsync.common.exceptions import SourceUnavailableError
from shelfsync.core.models import NATIVE_PLATFORM, Platform
from shelfsync.logging_cfg import log_call

logger = logging.getLogger(__name__)

_WIN_VAR = re.compile(r"%([^%]+)%")


def expand_path(raw: str) -> str:
    """Expand ``%VAR%``, ``$VAR`` and ``~`` placeholders.

    Unknown ``%VAR%`` placeholders are left untouched so the resulting path
    simply does not exist.
    """
    def _sub(match: re.Match) -> str:
        return os.environ.get(match.group(1), match.group(0))

    text = _WIN_VAR.sub(_sub, raw.strip())
    return os.path.expanduser(os.path.expandvars(text))


def resolve_db_path(raw: str) -> Path:
    """Expand a user path and append the database filename to directories."""
    path = Path(expand_path(raw))
    if path.is_dir():
        path = path / config.GALAXY_DB_RELATIVE_PATH
    return path


def _is_readable_file(path: Path) -> bool:
    return path.is_file() and os.access(path, os.R_OK)


def locate_database(
    user_path: Optional[str] = None,
    known_paths: Iterable[str] = config.KNOWN_DB_PATHS,
) -> Optional[Path]:
    """Return the database to read, or ``None`` when there is none.

    A user supplied path wins outright: when it is given, the well-known
    install locations are not searched.
    """
    if user_path and user_path.strip():
        path = resolve_db_path(user_path)
        if _is_readable_file(path):
            logger.info("Using GOG Galaxy database at: %s", path)
            return path
        logger.warning("GOG Galaxy database not found at user path: %s", path)
        return None

    for candidate in known_paths:
        path = Path(expand_path(candidate))
        if _is_readable_file(path):
            logger.info("Found GOG Galaxy database at: %s", path)
            return path

    logger.info("GOG Galaxy database not found in any known location")
    return None


def is_galaxy_installed(known_paths: Iterable[str] = config.KNOWN_DB_PATHS) -> bool:
    return locate_database(None, known_paths) is not None


def has_any_table(path: Path, tables: Iterable[str]) -> bool:
    """True when the sqlite file at ``path`` defines one of ``tables``.

    Raises:
        sqlite3.Error: if the file is not a readable sqlite database.
    """
    names = tuple(tables)
    placeholders = ", ".join("?" for _ in names)
    uri = f"{path.resolve().as_uri()}?mode=ro"
    conn = sqlite3.connect(uri, uri=True, timeout=config.DB_TIMEOUT_SECONDS)
    try:
        row = conn.execute(
            f"SELECT name FROM sqlite_master WHERE type='table' AND name IN ({placeholders})",
            names,
        ).fetchone()
    finally:
        conn.close()
    return row is not None


def is_valid_galaxy_database(raw: Optional[str]) -> bool:
    """True when ``raw`` points at a sqlite file that has the GamePieces table."""
    if not raw or not raw.strip():
        return False

    path = resolve_db_path(raw)
    if not path.is_file():
        return False

    try:
        return has_any_table(path, ("GamePieces",))
    except sqlite3.Error as e:
        logger.warning("Invalid GOG Galaxy database at path %s: %s", raw, e)
        return False


@log_call(level=logging.INFO)
def stage_uploaded_database(
    stream: BinaryIO,
    tmp_dir: Optional[Path] = None,
    platform: Platform = NATIVE_PLATFORM,
    validator: Callable[[Optional[str]], bool] = is_valid_galaxy_database,
) -> Path:
    """Copy an uploaded database to a uniquely named temp file.

    ``validator`` decides whether the copy is a database of ``platform``.

    Raises:
        SourceUnavailableError: if the upload is rejected. The temp file is
            removed before raising.
    """
    base = Path(tmp_dir) if tmp_dir else Path(tempfile.gettempdir())
    base.mkdir(parents=True, exist_ok=True)
    target = base / f"{platform.slug}-upload-{uuid.uuid4().hex}.db"

    with open(target, "wb") as fh:
        shutil.copyfileobj(stream, fh)

    if not validator(str(target)):
        discard_staged_database(target)
        raise SourceUnavailableError(
            platform.value, str(target), f"uploaded file is not a {platform.value} database"
        )

    logger.info("Staged uploaded %s database at %s", platform.value, target)
    return target


def discard_staged_database(path: Path | str) -> None:
    try:
        Path(path).unlink()
    except FileNotFoundError:
        pass
