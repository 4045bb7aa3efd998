"""Joins the GameTimes statistics table onto normalized games.

GameTimes is keyed by release key in the vendor's statistics convention
(``epic_<id>``, ``uplay_<id>``, ...), which is not the same set of
abbreviations the classifier strips. The two prefix tables are kept apart in
:mod:`shelfsync.config`.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Iterable, Mapping, Optional

from shelfsync import config
from shelfsync.core.models import NATIVE_PLATFORM, NormalizedGame, Platform, PlaytimeEntry
from shelfsync.galaxy.extractor import open_readonly
from shelfsync.logging_cfg import get_logger

logger = get_logger("galaxy.playtime")

PLAYTIME_QUERY = """
    SELECT releaseKey, minutesInGame
    FROM GameTimes
    WHERE minutesInGame IS NOT NULL AND minutesInGame > 0
"""


def _has_table(conn: sqlite3.Connection, name: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name=?", (name,)
    ).fetchone()
    return row is not None


def read_playtime_entries(db_path: Path | str) -> list[PlaytimeEntry]:
    """Read positive playtime rows. A missing GameTimes table yields ``[]``."""
    entries: list[PlaytimeEntry] = []
    try:
        conn = open_readonly(db_path)
    except sqlite3.Error as e:
        logger.error("Error reading playtime data from %s: %s", db_path, e)
        return entries

    try:
        if not _has_table(conn, "GameTimes"):
            logger.info("GameTimes table not present in %s", db_path)
            return entries
        for key, minutes in conn.execute(PLAYTIME_QUERY):
            try:
                entries.append(PlaytimeEntry(str(key), int(minutes)))
            except (TypeError, ValueError) as e:
                logger.debug("Error reading playtime row %r: %s", key, e)
    except sqlite3.Error as e:
        logger.warning("GameTimes table not readable in %s: %s", db_path, e)
    finally:
        conn.close()

    logger.info("Read %d playtime entries from %s", len(entries), db_path)
    return entries


def read_playtime(db_path: Path | str) -> dict[str, int]:
    return {entry.raw_key: entry.minutes for entry in read_playtime_entries(db_path)}


def statistics_key(
    platform: Platform,
    product_id: str,
    prefixes: Mapping[Platform, str] = config.PLAYTIME_KEY_PREFIXES,
) -> str:
    """Re-key a foreign product id in the statistics convention.

    A product id that still carries one of the platform's release key prefixes
    has it replaced rather than doubled.
    """
    base = product_id
    for prefix, owner in config.RELEASE_KEY_PREFIXES:
        if owner is platform and base.lower().startswith(prefix):
            base = base[len(prefix):]
            break
    stats_prefix = prefixes.get(platform, platform.slug)
    return f"{stats_prefix}_{base}"


def match_playtime(
    game: NormalizedGame,
    playtimes: Mapping[str, int],
    prefixes: Mapping[Platform, str] = config.PLAYTIME_KEY_PREFIXES,
) -> Optional[tuple[str, int]]:
    """Return ``(matched key, minutes)`` or ``None``."""
    if game.product_id in playtimes:
        return game.product_id, playtimes[game.product_id]

    if game.platform is not NATIVE_PLATFORM:
        alt_key = statistics_key(game.platform, game.product_id, prefixes)
        if alt_key in playtimes:
            return alt_key, playtimes[alt_key]

    return None


def correlate(
    games: Iterable[NormalizedGame],
    playtimes: Mapping[str, int],
    prefixes: Mapping[Platform, str] = config.PLAYTIME_KEY_PREFIXES,
) -> int:
    """Set ``playtime_minutes`` on every game with a statistics row.

    Games without a match are left untouched. Returns the number matched.
    """
    matched = 0
    for game in games:
        hit = match_playtime(game, playtimes, prefixes)
        if hit is None:
            logger.debug("No playtime found for %s (%s)", game.title, game.id)
            continue
        key, minutes = hit
        game.playtime_minutes = minutes
        matched += 1
        logger.debug("Set playtime for %s: %d minutes (key: %s)", game.title, minutes, key)
    return matched
