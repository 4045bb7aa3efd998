"""Shared fixtures: throwaway GOG Galaxy and Amazon Games databases, library stores."""

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

import pytest

from shelfsync.library import LibraryDB

FIXED_NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)

GALAXY_SCHEMA = """
    CREATE TABLE LibraryReleases (
        releaseKey TEXT,
        userId INTEGER
    );
    CREATE TABLE GamePieces (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        releaseKey TEXT,
        gamePieceTypeId INTEGER,
        userId INTEGER,
        value TEXT
    );
"""

GAME_TIMES_SCHEMA = """
    CREATE TABLE GameTimes (
        userId INTEGER,
        releaseKey TEXT,
        minutesInGame INTEGER
    );
"""

TITLE, METADATA, IMAGES = 45, 42, 10


def _encode(value):
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


def build_galaxy_db(path: Path, releases=(), playtimes=None, game_times=True) -> Path:
    """Write a minimal Galaxy database.

    ``releases`` holds ``(release_key, title, metadata, images)`` tuples; trailing
    items may be omitted and dict/list values are stored as JSON.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    try:
        conn.executescript(GALAXY_SCHEMA)
        if game_times:
            conn.executescript(GAME_TIMES_SCHEMA)
        for release in releases:
            key, title, metadata, images = (tuple(release) + (None, None, None))[:4]
            conn.execute(
                "INSERT INTO LibraryReleases (releaseKey, userId) VALUES (?, 1)", (key,)
            )
            for type_id, value in ((TITLE, title), (METADATA, metadata), (IMAGES, images)):
                if value is not None:
                    conn.execute(
                        "INSERT INTO GamePieces (releaseKey, gamePieceTypeId, userId, value) "
                        "VALUES (?, ?, 1, ?)",
                        (key, type_id, _encode(value)),
                    )
        for key, minutes in (playtimes or {}).items():
            conn.execute(
                "INSERT INTO GameTimes (userId, releaseKey, minutesInGame) VALUES (1, ?, ?)",
                (key, minutes),
            )
        conn.commit()
    finally:
        conn.close()
    return path


@pytest.fixture
def make_galaxy_db(tmp_path):
    """Factory writing ``<tmp>/storage/galaxy-2.0.db``, so ``tmp_path`` works as install dir."""

    def _make(releases=(), playtimes=None, game_times=True, name="galaxy-2.0.db"):
        return build_galaxy_db(tmp_path / "storage" / name, releases, playtimes, game_times)

    return _make


@pytest.fixture
def library(tmp_path):
    return LibraryDB(tmp_path / "library.db")


@pytest.fixture
def fixed_now():
    return FIXED_NOW


AMAZON_SCHEMAS = {
    "ProductDetails": "CREATE TABLE game_product_info (key TEXT PRIMARY KEY, value BLOB);",
    "GameProductInfo": """
        CREATE TABLE DbSet (
            Id TEXT, ProductIdStr TEXT, ProductTitle TEXT, ProductDescription TEXT,
            ProductIconUrl TEXT, ProductPublisher TEXT, GenresJson TEXT,
            DevelopersJson TEXT, ReleaseDate TEXT
        );
    """,
    "GameInstallInfo": """
        CREATE TABLE DbSet (
            Id TEXT, ProductTitle TEXT, InstallDirectory TEXT, Installed INTEGER
        );
    """,
}


def build_amazon_db(path: Path, layout: str, rows=()) -> Path:
    """Write one Amazon Games database.

    ``ProductDetails`` rows are product documents (dicts) stored as JSON under
    ``amzn1.adg.product.<ProductId.Id>``, or ``(key, value)`` pairs stored as
    given; the ``DbSet`` layouts take dicts of column values.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    try:
        conn.executescript(AMAZON_SCHEMAS[layout])
        for row in rows:
            if layout == "ProductDetails":
                if isinstance(row, tuple):
                    key, value = row
                else:
                    key = "amzn1.adg.product." + str((row.get("ProductId") or {}).get("Id"))
                    value = json.dumps(row)
                conn.execute("INSERT INTO game_product_info (key, value) VALUES (?, ?)", (key, value))
            else:
                columns = ", ".join(row)
                marks = ", ".join("?" for _ in row)
                conn.execute(
                    f"INSERT INTO DbSet ({columns}) VALUES ({marks})",
                    [_encode(v) for v in row.values()],
                )
        conn.commit()
    finally:
        conn.close()
    return path


@pytest.fixture
def amazon_dir(tmp_path):
    return tmp_path / "amazon"


@pytest.fixture
def make_amazon_db(amazon_dir):
    """Factory writing ``<tmp>/amazon/<layout>.sqlite`` unless ``name`` is given."""

    def _make(layout, rows=(), name=None):
        return build_amazon_db(amazon_dir / (name or f"{layout}.sqlite"), layout, rows)

    return _make
