from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, List, Optional

from shelfsync import config
from shelfsync.common.exceptions import EntryNotFoundError, PersistenceError
from shelfsync.core.models import PersistedGame, Platform, unique_genres
from shelfsync.core.session import SourceConnection
from shelfsync.logging_cfg import get_logger

if TYPE_CHECKING:
    from shelfsync.core.merge import MergeResult

GENRE_SEPARATOR = ", "

_GAME_COLUMNS = (
    "user_id, platform, product_id, title, cover_image_url, playtime_minutes, "
    "last_played, is_manually_added, added_at, updated_at, description, "
    "release_date, developer, publisher, genres"
)


def _dt_out(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _dt_in(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def split_game_id(game_id: str) -> tuple[Platform, str]:
    """Split ``epicgames-abc123`` into its platform and product id."""
    slug, sep, product_id = (game_id or "").partition("-")
    if not sep or not product_id:
        raise EntryNotFoundError(game_id)
    for platform in Platform:
        if platform.slug == slug.lower():
            return platform, product_id
    raise EntryNotFoundError(game_id)


class LibraryDB:
    """The user's stored library: one row per (user, platform, product id)."""

    def __init__(self, db_path: Path | str = Path(config.LIBRARY_DB_DEFAULT)):
        self.db_path = Path(db_path)
        self.logger = get_logger("library")
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        try:
            # commits on success, rolls back on error
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_db(self):
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS user_games (
                    user_id TEXT NOT NULL,
                    platform TEXT NOT NULL,
                    product_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    cover_image_url TEXT,
                    playtime_minutes INTEGER,
                    last_played TEXT,
                    is_manually_added INTEGER NOT NULL DEFAULT 0,
                    added_at TEXT,
                    updated_at TEXT,
                    description TEXT,
                    release_date TEXT,
                    developer TEXT,
                    publisher TEXT,
                    genres TEXT,
                    PRIMARY KEY (user_id, platform, product_id)
                )
            """)
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS platform_connections (
                    user_id TEXT NOT NULL,
                    platform TEXT NOT NULL,
                    connected INTEGER NOT NULL DEFAULT 1,
                    custom_path TEXT,
                    last_synced_at TEXT,
                    PRIMARY KEY (user_id, platform)
                )
                """
            )

    # --- games -------------------------------------------------------------

    @staticmethod
    def _row_to_game(row: tuple) -> PersistedGame:
        genres = (row[14] or "").split(",")
        return PersistedGame(
            user_id=row[0],
            platform=Platform(row[1]),
            product_id=row[2],
            title=row[3],
            cover_image_url=row[4],
            playtime_minutes=row[5],
            last_played=_dt_in(row[6]),
            is_manually_added=bool(row[7]),
            added_at=_dt_in(row[8]),
            updated_at=_dt_in(row[9]),
            description=row[10],
            release_date=_dt_in(row[11]),
            developer=row[12],
            publisher=row[13],
            genres=unique_genres(genres),
        )

    @staticmethod
    def _game_params(game: PersistedGame) -> tuple:
        return (
            game.user_id,
            game.platform.value,
            game.product_id,
            game.title,
            game.cover_image_url,
            game.playtime_minutes,
            _dt_out(game.last_played),
            int(game.is_manually_added),
            _dt_out(game.added_at),
            _dt_out(game.updated_at),
            game.description,
            _dt_out(game.release_date),
            game.developer,
            game.publisher,
            GENRE_SEPARATOR.join(game.genres) if game.genres else None,
        )

    def _insert(self, conn: sqlite3.Connection, game: PersistedGame):
        conn.execute(
            f"INSERT INTO user_games ({_GAME_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            self._game_params(game),
        )

    def _upsert(self, conn: sqlite3.Connection, game: PersistedGame):
        conn.execute(
            f"INSERT OR REPLACE INTO user_games ({_GAME_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            self._game_params(game),
        )

    def get_game(
        self, user_id: str, platform: Platform, product_id: str
    ) -> Optional[PersistedGame]:
        with self._connect() as conn:
            cursor = conn.execute(
                f"SELECT {_GAME_COLUMNS} FROM user_games "
                "WHERE user_id = ? AND platform = ? AND product_id = ?",
                (user_id, platform.value, product_id),
            )
            row = cursor.fetchone()
            if row:
                return self._row_to_game(row)
        return None

    def get_game_by_id(self, user_id: str, game_id: str) -> Optional[PersistedGame]:
        try:
            platform, product_id = split_game_id(game_id)
        except EntryNotFoundError:
            return None
        return self.get_game(user_id, platform, product_id)

    def require_game(self, user_id: str, game_id: str) -> PersistedGame:
        game = self.get_game_by_id(user_id, game_id)
        if game is None:
            raise EntryNotFoundError(game_id)
        return game

    def list_games(
        self, user_id: str, platform: Optional[Platform] = None
    ) -> List[PersistedGame]:
        """Most recently played (or added) first."""
        query = f"SELECT {_GAME_COLUMNS} FROM user_games WHERE user_id = ?"
        params: list = [user_id]
        if platform is not None:
            query += " AND platform = ?"
            params.append(platform.value)
        query += " ORDER BY COALESCE(last_played, added_at) DESC, title ASC"
        with self._connect() as conn:
            cursor = conn.execute(query, params)
            return [self._row_to_game(row) for row in cursor.fetchall()]

    def apply(self, result: "MergeResult") -> None:
        """Write a merge result in a single transaction.

        Raises:
            PersistenceError: on any sqlite failure; nothing is written.
        """
        if not result.inserts and not result.updates:
            return
        try:
            with self._connect() as conn:
                for game in result.inserts:
                    self._insert(conn, game)
                for game in result.updates:
                    self._upsert(conn, game)
        except sqlite3.Error as e:
            raise PersistenceError(
                "Failed to persist library changes",
                {
                    "inserts": len(result.inserts),
                    "updates": len(result.updates),
                    "reason": str(e),
                },
            ) from e
        self.logger.info(
            "Persisted %d new and %d updated games",
            len(result.inserts),
            len(result.updates),
        )

    def update_game(self, game: PersistedGame) -> None:
        try:
            with self._connect() as conn:
                self._upsert(conn, game)
        except sqlite3.Error as e:
            raise PersistenceError(
                f"Failed to save {game.id}", {"reason": str(e)}
            ) from e

    def remove_manual_game(self, user_id: str, game_id: str) -> bool:
        """Delete a manually added game. Synced games are refused (``False``).

        Raises:
            EntryNotFoundError: if the user has no such game.
        """
        game = self.require_game(user_id, game_id)
        if not game.is_manually_added:
            self.logger.warning("Refusing to remove synced game %s", game_id)
            return False
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM user_games "
                "WHERE user_id = ? AND platform = ? AND product_id = ?",
                (user_id, game.platform.value, game.product_id),
            )
        self.logger.info("Removed manual game %s for user %s", game_id, user_id)
        return True

    def get_total_count(self, user_id: str) -> int:
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT COUNT(*) FROM user_games WHERE user_id = ?", (user_id,)
            )
            return int(cursor.fetchone()[0] or 0)

    def get_count_by_platform(self, user_id: str) -> dict[str, int]:
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT platform, COUNT(*) FROM user_games "
                "WHERE user_id = ? GROUP BY platform",
                (user_id,),
            )
            return dict(cursor.fetchall())

    # --- connections -------------------------------------------------------

    @staticmethod
    def _row_to_connection(row: tuple) -> SourceConnection:
        return SourceConnection(
            user_id=row[0],
            platform=Platform(row[1]),
            connected=bool(row[2]),
            custom_path=row[3],
            last_synced_at=_dt_in(row[4]),
        )

    def get_connection(
        self, user_id: str, platform: Platform
    ) -> Optional[SourceConnection]:
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT user_id, platform, connected, custom_path, last_synced_at "
                "FROM platform_connections WHERE user_id = ? AND platform = ?",
                (user_id, platform.value),
            )
            row = cursor.fetchone()
            if row:
                return self._row_to_connection(row)
        return None

    def save_connection(self, connection: SourceConnection) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO platform_connections
                (user_id, platform, connected, custom_path, last_synced_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    connection.user_id,
                    connection.platform.value,
                    int(connection.connected),
                    connection.custom_path,
                    _dt_out(connection.last_synced_at),
                ),
            )

    def remove_connection(self, user_id: str, platform: Platform) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM platform_connections WHERE user_id = ? AND platform = ?",
                (user_id, platform.value),
            )
            return cursor.rowcount > 0

    def list_connections(self, user_id: str) -> List[SourceConnection]:
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT user_id, platform, connected, custom_path, last_synced_at "
                "FROM platform_connections WHERE user_id = ? ORDER BY platform",
                (user_id,),
            )
            return [self._row_to_connection(row) for row in cursor.fetchall()]
