"""Tests for the custom exception hierarchy."""

import sqlite3

import pytest

from shelfsync.common.exceptions import (
    ConfigurationError,
    DatabaseError,
    EntryNotFoundError,
    ExtractionError,
    ImportFormatError,
    MetadataServiceError,
    NetworkError,
    PersistenceError,
    RecordParseError,
    ShelfSyncError,
    SourceError,
    SourceUnavailableError,
    format_exception_chain,
)


class TestBaseException:
    def test_basic_creation(self):
        exc = ShelfSyncError("test error")
        assert str(exc) == "test error"
        assert exc.message == "test error"
        assert exc.details == {}

    def test_with_details(self):
        exc = ShelfSyncError("test error", {"key": "value", "count": 42})
        assert "key=value" in str(exc)
        assert "count=42" in str(exc)

    def test_inheritance(self):
        exc = ConfigurationError("config error")
        assert isinstance(exc, ShelfSyncError)
        assert isinstance(exc, Exception)


class TestSourceErrors:
    def test_unavailable(self):
        exc = SourceUnavailableError("GOG", "/x/galaxy-2.0.db", "file missing")
        assert isinstance(exc, SourceError)
        assert exc.path == "/x/galaxy-2.0.db"
        assert "file missing" in str(exc)
        assert "source=GOG" in str(exc)

    def test_extraction(self):
        exc = ExtractionError("GOG", "/x/galaxy-2.0.db", "no such table: GamePieces")
        assert exc.source == "GOG"
        assert "no such table" in str(exc)

    def test_record_parse(self):
        exc = RecordParseError("GOG", "gog_1", "bad blob")
        assert exc.release_key == "gog_1"
        assert "release_key=gog_1" in str(exc)


class TestDatabaseErrors:
    def test_entry_not_found(self):
        exc = EntryNotFoundError("gog-gog_1")
        assert isinstance(exc, DatabaseError)
        assert "gog-gog_1" in str(exc)
        assert exc.details["table"] == "user_games"

    def test_persistence(self):
        assert issubclass(PersistenceError, DatabaseError)


def test_import_format():
    exc = ImportFormatError("csv", "no rows")
    assert exc.format == "csv"
    assert str(exc).startswith("Invalid CSV format.")


def test_metadata_service():
    exc = MetadataServiceError("RAWG", "timeout")
    assert isinstance(exc, NetworkError)
    assert "RAWG" in str(exc)


class TestFormatExceptionChain:
    def test_chain(self):
        try:
            try:
                raise sqlite3.OperationalError("database is locked")
            except sqlite3.OperationalError as e:
                raise ExtractionError("GOG", "/x.db", "query failed") from e
        except ExtractionError as exc:
            chain = format_exception_chain(exc)

        assert "Extraction failed for /x.db" in chain
        assert "OperationalError: database is locked" in chain
        assert " -> " in chain

    def test_with_traceback(self):
        with pytest.raises(PersistenceError) as info:
            raise PersistenceError("write failed")
        assert "Traceback" in format_exception_chain(info.value, include_traceback=True)
