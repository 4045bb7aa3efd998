import io
import json
import logging
import sqlite3

import pytest

from shelfsync.amazon import extractor as amazon_extractor
from shelfsync.amazon.extractor import AmazonExtractor, AmazonLayout
from shelfsync.amazon.locator import (
    is_amazon_installed,
    is_valid_amazon_database,
    locate_databases,
)
from shelfsync.amazon.reader import AmazonSource
from shelfsync.common.exceptions import ExtractionError, SourceUnavailableError
from shelfsync.common.types import SourceStatus
from shelfsync.core.models import Platform
from shelfsync.core.session import SourceConnection, connect_amazon
from shelfsync.galaxy.locator import stage_uploaded_database

CONTROL = {
    "ProductId": {"Id": "8a1b-control"},
    "ProductTitle": "Control",
    "ProductDescription": "A corruption has invaded the Federal Bureau of Control.",
    "ProductIconUrl": "https://m.media-amazon.com/control.png",
    "ProductPublisher": "505 Games",
    "Developers": ["Remedy Entertainment", "Other"],
    "Genres": ["Action", "Adventure", "action"],
    "ReleaseDate": "2019-08-27T00:00:00Z",
}

FAR_CRY = {
    "ProductIdStr": "77c2-farcry",
    "ProductTitle": "Far Cry 3",
    "ProductPublisher": "Ubisoft",
    "GenresJson": '["Shooter"]',
    "DevelopersJson": '["Ubisoft Montreal"]',
    "ReleaseDate": "2012-11-29",
}


def connection(path=None, connected=True):
    return SourceConnection("u1", Platform.AMAZON_GAMES, connected=connected, custom_path=path)


class TestLocator:
    def test_directory_yields_details_first(self, make_amazon_db, amazon_dir):
        make_amazon_db("GameProductInfo", [FAR_CRY])
        make_amazon_db("ProductDetails", [CONTROL])

        found = locate_databases(str(amazon_dir), known_dirs=())
        assert [p.name for p in found] == ["ProductDetails.sqlite", "GameProductInfo.sqlite"]

    def test_single_file_path(self, make_amazon_db):
        db = make_amazon_db("GameProductInfo", [FAR_CRY])
        assert locate_databases(str(db), known_dirs=()) == [db]

    def test_user_path_wins_over_known_dirs(self, make_amazon_db, amazon_dir, tmp_path):
        make_amazon_db("ProductDetails", [CONTROL])
        assert locate_databases(str(tmp_path / "nope"), known_dirs=(str(amazon_dir),)) == []

    def test_known_dirs_searched(self, make_amazon_db, amazon_dir, tmp_path):
        make_amazon_db("ProductDetails", [CONTROL])
        found = locate_databases(None, known_dirs=(str(tmp_path / "missing"), str(amazon_dir)))
        assert [p.name for p in found] == ["ProductDetails.sqlite"]
        assert is_amazon_installed((str(amazon_dir),)) is True
        assert is_amazon_installed(()) is False

    def test_validity(self, make_amazon_db, make_galaxy_db, tmp_path):
        assert is_valid_amazon_database(str(make_amazon_db("ProductDetails")))
        assert is_valid_amazon_database(str(make_amazon_db("GameInstallInfo")))
        assert not is_valid_amazon_database(str(make_galaxy_db()))
        assert not is_valid_amazon_database("")
        junk = tmp_path / "junk.sqlite"
        junk.write_bytes(b"not sqlite" * 20)
        assert not is_valid_amazon_database(str(junk))

    def test_stage_upload(self, make_amazon_db, make_galaxy_db, tmp_path):
        db = make_amazon_db("ProductDetails", [CONTROL])
        staged = stage_uploaded_database(
            io.BytesIO(db.read_bytes()),
            tmp_path / "uploads",
            Platform.AMAZON_GAMES,
            is_valid_amazon_database,
        )
        assert staged.name.startswith("amazongames-upload-")

        galaxy = make_galaxy_db()
        with pytest.raises(SourceUnavailableError) as exc:
            stage_uploaded_database(
                io.BytesIO(galaxy.read_bytes()),
                tmp_path / "uploads",
                Platform.AMAZON_GAMES,
                is_valid_amazon_database,
            )
        assert exc.value.source == "AmazonGames"
        assert sorted(p.name for p in (tmp_path / "uploads").iterdir()) == [staged.name]


class TestExtractor:
    def test_product_details_documents(self, make_amazon_db):
        db = make_amazon_db(
            "ProductDetails",
            [CONTROL, ("sync.token", json.dumps({"ProductTitle": "not a product"}))],
        )
        extractor = AmazonExtractor()
        games = list(extractor.extract(db))

        assert extractor.layout is AmazonLayout.PRODUCT_DETAILS
        assert len(games) == 1
        control = games[0]
        assert control.id == "amazongames-8a1b-control"
        assert control.platform is Platform.AMAZON_GAMES
        assert control.developer == "Remedy Entertainment"
        assert control.publisher == "505 Games"
        assert control.genres == ["Action", "Adventure"]
        assert control.release_date.year == 2019
        assert control.cover_image_url == "https://m.media-amazon.com/control.png"

    def test_product_info_rows(self, make_amazon_db):
        db = make_amazon_db(
            "GameProductInfo",
            [FAR_CRY, {"ProductIdStr": "x", "GenresJson": "[broken", "ProductTitle": "Odd"}],
        )
        extractor = AmazonExtractor()
        games = {g.title: g for g in extractor.extract(db)}

        assert extractor.layout is AmazonLayout.PRODUCT_INFO
        assert games["Far Cry 3"].developer == "Ubisoft Montreal"
        assert games["Far Cry 3"].genres == ["Shooter"]
        assert games["Odd"].genres == []

    def test_install_info_reads_installed_only(self, make_amazon_db):
        db = make_amazon_db(
            "GameInstallInfo",
            [
                {"Id": "a1", "ProductTitle": "Installed Game", "Installed": 1},
                {"Id": "a2", "ProductTitle": "Removed Game", "Installed": 0},
            ],
        )
        extractor = AmazonExtractor()
        games = list(extractor.extract(db))

        assert extractor.layout is AmazonLayout.INSTALL_INFO
        assert [(g.title, g.product_id) for g in games] == [("Installed Game", "a1")]

    def test_rows_missing_title_or_id_are_skipped(self, make_amazon_db, caplog):
        db = make_amazon_db(
            "ProductDetails",
            [
                CONTROL,
                {"ProductId": {"Id": "no-title"}},
                ("amzn1.adg.product.bad", "{not json"),
            ],
        )
        caplog.set_level(logging.DEBUG)
        extractor = AmazonExtractor()
        games = list(extractor.extract(db))

        assert [g.title for g in games] == ["Control"]
        assert (extractor.rows_read, extractor.rows_skipped) == (3, 2)
        assert sum(r.getMessage().startswith("Skipping row") for r in caplog.records) == 2

    def test_unknown_layout_raises(self, make_galaxy_db):
        with pytest.raises(ExtractionError) as exc:
            list(AmazonExtractor().extract(make_galaxy_db()))
        assert exc.value.source == "AmazonGames"

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ExtractionError):
            list(AmazonExtractor().extract(tmp_path / "missing.sqlite"))


class TestFetch:
    def test_merges_both_databases_without_duplicates(self, make_amazon_db, amazon_dir):
        make_amazon_db("ProductDetails", [CONTROL])
        make_amazon_db(
            "GameProductInfo",
            [FAR_CRY, {"ProductIdStr": "8a1b-control", "ProductTitle": "Control (owned)"}],
        )
        result = AmazonSource(known_dirs=()).fetch(connection(str(amazon_dir)))

        assert result.status is SourceStatus.OK
        by_id = {g.id: g for g in result.games}
        assert set(by_id) == {"amazongames-8a1b-control", "amazongames-77c2-farcry"}
        assert by_id["amazongames-8a1b-control"].title == "Control"
        assert result.db_path.endswith("ProductDetails.sqlite")

    def test_one_unreadable_file_keeps_the_other(self, make_amazon_db, amazon_dir):
        make_amazon_db("GameProductInfo", [FAR_CRY])
        (amazon_dir / "ProductDetails.sqlite").write_bytes(b"garbage" * 50)

        result = AmazonSource(known_dirs=()).fetch(connection(str(amazon_dir)))

        assert result.status is SourceStatus.OK
        assert [g.title for g in result.games] == ["Far Cry 3"]

    def test_every_file_unreadable_is_failed(self, make_amazon_db, amazon_dir, monkeypatch):
        make_amazon_db("ProductDetails", [CONTROL])

        def refuse(path, timeout=None):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(amazon_extractor, "open_readonly", refuse)
        result = AmazonSource(known_dirs=()).fetch(connection(str(amazon_dir)))

        assert result.status is SourceStatus.FAILED
        assert "database is locked" in result.error_message
        assert result.games == []
        assert result.used_fallback is False

    def test_missing_client_is_unavailable(self, tmp_path):
        result = AmazonSource(known_dirs=()).fetch(connection(str(tmp_path / "nowhere")))
        assert result.status is SourceStatus.UNAVAILABLE
        assert result.games == []

    def test_disconnected(self):
        source = AmazonSource(known_dirs=())
        assert source.fetch(None).status is SourceStatus.DISCONNECTED
        assert source.fetch(connection(connected=False)).status is SourceStatus.DISCONNECTED


class TestConnectAmazon:
    def test_custom_path(self, make_amazon_db, amazon_dir):
        make_amazon_db("ProductDetails", [CONTROL])
        conn = connect_amazon("u1", f"custom-path:{amazon_dir}")
        assert conn.platform is Platform.AMAZON_GAMES
        assert conn.custom_path == str(amazon_dir)

    def test_galaxy_database_rejected(self, make_galaxy_db):
        assert connect_amazon("u1", f"uploaded-db:{make_galaxy_db()}") is None

    def test_plain_credentials(self):
        assert connect_amazon("u1", "local").custom_path is None
        assert connect_amazon("u1", " ") is None
