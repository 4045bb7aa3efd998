from datetime import datetime, timezone

import pytest

from shelfsync.core.models import Platform
from shelfsync.core.session import SourceConnection, connect_galaxy


class TestConnectGalaxy:
    def test_custom_path(self, tmp_path, make_galaxy_db):
        make_galaxy_db()
        conn = connect_galaxy("u1", f"custom-path:{tmp_path}")
        assert conn.platform is Platform.GOG
        assert conn.custom_path == str(tmp_path)
        assert conn.connected is True

    def test_uploaded_database(self, make_galaxy_db):
        db = make_galaxy_db()
        conn = connect_galaxy("u1", f"uploaded-db:{db}")
        assert conn.custom_path == str(db)

    def test_invalid_path_rejected(self, tmp_path):
        assert connect_galaxy("u1", f"custom-path:{tmp_path / 'nope'}") is None
        assert connect_galaxy("u1", "uploaded-db:") is None

    @pytest.mark.parametrize("credentials", [None, "", "   "])
    def test_empty_credentials(self, credentials):
        assert connect_galaxy("u1", credentials) is None

    def test_plain_credentials_use_default_locations(self):
        conn = connect_galaxy("u1", "local-install")
        assert conn.custom_path is None

    def test_validator_is_pluggable(self):
        seen = []
        conn = connect_galaxy("u1", "custom-path:/x", validator=lambda p: seen.append(p) or True)
        assert seen == ["/x"]
        assert conn.custom_path == "/x"


def test_connection_is_immutable_with_copies():
    conn = SourceConnection("u1", Platform.GOG)
    when = datetime(2025, 1, 1, tzinfo=timezone.utc)
    synced = conn.mark_synced(when)
    assert conn.last_synced_at is None
    assert synced.last_synced_at == when
    assert synced.disconnected().connected is False
