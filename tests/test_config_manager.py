import json

import pytest

from shelfsync.common.exceptions import ConfigurationError
from shelfsync.core.config_manager import ConfigManager


def test_defaults_when_file_missing(tmp_path):
    cfg = ConfigManager(tmp_path / "settings.json")
    assert cfg.get("galaxy_path") is None
    assert cfg.get("galaxy_path", "fallback") == "fallback"
    assert cfg.get("library_db")


def test_save_and_reload(tmp_path):
    path = tmp_path / "settings.json"
    cfg = ConfigManager(path)
    cfg.set("galaxy_path", "/games/GOG Galaxy")
    cfg.set("rawg_api_key", "abc")
    assert cfg.save() is True

    again = ConfigManager(path)
    assert again.get("galaxy_path") == "/games/GOG Galaxy"
    assert again.get("rawg_api_key") == "abc"


def test_stored_values_merge_over_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"log_format": "json"}), encoding="utf-8")
    cfg = ConfigManager(path)
    assert cfg.get("log_format") == "json"
    assert "library_db" in cfg.values


def test_unreadable_file_keeps_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    cfg = ConfigManager(path)
    assert cfg.values == ConfigManager.defaults()


def test_save_failure_reported(tmp_path):
    cfg = ConfigManager(tmp_path / "missing-dir" / "settings.json")
    assert cfg.save() is False


@pytest.mark.parametrize(
    "stored",
    [
        {"log_format": "xml"},
        {"galaxy_path": 42},
        {"library_db": None},
    ],
)
def test_invalid_value_raises_configuration_error(tmp_path, stored):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps(stored), encoding="utf-8")
    with pytest.raises(ConfigurationError) as exc:
        ConfigManager(path)
    assert exc.value.details["file"] == str(path)


def test_non_object_file_raises_configuration_error(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps(["json"]), encoding="utf-8")
    with pytest.raises(ConfigurationError):
        ConfigManager(path)


def test_set_validates(tmp_path):
    cfg = ConfigManager(tmp_path / "settings.json")
    cfg.set("log_format", "HUMAN")
    with pytest.raises(ConfigurationError):
        cfg.set("log_format", "loud")
    assert cfg.get("log_format") == "HUMAN"
