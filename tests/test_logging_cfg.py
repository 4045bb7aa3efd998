import io
import json
import logging

import pytest

from shelfsync.core.models import Platform
from shelfsync.logging_cfg import (
    JsonFormatter,
    _sanitize_args,
    configure_logging,
    get_correlation_id,
    get_logger,
    log_call,
    redact_url_keys,
    set_correlation_id,
)


@pytest.fixture
def clean_root():
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    root.handlers = [h for h in before if h.name != "shelfsync_console"]
    yield root
    root.handlers = before
    root.setLevel(level)


def test_get_logger_prefixes_name():
    assert get_logger("core.sync").name == "shelfsync.core.sync"
    assert get_logger("shelfsync.library").name == "shelfsync.library"


def test_get_logger_leaves_level_to_root():
    logger = get_logger("tests.unpinned")
    assert logger.level == logging.NOTSET
    assert get_logger("tests.pinned", level=logging.WARNING).level == logging.WARNING


def test_get_logger_file_handler(tmp_path):
    logger = get_logger("tests.file_handler", base_dir=tmp_path, level=logging.INFO)
    try:
        logger.info("hello")
        for handler in logger.handlers:
            handler.flush()
        assert "hello" in (tmp_path / "shelfsync.log").read_text(encoding="utf-8")

        get_logger("tests.file_handler", base_dir=tmp_path)
        assert sum(isinstance(h, logging.FileHandler) for h in logger.handlers) == 1
    finally:
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)


def test_correlation_id():
    cid = set_correlation_id()
    assert get_correlation_id() == cid
    assert set_correlation_id("abc") == "abc"
    assert get_correlation_id() == "abc"


def test_json_formatter_includes_correlation_id():
    set_correlation_id("sync-1")
    record = logging.LogRecord("shelfsync.x", logging.INFO, __file__, 1, "read %d rows", (3,), None)
    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "read 3 rows"
    assert payload["level"] == "INFO"
    assert payload["correlation_id"] == "sync-1"


def test_json_formatter_carries_sync_context():
    logger = logging.getLogger("shelfsync.core.sync")
    record = logger.makeRecord(
        logger.name,
        logging.INFO,
        __file__,
        1,
        "%s: %d games",
        ("AmazonGames", 2),
        None,
        extra={"user_id": "u1", "platform": Platform.AMAZON_GAMES, "db_path": None},
    )
    payload = json.loads(JsonFormatter().format(record))

    assert payload["component"] == "core.sync"
    assert payload["user_id"] == "u1"
    assert payload["platform"] == "AmazonGames"
    assert "db_path" not in payload


def test_sanitize_args_redacts_keys():
    args, kwargs = _sanitize_args(({"api_key": "s3cret", "title": "Hades"},), {"api_key": "x"})
    assert args[0]["api_key"] == "***REDACTED***"
    assert args[0]["title"] == "Hades"
    assert kwargs["api_key"] == "***REDACTED***"


def test_sanitize_args_masks_url_keys_and_uploads():
    upload = io.BytesIO(b"SQLite format 3\x00" * 10)
    args, kwargs = _sanitize_args(
        ("https://api.rawg.io/api/games?search=Hades&key=s3cret", upload),
        {"payload": b"\x00\x01\x02"},
    )
    assert args[0] == "https://api.rawg.io/api/games?search=Hades&key=***REDACTED***"
    assert args[1] == "<stream BytesIO>"
    assert kwargs["payload"] == "<3 bytes>"


def test_redact_url_keys_leaves_other_text():
    assert redact_url_keys("no secrets here") == "no secrets here"
    assert redact_url_keys("url?key=abc&page=2") == "url?key=***REDACTED***&page=2"


def test_log_call_passes_result_and_errors(caplog):
    @log_call(level=logging.INFO)
    def add(a, b):
        return a + b

    @log_call()
    def fail():
        raise ValueError("nope")

    with caplog.at_level(logging.DEBUG):
        assert add(1, 2) == 3
        with pytest.raises(ValueError):
            fail()

    assert any("Exited" in r.getMessage() for r in caplog.records)
    assert any("Exception in" in r.getMessage() for r in caplog.records)


def test_configure_logging_is_idempotent(clean_root):
    configure_logging("json", level=logging.WARNING)
    configure_logging("human")
    named = [h for h in clean_root.handlers if h.name == "shelfsync_console"]
    assert len(named) == 1
    assert isinstance(named[0].formatter, JsonFormatter)


def test_configure_logging_reads_environment(clean_root, monkeypatch):
    monkeypatch.setenv("SHELFSYNC_LOG_FORMAT", "human")
    configure_logging()
    handler = next(h for h in clean_root.handlers if h.name == "shelfsync_console")
    assert not isinstance(handler.formatter, JsonFormatter)
