"""Centralized logging helpers for shelfsync.

Loggers are created through :func:`get_logger` so handlers are attached once,
and every sync pass tags its records with a correlation id so the lines of one
user's pass can be followed across the locator, extractor and merge engine.
"""

from __future__ import annotations

import contextvars
import functools
import io
import json
import logging
import os
import re
import sys
import time
import uuid
from pathlib import Path
from typing import Optional


_STD_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def get_logger(
    name: str = "shelfsync",
    base_dir: Optional[Path] = None,
    level: int = logging.NOTSET,
) -> logging.Logger:
    if not name.startswith("shelfsync"):
        name = f"shelfsync.{name}"
    logger = logging.getLogger(name)
    # NOTSET defers to the root level chosen by configure_logging
    if level != logging.NOTSET:
        logger.setLevel(level)

    # File handler only on request; console output comes from configure_logging
    has_file = any(isinstance(h, logging.FileHandler) for h in logger.handlers)

    if base_dir and not has_file:
        base_dir = Path(base_dir)
        try:
            base_dir.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(str(base_dir / "shelfsync.log"), encoding="utf-8")
            fh.setFormatter(logging.Formatter(_STD_FORMAT))
            logger.addHandler(fh)
        except OSError:
            logger.debug("Could not create file handler for logger at %s", base_dir)

    return logger


# Correlation ID support for tracing a sync pass across modules
_cid_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "shelfsync_correlation_id", default=None
)


def set_correlation_id(cid: str | None = None) -> str:
    """Set or create and set a correlation id for the current context.

    Returns the correlation id string.
    """
    if cid is None:
        cid = uuid.uuid4().hex
    _cid_var.set(cid)
    return cid


def get_correlation_id() -> str | None:
    return _cid_var.get()


# Record attributes copied into JSON output when a call site passes them as extra=
CONTEXT_FIELDS = ("user_id", "platform", "release_key", "db_path")


class JsonFormatter(logging.Formatter):
    """One JSON object per record, tagged with the sync correlation id.

    ``component`` is the logger name without the package prefix, and any of
    :data:`CONTEXT_FIELDS` given through ``extra=`` are carried as top-level keys.
    """

    def format(self, record: logging.LogRecord) -> str:
        component = record.name
        if component.startswith("shelfsync."):
            component = component[len("shelfsync."):]
        payload = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "component": component,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = record.__dict__.get(name)
            if value is not None:
                payload[name] = getattr(value, "value", value)
        cid = get_correlation_id()
        if cid:
            payload["correlation_id"] = cid
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


REDACTED = "***REDACTED***"
REDACT_KEYS = ("api_key", "rawg_api_key", "key")

# RAWG takes its key as a query parameter
_URL_KEY = re.compile(r"([?&]key=)[^&\s]+", re.IGNORECASE)


def redact_url_keys(text: str) -> str:
    """Mask ``key=`` query values, e.g. in a failed request's error text."""
    return _URL_KEY.sub(lambda m: m.group(1) + REDACTED, text)


def _sanitize_args(args, kwargs, redact_keys=REDACT_KEYS):
    """Make call arguments safe to log.

    API keys are redacted by mapping key and inside URLs; uploaded database
    streams and raw bytes are summarised instead of dumped.
    """
    keys = {k.lower() for k in redact_keys}

    def sanitize_obj(o):
        if isinstance(o, dict):
            return {
                k: REDACTED if str(k).lower() in keys else sanitize_obj(v)
                for k, v in o.items()
            }
        if isinstance(o, (list, tuple)):
            return type(o)(sanitize_obj(x) for x in o)
        if isinstance(o, str):
            return redact_url_keys(o)
        if isinstance(o, (bytes, bytearray)):
            return f"<{len(o)} bytes>"
        if isinstance(o, io.IOBase):
            return f"<stream {getattr(o, 'name', type(o).__name__)}>"
        return o

    return sanitize_obj(args), sanitize_obj(kwargs)


def log_call(level: int = logging.DEBUG, redact_keys: tuple[str, ...] = REDACT_KEYS):
    """Decorator that logs function entry, args (sanitized), duration and exit.

    Usage:
        @log_call()
        def foo(...):
            ...
    """

    def _decorator(func):
        @functools.wraps(func)
        def _wrapper(*args, **kwargs):
            logger = logging.getLogger(func.__module__)
            start = time.time()
            try:
                s_args, s_kwargs = _sanitize_args(args, kwargs, redact_keys)
                logger.debug(
                    "Entering %s; args=%s kwargs=%s",
                    func.__qualname__,
                    s_args,
                    s_kwargs,
                )
                result = func(*args, **kwargs)
                duration = (time.time() - start) * 1000.0
                logger.log(
                    level,
                    "Exited %s; duration_ms=%.2f; return=%s",
                    func.__qualname__,
                    duration,
                    repr(result)[:100],
                )
                return result
            except Exception:
                duration = (time.time() - start) * 1000.0
                logger.exception(
                    "Exception in %s after %.2fms",
                    func.__qualname__,
                    duration,
                )
                raise

        return _wrapper

    return _decorator


def configure_logging(env: Optional[str] = None, level: int = logging.INFO):
    """Configure the root logger.

    env: 'auto' | 'json' | 'human', or None to read SHELFSYNC_LOG_FORMAT
    (default 'auto').
    - 'auto' chooses human-readable when stdout is a TTY, otherwise JSON.
    - 'json' forces JSON output.
    - 'human' forces a readable formatter.

    Returns the root logger.
    """
    chosen = env or os.getenv("SHELFSYNC_LOG_FORMAT", "auto")
    if isinstance(chosen, str):
        chosen = chosen.lower()
    if chosen in ("json", "human"):
        mode = chosen
    else:
        try:
            mode = "human" if sys.stdout.isatty() else "json"
        except (AttributeError, ValueError):
            mode = "json"

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Add one console handler idempotently (mark by name)
    if not any(
        getattr(h, "name", None) == "shelfsync_console"
        for h in root_logger.handlers
    ):
        sh = logging.StreamHandler()
        sh.name = "shelfsync_console"
        sh.setLevel(level)
        if mode == "json":
            sh.setFormatter(JsonFormatter())
        else:
            fmt = logging.Formatter(
                "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
            sh.setFormatter(fmt)
        root_logger.addHandler(sh)

    return root_logger
