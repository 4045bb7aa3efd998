from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from shelfsync import config
from shelfsync.common.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

LOG_FORMATS = ("auto", "json", "human")
PATH_KEYS = ("library_db", "galaxy_path", "amazon_path")


class ConfigManager:
    """Persists user settings as JSON, merged over the defaults.

    A file that is not valid JSON is ignored with a warning; a file that parses
    but holds a bad value raises :class:`ConfigurationError`.
    """

    def __init__(self, config_file: Path | str = config.SETTINGS_FILE_DEFAULT):
        self.config_path = Path(config_file)
        self.values: dict[str, Any] = {}
        self.load()

    @staticmethod
    def defaults() -> dict[str, Any]:
        return {
            "library_db": config.LIBRARY_DB_DEFAULT,
            "galaxy_path": None,
            "amazon_path": None,
            "rawg_api_key": config.RAWG_API_KEY or None,
            # None defers to SHELFSYNC_LOG_FORMAT
            "log_format": None,
        }

    def _check(self, key: str, value: Any) -> None:
        if value is None:
            if key == "library_db":
                raise ConfigurationError(
                    "library_db must not be empty", {"file": str(self.config_path)}
                )
            return
        if key == "log_format" and str(value).lower() not in LOG_FORMATS:
            raise ConfigurationError(
                f"Invalid log_format {value!r}, expected one of {', '.join(LOG_FORMATS)}",
                {"file": str(self.config_path)},
            )
        if (key in PATH_KEYS or key == "rawg_api_key") and not isinstance(value, str):
            raise ConfigurationError(
                f"Setting {key} must be a string", {"file": str(self.config_path)}
            )

    def load(self) -> None:
        """Load settings from disk; an unreadable file leaves the defaults.

        Raises:
            ConfigurationError: if the file is not a JSON object or holds an
                invalid value.
        """
        self.values = self.defaults()

        if self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    stored = json.load(f)
            except (OSError, ValueError) as e:
                logger.warning("Ignoring unreadable settings file %s: %s", self.config_path, e)
                return
            if not isinstance(stored, dict):
                raise ConfigurationError(
                    "Settings file must hold a JSON object", {"file": str(self.config_path)}
                )
            for key, value in stored.items():
                self._check(key, value)
            self.values.update(stored)

    def save(self) -> bool:
        try:
            with open(self.config_path, "w", encoding="utf-8") as f:
                json.dump(self.values, f, indent=4, ensure_ascii=False)
            return True
        except OSError as e:
            logger.error("Could not save settings to %s: %s", self.config_path, e)
            return False

    def get(self, key: str, default: Any = None) -> Any:
        value = self.values.get(key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        """Raises :class:`ConfigurationError` for an invalid value."""
        self._check(key, value)
        self.values[key] = value
