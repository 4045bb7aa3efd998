from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Optional

from shelfsync.amazon.locator import is_valid_amazon_database
from shelfsync.core.models import NATIVE_PLATFORM, Platform
from shelfsync.galaxy.locator import is_valid_galaxy_database

logger = logging.getLogger(__name__)

UPLOADED_DB_PREFIX = "uploaded-db:"
CUSTOM_PATH_PREFIX = "custom-path:"


@dataclass(frozen=True)
class SourceConnection:
    """A user's link to one storefront source.

    Passed explicitly into every sync run; persisted by the library store.
    """

    user_id: str
    platform: Platform
    connected: bool = True
    custom_path: Optional[str] = None
    last_synced_at: Optional[datetime] = None

    def mark_synced(self, when: datetime) -> "SourceConnection":
        return replace(self, last_synced_at=when)

    def disconnected(self) -> "SourceConnection":
        return replace(self, connected=False)


def connect_source(
    user_id: str,
    platform: Platform,
    credentials: Optional[str],
    validator: Callable[[str], bool],
) -> Optional[SourceConnection]:
    """Build a connection from the credential string a client submits.

    ``uploaded-db:<path>`` and ``custom-path:<path>`` are validated and stored
    as the custom path; any other non-empty string connects with the known
    install locations. Returns ``None`` when the request is rejected.
    """
    if not credentials or not credentials.strip():
        logger.warning("Empty %s credentials for user %s", platform.value, user_id)
        return None

    for prefix, label in (
        (UPLOADED_DB_PREFIX, "uploaded database"),
        (CUSTOM_PATH_PREFIX, "custom path"),
    ):
        if credentials.startswith(prefix):
            path = credentials[len(prefix):].strip()
            if not validator(path):
                logger.warning(
                    "Invalid %s %s for user %s: %s", platform.value, label, user_id, path
                )
                return None
            logger.info("Connected %s account with %s for user %s", platform.value, label, user_id)
            return SourceConnection(user_id, platform, custom_path=path)

    logger.info("Connected %s account for user %s", platform.value, user_id)
    return SourceConnection(user_id, platform)


def connect_galaxy(
    user_id: str,
    credentials: Optional[str],
    validator: Callable[[str], bool] = is_valid_galaxy_database,
) -> Optional[SourceConnection]:
    return connect_source(user_id, NATIVE_PLATFORM, credentials, validator)


def connect_amazon(
    user_id: str,
    credentials: Optional[str],
    validator: Callable[[str], bool] = is_valid_amazon_database,
) -> Optional[SourceConnection]:
    return connect_source(user_id, Platform.AMAZON_GAMES, credentials, validator)
