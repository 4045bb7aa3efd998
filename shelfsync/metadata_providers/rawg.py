from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from shelfsync import config
from shelfsync.common.exceptions import MetadataServiceError
from shelfsync.logging_cfg import redact_url_keys

from .base import GameMetadata, MetadataProvider

logger = logging.getLogger(__name__)


def _first_name(items: Any) -> Optional[str]:
    if isinstance(items, list):
        for item in items:
            if isinstance(item, dict) and item.get("name"):
                return str(item["name"])
    return None


def _names(items: Any) -> list[str]:
    if not isinstance(items, list):
        return []
    return [str(i["name"]) for i in items if isinstance(i, dict) and i.get("name")]


class RawgProvider(MetadataProvider):
    """Search-and-details client for the RAWG games database.

    One search request (first hit wins) and one details request per game. No
    retries: a failed call just means the game stays unenriched.
    """

    name = "RAWG"
    PLACEHOLDER_KEY = "YOUR_RAWG_API_KEY_HERE"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = config.RAWG_BASE_URL,
        session: Optional[requests.Session] = None,
        timeout: float = config.HTTP_TIMEOUT_SECONDS,
    ):
        self.api_key = (api_key if api_key is not None else config.RAWG_API_KEY).strip()
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.api_key) and self.api_key != self.PLACEHOLDER_KEY

    def _get(self, path: str, **params) -> dict[str, Any]:
        params["key"] = self.api_key
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise MetadataServiceError(self.name, redact_url_keys(f"{path}: {e}")) from e
        if not isinstance(data, dict):
            raise MetadataServiceError(self.name, f"{path}: unexpected payload")
        return data

    def search(self, title: str) -> Optional[dict[str, Any]]:
        """Return the best (first) search hit for ``title``."""
        data = self._get("/games", search=title, page_size=5)
        results = data.get("results") or []
        if not results:
            return None
        return results[0]

    def get_details(self, rawg_id: Any) -> dict[str, Any]:
        return self._get(f"/games/{rawg_id}")

    def get_metadata(
        self, platform: str, product_id: Optional[str], title: Optional[str]
    ) -> Optional[GameMetadata]:
        if not title or not title.strip():
            logger.warning("Cannot enrich game without a title (%s)", product_id)
            return None
        if not self.is_configured():
            logger.warning("RAWG API key not configured. Cannot enrich %s", title)
            return None

        try:
            hit = self.search(title)
            if hit is None:
                logger.warning("No RAWG results found for: %s", title)
                return None
            logger.info(
                "Found RAWG match '%s' (ID: %s) for '%s'", hit.get("name"), hit.get("id"), title
            )
            details = self.get_details(hit.get("id"))
        except MetadataServiceError as e:
            logger.error("Error enriching '%s': %s", title, e)
            return None

        genres = _names(details.get("genres")) or _names(hit.get("genres"))
        return GameMetadata(
            title=details.get("name") or hit.get("name"),
            description=details.get("description_raw") or details.get("description"),
            release_date=hit.get("released") or details.get("released"),
            developer=_first_name(details.get("developers")) or _first_name(hit.get("developers")),
            publisher=_first_name(details.get("publishers")) or _first_name(hit.get("publishers")),
            genres=genres or None,
            rating=hit.get("rating"),
            cover_url=hit.get("background_image") or details.get("background_image"),
            source_id=str(hit.get("id")) if hit.get("id") is not None else None,
        )

    def get_cover_url(
        self, platform: str, product_id: Optional[str], title: Optional[str]
    ) -> Optional[str]:
        meta = self.get_metadata(platform, product_id, title)
        return meta.cover_url if meta else None
