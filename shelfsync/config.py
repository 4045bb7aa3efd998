"""Configuration and constants for the shelfsync package."""
from __future__ import annotations

import os
from typing import Dict, Tuple

from shelfsync.core.models import Platform


def _env_float(name: str, default: float) -> float:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


# Date format used by the CLI
DATE_FMT = "%d/%m/%Y %H:%M"

# --- GOG Galaxy database location ---------------------------------------

# Appended to a user supplied directory
GALAXY_DB_RELATIVE_PATH = os.path.join("storage", "galaxy-2.0.db")

# Checked in order; placeholders are expanded at lookup time
KNOWN_DB_PATHS: Tuple[str, ...] = (
    r"%LOCALAPPDATA%\GOG.com\Galaxy\storage\galaxy-2.0.db",
    r"C:\ProgramData\GOG.com\Galaxy\storage\galaxy-2.0.db",
    r"C:\Program Files (x86)\GOG Galaxy\storage\galaxy-2.0.db",
    r"C:\Program Files\GOG Galaxy\storage\galaxy-2.0.db",
    r"%PROGRAMFILES(X86)%\GOG Galaxy\storage\galaxy-2.0.db",
    r"%PROGRAMFILES%\GOG Galaxy\storage\galaxy-2.0.db",
    r"%PROGRAMDATA%\GOG.com\Galaxy\storage\galaxy-2.0.db",
    "~/Library/Application Support/GOG.com/Galaxy/Storage/galaxy-2.0.db",
)

# Busy timeout handed to sqlite3.connect; bounds a query stuck on a lock
DB_TIMEOUT_SECONDS: float = _env_float("SHELFSYNC_DB_TIMEOUT", 5.0)

# --- Amazon Games database location ------------------------------------

# Folders holding the Amazon Games client databases
AMAZON_KNOWN_DB_DIRS: Tuple[str, ...] = (
    r"%LOCALAPPDATA%\Amazon Games\Data\Games\Sql",
    r"C:\Users\%USERNAME%\AppData\Local\Amazon Games\Data\Games\Sql",
)

# Read in this order; ProductDetails carries the richer metadata
AMAZON_PRODUCT_DETAILS_DB = "ProductDetails.sqlite"
AMAZON_PRODUCT_INFO_DB = "GameProductInfo.sqlite"
AMAZON_DB_FILES: Tuple[str, ...] = (AMAZON_PRODUCT_DETAILS_DB, AMAZON_PRODUCT_INFO_DB)

# A database is an Amazon one when it has either table
AMAZON_TABLES: Tuple[str, ...] = ("game_product_info", "DbSet")
AMAZON_PRODUCT_KEY_PREFIX = "amzn1.adg.product."

# --- Vendor schema ------------------------------------------------------

PIECE_TYPE_TITLE = 45
PIECE_TYPE_METADATA = 42
PIECE_TYPE_IMAGES = 10

# --- Classification tables ----------------------------------------------

# Metadata tier: substring aliases matched against the "platform" and
# "source" hints, case-insensitive. Order decides ties.
PLATFORM_ALIASES: Tuple[Tuple[Platform, Tuple[str, ...]], ...] = (
    (Platform.EPIC_GAMES, ("epic", "egs")),
    (Platform.UBISOFT_CONNECT, ("uplay", "ubisoft")),
    (Platform.AMAZON_GAMES, ("amazon",)),
    (Platform.STEAM, ("steam",)),
    (Platform.ROCKSTAR, ("rockstar",)),
)

# Key-prefix tier: lowercase release key prefixes
RELEASE_KEY_PREFIXES: Tuple[Tuple[str, Platform], ...] = (
    ("epic_", Platform.EPIC_GAMES),
    ("egs_", Platform.EPIC_GAMES),
    ("uplay_", Platform.UBISOFT_CONNECT),
    ("ubisoft_", Platform.UBISOFT_CONNECT),
    ("amazon_", Platform.AMAZON_GAMES),
    ("steam_", Platform.STEAM),
    ("rockstar_", Platform.ROCKSTAR),
)

# Statistics table (GameTimes) key prefixes. Not the same abbreviations as
# RELEASE_KEY_PREFIXES; keep the two tables apart.
PLAYTIME_KEY_PREFIXES: Dict[Platform, str] = {
    Platform.EPIC_GAMES: "epic",
    Platform.UBISOFT_CONNECT: "uplay",
    Platform.AMAZON_GAMES: "amazon",
    Platform.STEAM: "steam",
    Platform.ROCKSTAR: "rockstar",
}

METADATA_PRODUCT_ID_FIELDS: Tuple[str, ...] = ("gameId", "product_id")

# --- Title filter / normalizer ------------------------------------------

COVER_IMAGE_FIELDS: Tuple[str, ...] = ("verticalCover", "background", "squareIcon")

# Vendor-internal utility entries, case-insensitive substring match
TITLE_DENY_LIST: Tuple[str, ...] = ("Amazon Prime", "Prime Gaming", "Game Overlay")

GOG_CDN_COVER_TEMPLATE = (
    "https://images.gog-statics.com/{product_id}_product_card_v2_mobile_slider_639.jpg"
)
GOG_CDN_IMPORT_COVER_TEMPLATE = "https://images.gog-statics.com/{gog_id}.jpg"

# --- Persistence / enrichment -------------------------------------------

LIBRARY_DB_DEFAULT = os.environ.get("SHELFSYNC_LIBRARY_DB", "library.db")
SETTINGS_FILE_DEFAULT = "settings.json"

RAWG_BASE_URL = "https://api.rawg.io/api"
RAWG_API_KEY = (os.environ.get("RAWG_API_KEY") or "").strip()
HTTP_TIMEOUT_SECONDS = 10
