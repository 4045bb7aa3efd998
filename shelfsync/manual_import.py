"""Manual import of GOG games from user supplied JSON or CSV.

JSON: an array of objects (or a single object) with the keys ``title``,
``gogId``, ``playtime``, ``releaseDate``, ``description``, ``developer``,
``publisher``, ``coverImageUrl`` and ``genres``; key case does not matter.

CSV: ``title,gogId,playtime,releaseDate`` with an optional header row.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from pathlib import Path
from typing import Any, Optional

from shelfsync import config
from shelfsync.common.exceptions import ImportFormatError
from shelfsync.core.models import NATIVE_PLATFORM, NormalizedGame
from shelfsync.galaxy.normalizer import parse_release_date
from shelfsync.logging_cfg import log_call

logger = logging.getLogger(__name__)

FORMATS = ("json", "csv")
CSV_HEADER = ("title", "gogId", "playtime", "releaseDate")
UNKNOWN_TITLE = "Unknown Game"


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip().strip('"').strip()
    return text or None


def _playtime(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        minutes = int(str(value).strip())
    except ValueError:
        return None
    return minutes if minutes >= 0 else None


def build_game(
    title: Optional[str],
    gog_id: Optional[str],
    playtime: Any = None,
    release_date: Any = None,
    description: Optional[str] = None,
    developer: Optional[str] = None,
    publisher: Optional[str] = None,
    cover_image_url: Optional[str] = None,
    genres: Any = None,
) -> NormalizedGame:
    gog_id = _text(gog_id)
    if not gog_id:
        raise ValueError("missing gogId")

    return NormalizedGame(
        title=_text(title) or UNKNOWN_TITLE,
        platform=NATIVE_PLATFORM,
        product_id=f"gog_{gog_id}",
        cover_image_url=_text(cover_image_url)
        or config.GOG_CDN_IMPORT_COVER_TEMPLATE.format(gog_id=gog_id),
        playtime_minutes=_playtime(playtime),
        release_date=parse_release_date(_text(release_date)),
        developer=_text(developer),
        publisher=_text(publisher),
        genres=list(genres) if isinstance(genres, list) else [],
        description=_text(description),
    )


def _from_json_object(item: dict) -> NormalizedGame:
    fields = {str(k).lower(): v for k, v in item.items()}
    return build_game(
        title=fields.get("title"),
        gog_id=fields.get("gogid"),
        playtime=fields.get("playtime"),
        release_date=fields.get("releasedate"),
        description=fields.get("description"),
        developer=fields.get("developer"),
        publisher=fields.get("publisher"),
        cover_image_url=fields.get("coverimageurl"),
        genres=fields.get("genres"),
    )


def parse_json(content: str) -> list[NormalizedGame]:
    """Parse a JSON import.

    Raises:
        ImportFormatError: if the document is not JSON or not an object/array.
    """
    try:
        data = json.loads(content)
    except ValueError as e:
        raise ImportFormatError("json", str(e)) from e

    if isinstance(data, dict):
        items = [data]
    elif isinstance(data, list):
        items = data
    else:
        raise ImportFormatError("json", "expected an array or an object")

    games: list[NormalizedGame] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            logger.warning("Skipping JSON entry %d: not an object", index)
            continue
        try:
            games.append(_from_json_object(item))
        except ValueError as e:
            logger.warning("Skipping JSON entry %d: %s", index, e)

    logger.info("Imported %d games from JSON", len(games))
    return games


def parse_csv(content: str) -> list[NormalizedGame]:
    """Parse a CSV import. Malformed lines are skipped with a warning.

    Raises:
        ImportFormatError: if the document has no rows at all.
    """
    rows = [row for row in csv.reader(io.StringIO(content)) if any(c.strip() for c in row)]
    if not rows:
        raise ImportFormatError("csv", "no rows")

    start = 1 if rows[0][0].strip().lower() == "title" else 0
    games: list[NormalizedGame] = []
    for line_no, row in enumerate(rows[start:], start=start + 1):
        if len(row) < 2:
            logger.warning("Skipping CSV line %d: expected at least title,gogId", line_no)
            continue
        try:
            games.append(
                build_game(
                    title=row[0],
                    gog_id=row[1],
                    playtime=row[2] if len(row) > 2 else None,
                    release_date=row[3] if len(row) > 3 else None,
                )
            )
        except ValueError as e:
            logger.warning("Skipping CSV line %d: %s", line_no, e)

    logger.info("Imported %d games from CSV", len(games))
    return games


@log_call(level=logging.INFO)
def parse_import(content: str, fmt: str) -> list[NormalizedGame]:
    fmt = (fmt or "").lower().lstrip(".")
    if fmt == "json":
        return parse_json(content)
    if fmt == "csv":
        return parse_csv(content)
    raise ImportFormatError(fmt or "unknown", f"supported formats: {', '.join(FORMATS)}")


def detect_format(path: Path) -> str:
    return path.suffix.lower().lstrip(".")


def csv_template() -> str:
    return (
        ",".join(CSV_HEADER) + "\n"
        '"The Witcher 3: Wild Hunt",1207658930,2847,2015-05-19\n'
        '"Cyberpunk 2077",1207658924,1920,2020-12-10\n'
        '"Example Game",1234567890,0,2024-01-01'
    )


def json_template() -> str:
    template = [
        {
            "title": "The Witcher 3: Wild Hunt",
            "gogId": "1207658930",
            "playtime": 2847,
            "releaseDate": "2015-05-19",
            "developer": "CD PROJEKT RED",
            "publisher": "CD PROJEKT RED",
        },
        {
            "title": "Cyberpunk 2077",
            "gogId": "1207658924",
            "playtime": 1920,
            "releaseDate": "2020-12-10",
            "developer": "CD PROJEKT RED",
            "publisher": "CD PROJEKT RED",
        },
    ]
    return json.dumps(template, indent=2, ensure_ascii=False)
