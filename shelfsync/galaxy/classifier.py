"""Decides which storefront a Galaxy row really belongs to.

Galaxy keeps titles from every linked storefront in the same tables. The owner
is decided by, in order:

1. the ``platform`` / ``source`` hints of the metadata piece,
2. the release key prefix,
3. otherwise the row is a native GOG title keyed by its full release key.

A metadata hint always wins over the prefix, even when they disagree.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from shelfsync import config
from shelfsync.core.models import (
    ClassifiedRecord,
    NATIVE_PLATFORM,
    Platform,
    RawRecord,
)

logger = logging.getLogger(__name__)

AliasTable = Sequence[tuple[Platform, Sequence[str]]]
PrefixTable = Sequence[tuple[str, Platform]]


def _metadata_product_id(record: RawRecord) -> Optional[str]:
    data = record.metadata.data or {}
    for field_name in config.METADATA_PRODUCT_ID_FIELDS:
        value = data.get(field_name)
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            value = str(value)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def classify_by_metadata(
    record: RawRecord, aliases: AliasTable = config.PLATFORM_ALIASES
) -> Optional[ClassifiedRecord]:
    hints = [
        hint.lower()
        for hint in (record.metadata.get_str("platform"), record.metadata.get_str("source"))
        if hint
    ]
    if not hints:
        return None

    for platform, names in aliases:
        if any(name in hint for hint in hints for name in names):
            product_id = _metadata_product_id(record) or record.release_key
            return ClassifiedRecord(record, platform, product_id)
    return None


def classify_by_prefix(
    record: RawRecord, prefixes: PrefixTable = config.RELEASE_KEY_PREFIXES
) -> Optional[ClassifiedRecord]:
    key = record.release_key.lower()
    for prefix, platform in prefixes:
        if key.startswith(prefix) and len(key) > len(prefix):
            return ClassifiedRecord(record, platform, record.release_key[len(prefix):])
    return None


def classify(
    record: RawRecord,
    aliases: AliasTable = config.PLATFORM_ALIASES,
    prefixes: PrefixTable = config.RELEASE_KEY_PREFIXES,
) -> ClassifiedRecord:
    """Classify one record. Pure: depends only on the record and the tables."""
    hit = classify_by_metadata(record, aliases)
    if hit is not None:
        logger.debug(
            "Classified %s as %s from metadata", record.release_key, hit.platform.value
        )
        return hit

    hit = classify_by_prefix(record, prefixes)
    if hit is not None:
        logger.debug(
            "Classified %s as %s from key prefix", record.release_key, hit.platform.value
        )
        return hit

    return ClassifiedRecord(record, NATIVE_PLATFORM, record.release_key)


def classify_all(records: Iterable[RawRecord]):
    for record in records:
        yield classify(record)
