"""Amazon Games local database reader."""

from . import extractor, locator, reader

__all__ = [
    "extractor",
    "locator",
    "reader",
]
