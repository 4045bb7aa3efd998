"""GOG Galaxy local database reader."""

from . import classifier, extractor, locator, mock, normalizer, playtime, reader

__all__ = [
    "classifier",
    "extractor",
    "locator",
    "mock",
    "normalizer",
    "playtime",
    "reader",
]
