from .base import GameMetadata, MetadataProvider
from .rawg import RawgProvider

__all__ = [
    "MetadataProvider",
    "GameMetadata",
    "RawgProvider",
]
