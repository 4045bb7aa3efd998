from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class GameMetadata:
    title: Optional[str] = None
    description: Optional[str] = None
    release_date: Optional[str] = None
    developer: Optional[str] = None
    publisher: Optional[str] = None
    genres: Optional[list] = None
    rating: Optional[float] = None
    cover_url: Optional[str] = None
    source_id: Optional[str] = None


class MetadataProvider(ABC):
    name = "provider"

    @abstractmethod
    def get_metadata(
        self, platform: str, product_id: Optional[str], title: Optional[str]
    ) -> Optional[GameMetadata]:
        """
        Fetch descriptive metadata for a game, or None when nothing matches.
        """
        pass

    @abstractmethod
    def get_cover_url(
        self, platform: str, product_id: Optional[str], title: Optional[str]
    ) -> Optional[str]:
        """
        Get the URL for the game cover.
        """
        pass
