"""Demo catalog used when no GOG Galaxy data can be read."""

from __future__ import annotations

from datetime import datetime, timezone

from shelfsync.core.models import NATIVE_PLATFORM, NormalizedGame

_CDN = "https://images.gog-statics.com/"

# (product id, title, description, cover, minutes, last played,
#  release date, developer, publisher, genres)
_CATALOG = (
    (
        "gog_1207658930",
        "The Witcher 3: Wild Hunt",
        "You are Geralt of Rivia, mercenary monster slayer. Before you stands a "
        "war-torn, monster-infested continent you can explore at will. Your current "
        "contract? Tracking down Ciri, the Child of Prophecy, a living weapon that "
        "can alter the shape of the world.",
        "5643a7c831df452d29005caeca24c231d2d05b70c60cf3275c0101c306c0f3ca.jpg",
        2847,
        datetime(2025, 1, 10, 21, 30, tzinfo=timezone.utc),
        datetime(2015, 5, 19, tzinfo=timezone.utc),
        "CD PROJEKT RED",
        "CD PROJEKT RED",
        ["RPG", "Action", "Open World"],
    ),
    (
        "gog_1207658924",
        "Cyberpunk 2077",
        "Cyberpunk 2077 is an open-world, action-adventure RPG set in the "
        "megalopolis of Night City, where you play as a cyberpunk mercenary wrapped "
        "up in a do-or-die fight for survival.",
        "5643a7c831df452d29005caeca24c231d2d05b70c60cf3275c0101c306c0f3ca"
        "_product_card_v2_mobile_slider_639.jpg",
        1920,
        datetime(2025, 1, 13, 19, 5, tzinfo=timezone.utc),
        datetime(2020, 12, 10, tzinfo=timezone.utc),
        "CD PROJEKT RED",
        "CD PROJEKT RED",
        ["RPG", "Action", "Open World", "Sci-Fi"],
    ),
    (
        "gog_1207658915",
        "Baldur's Gate 3",
        "Gather your party and return to the Forgotten Realms in a tale of "
        "fellowship and betrayal, sacrifice and survival, and the lure of absolute "
        "power.",
        "85a8c2b664e8b6712955648f30d77c898f9faa3fb4ba9c3e83fcf4e38fc6bd8b.jpg",
        4560,
        datetime(2025, 1, 15, 6, 0, tzinfo=timezone.utc),
        datetime(2023, 8, 3, tzinfo=timezone.utc),
        "Larian Studios",
        "Larian Studios",
        ["RPG", "Strategy", "Turn-Based"],
    ),
    (
        "gog_1207666883",
        "Disco Elysium - The Final Cut",
        "Disco Elysium - The Final Cut is a groundbreaking role playing game. You're "
        "a detective with a unique skill system at your disposal and a whole city to "
        "carve your path across.",
        "85a8c2b664e8b6712955648f30d77c898f9faa3fb4ba9c3e83fcf4e38fc6bd8b"
        "_product_card_v2_mobile_slider_639.jpg",
        1860,
        datetime(2024, 12, 31, 22, 40, tzinfo=timezone.utc),
        datetime(2021, 3, 30, tzinfo=timezone.utc),
        "ZA/UM",
        "ZA/UM",
        ["RPG", "Detective", "Indie"],
    ),
    (
        "gog_1207658891",
        "Divinity: Original Sin 2",
        "The Divine is dead. The Void approaches. And the powers latent within you "
        "are soon to awaken. Choose your role in a BAFTA-winning story, and explore "
        "a world that reacts to who you are, and the choices you make.",
        "460da9e18c972f6e69c8e47f4c9e037ea86c34f3ef9963a689dea350ec61bf98.jpg",
        3240,
        datetime(2024, 12, 16, 18, 15, tzinfo=timezone.utc),
        datetime(2017, 9, 14, tzinfo=timezone.utc),
        "Larian Studios",
        "Larian Studios",
        ["RPG", "Strategy", "Turn-Based"],
    ),
    (
        "gog_1207658674",
        "Stardew Valley",
        "You've inherited your grandfather's old farm plot in Stardew Valley. Armed "
        "with hand-me-down tools and a few coins, you set out to begin your new life!",
        "460da9e18c972f6e69c8e47f4c9e037ea86c34f3ef9963a689dea350ec61bf98"
        "_product_card_v2_mobile_slider_639.jpg",
        5640,
        datetime(2025, 1, 8, 20, 0, tzinfo=timezone.utc),
        datetime(2016, 2, 26, tzinfo=timezone.utc),
        "ConcernedApe",
        "ConcernedApe",
        ["Simulation", "RPG", "Indie"],
    ),
)


def mock_games() -> list[NormalizedGame]:
    """Return a fresh copy of the demo catalog.

    Every field is fixed, so repeated fallback syncs merge as no-ops.
    """
    return [
        NormalizedGame(
            title=title,
            platform=NATIVE_PLATFORM,
            product_id=product_id,
            cover_image_url=_CDN + cover,
            playtime_minutes=minutes,
            last_played=last_played,
            release_date=released,
            developer=developer,
            publisher=publisher,
            genres=list(genres),
            description=description,
        )
        for (
            product_id,
            title,
            description,
            cover,
            minutes,
            last_played,
            released,
            developer,
            publisher,
            genres,
        ) in _CATALOG
    ]
