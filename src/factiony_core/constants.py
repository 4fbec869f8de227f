from enum import Enum


class Storefront(Enum):
    STEAM = "steam"
    XBOX = "xbox"
    PLAYSTATION = "playstation"
    NINTENDO = "nintendo"
    GOG = "gog"
    EPIC = "epic"


# RAWG store ids -> (slug, display name)
RAWG_STORE_MAP = {
    1: (Storefront.STEAM.value, "Steam"),
    2: (Storefront.XBOX.value, "Xbox Store"),
    3: (Storefront.PLAYSTATION.value, "PlayStation Store"),
    4: (Storefront.NINTENDO.value, "Nintendo Store"),
    5: (Storefront.GOG.value, "GOG"),
    6: (Storefront.EPIC.value, "Epic Games"),
}

# IGDB website categories that point at a storefront
IGDB_STORE_WEBSITES = {
    13: "Steam",
    16: "Epic Games",
}

GENERIC_STORE_KEYWORDS = ("playstation", "xbox", "steam", "nintendo", "epic", "gog")

DAY = 24 * 60 * 60
CANONICAL_TTL = 7 * DAY
CACHE_TTL = 7 * DAY
ENRICHED_TTL = 1 * DAY

PROVIDER_TIMEOUT = 10.0
CLIENT_SINGLE_TIMEOUT = 8.0
CLIENT_BATCH_TIMEOUT = 30.0
CLIENT_MEMORY_MAX_ENTRIES = 500

MAX_CONCURRENT_API_CALLS = 6
MAX_SCREENSHOTS = 6
MAX_TRAILERS = 5
MAX_GAMEPLAY = 2
MAX_YOUTUBE_RESULTS = 5

DISCOVERY_DEFAULT_LIMIT = 12
DISCOVERY_MIN_DB_ROWS = 8

DEFAULT_LOCALE = "en"

# Sentence used when no description exists in any language
UNAVAILABLE_DESCRIPTIONS = {
    "en": "Description not available",
    "fr": "Description non disponible en français",
}

TRAILER_KEYWORDS = ("trailer", "teaser", "reveal", "launch", "announcement")
GAMEPLAY_KEYWORDS = ("gameplay", "playthrough")
