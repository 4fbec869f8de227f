import logging
from dataclasses import dataclass

from .exceptions import FactionyException
from .models import GameRecord
from .normalize import clean_identifier, is_numeric_id
from .rawg_api_manager import RawgAPIManager

logger = logging.getLogger(__name__)

# How a provider-native id was obtained, most to least trustworthy
SOURCE_PAYLOAD = "payload_id"
SOURCE_NUMERIC = "cleaned_numeric"
SOURCE_SLUG = "resolved_slug"
SOURCE_FALLBACK = "slug_fallback"


@dataclass(frozen=True)
class ResolvedId:
    id: str
    source: str

    @property
    def confident(self) -> bool:
        return self.source != SOURCE_FALLBACK

    @property
    def numeric(self) -> bool:
        return is_numeric_id(self.id)


async def resolve_identifier(
    identifier: str, known: GameRecord | None, rawg: RawgAPIManager | None
) -> ResolvedId:
    """
    Maps an incoming identifier (numeric id, slug, or decorated string such as
    "witcher-3_fr" or "Witcher 3 (2015)") onto a RAWG id.

    The returned source tag makes a degraded guess observable: slug_fallback
    means nothing confirmed the id and downstream lookups may miss.
    """
    if known is not None and isinstance(known.id, int):
        return ResolvedId(str(known.id), SOURCE_PAYLOAD)

    cleaned = clean_identifier(identifier)
    if is_numeric_id(cleaned):
        return ResolvedId(cleaned, SOURCE_NUMERIC)

    if rawg is None or not rawg.enabled:
        return ResolvedId(cleaned, SOURCE_FALLBACK)

    slug = known.slug if known is not None and known.slug else cleaned
    try:
        game_id = await rawg.resolve_slug(slug)
    except FactionyException as e:
        logger.warning(f"Error resolving slug '{slug}': {e}")
        game_id = None

    if game_id is not None:
        return ResolvedId(str(game_id), SOURCE_SLUG)

    logger.warning(f"Could not confirm a RAWG id for '{identifier}', using '{cleaned}' as-is")
    return ResolvedId(cleaned, SOURCE_FALLBACK)
