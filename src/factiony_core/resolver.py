import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from .constants import CACHE_TTL, CANONICAL_TTL, DEFAULT_LOCALE, UNAVAILABLE_DESCRIPTIONS
from .enrichment import Enricher, merge_records
from .exceptions import FactionyException, GameNotFound, StoreUnavailable
from .identity import SOURCE_FALLBACK, SOURCE_NUMERIC, SOURCE_SLUG, ResolvedId, resolve_identifier
from .igdb_api_manager import IgdbAPIManager
from .models import GameRecord
from .normalize import (
    clean_identifier,
    extract_pc_requirements,
    generic_store_links,
    igdb_store_links,
    is_numeric_id,
    normalize_igdb_game,
    normalize_rawg_game,
    sanitize_description,
)
from .rawg_api_manager import RawgAPIManager
from .store import CacheEntry, GameStore

logger = logging.getLogger(__name__)

__all__ = ["GameResolver", "ResolvedId", "resolve_identifier"]


def _first(*values: Any) -> Any:
    for value in values:
        if value not in (None, "", [], {}):
            return value
    return None


class GameResolver:
    """
    Cache-or-fetch-or-enrich decision procedure for one game.

    Tiers, in order: canonical games table (fresh for CANONICAL_TTL), api cache
    table (until expires_at), then the providers. Gaps in media or buy links are
    filled by the Enricher on every tier. Store failures count as misses.
    """

    def __init__(
        self,
        store: GameStore,
        rawg: RawgAPIManager,
        igdb: IgdbAPIManager,
        enricher: Enricher,
        default_locale: str = DEFAULT_LOCALE,
        canonical_ttl: float = CANONICAL_TTL,
        cache_ttl: float = CACHE_TTL,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.rawg = rawg
        self.igdb = igdb
        self.enricher = enricher
        self.default_locale = default_locale
        self.canonical_ttl = canonical_ttl
        self.cache_ttl = cache_ttl
        self.clock = clock

    # -- store tiers -------------------------------------------------------

    async def _read_canonical(self, identifier: str) -> GameRecord | None:
        try:
            return await self.store.get_canonical(identifier)
        except StoreUnavailable as e:
            logger.warning(f"Games table unavailable for {identifier}, treating as miss: {e}")
            return None

    async def _read_cache(self, identifier: str, locale: str) -> CacheEntry | None:
        try:
            return await self.store.get_cache_entry(identifier, locale)
        except StoreUnavailable as e:
            logger.warning(f"Api cache unavailable for {identifier}, treating as miss: {e}")
            return None

    async def _with_rating(self, record: GameRecord, identifier: str) -> GameRecord:
        game_id = str(record.id) if record.id is not None else identifier
        try:
            record.community_rating = await self.store.get_community_rating(game_id)
        except StoreUnavailable as e:
            logger.warning(f"Community rating unavailable for {game_id}: {e}")
        return record

    async def _persist(self, record: GameRecord, identifier: str, locale: str):
        """Writes the record under (identifier, locale), under its numeric id, and to the games table."""
        payload = record.to_payload()
        keys = [identifier]
        if record.id is not None and str(record.id) != identifier:
            keys.append(str(record.id))

        try:
            for key in keys:
                await self.store.upsert_cache_entry(key, locale, payload, self.cache_ttl)
            if record.id is not None:
                await self.store.upsert_canonical(record)
            logger.debug(f"Cached game {identifier} under {keys} ({locale})")
        except StoreUnavailable as e:
            logger.error(f"Failed to persist game {identifier}: {e}")

    @staticmethod
    def _stale_fallback(canonical: GameRecord | None, entry: CacheEntry | None) -> GameRecord | None:
        """Expired data already read from the store; still better than a not-found."""
        if canonical is not None:
            return canonical
        return entry.record if entry is not None else None

    # -- provider calls ----------------------------------------------------

    async def _call(self, label: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        """Runs one provider call; any failure is logged and reads as no data."""
        try:
            return await factory()
        except GameNotFound as e:
            logger.debug(f"{label}: {e}")
        except FactionyException as e:
            logger.warning(f"{label} failed: {e}")
        except Exception as e:
            logger.exception(f"Unexpected error in {label}: {e}")
        return None

    async def _fetch_providers(self, ident: str, locale: str) -> dict[str, Any]:
        localized = locale != self.default_locale
        calls: dict[str, Callable[[], Awaitable[Any]]] = {
            "rawg": lambda: self.rawg.fetch_game(ident),
        }
        if localized:
            calls["rawg_localized"] = lambda: self.rawg.fetch_game(ident, locale=locale)
        if self.igdb.can_answer(ident):
            calls["igdb"] = lambda: self.igdb.fetch_game(ident)
            if localized:
                calls["igdb_localized"] = lambda: self.igdb.fetch_localization(ident, locale)

        results = await asyncio.gather(*(self._call(f"{name} ({ident})", f) for name, f in calls.items()))
        return dict(zip(calls, results))

    # -- merge -------------------------------------------------------------

    async def _describe(
        self, locale: str, rawg: dict, rawg_localized: dict, igdb: dict, igdb_localized: dict | None
    ) -> str:
        english = _first(rawg.get("description"), igdb.get("description"))
        if locale == self.default_locale:
            return english or UNAVAILABLE_DESCRIPTIONS.get(locale, UNAVAILABLE_DESCRIPTIONS["en"])

        localized_rawg = rawg_localized.get("description")
        native = _first(
            (igdb_localized or {}).get("description"),
            (igdb_localized or {}).get("summary"),
            localized_rawg if localized_rawg and localized_rawg != english else None,
        )
        if native:
            return native
        if english:
            return await self.enricher.localize_text(english, locale)
        return UNAVAILABLE_DESCRIPTIONS.get(locale, UNAVAILABLE_DESCRIPTIONS["en"])

    async def _pc_requirements(self, raw_platforms: list, locale: str) -> dict[str, str | None]:
        requirements = extract_pc_requirements(raw_platforms)
        if requirements and locale != self.default_locale:
            for key in ("minimum", "recommended"):
                if requirements.get(key):
                    requirements[key] = await self.enricher.localize_text(requirements[key], locale)
        return requirements

    async def _fetch_full(self, identifier: str, locale: str) -> GameRecord | None:
        ident = clean_identifier(identifier)
        data = await self._fetch_providers(ident, locale)

        rawg = normalize_rawg_game(data.get("rawg"))
        rawg_localized = normalize_rawg_game(data.get("rawg_localized"))
        igdb = normalize_igdb_game(data.get("igdb"))

        if not rawg and not igdb:
            logger.info(f"No provider has data for game {identifier}")
            return None

        if is_numeric_id(ident):
            resolved = ResolvedId(ident, SOURCE_NUMERIC)
        elif rawg.get("id") is not None:
            resolved = ResolvedId(str(rawg["id"]), SOURCE_SLUG)
        else:
            resolved = ResolvedId(ident, SOURCE_FALLBACK)
        logger.debug(f"Game {identifier} resolved to {resolved.id} ({resolved.source})")

        name = _first(igdb.get("name"), rawg.get("name")) or "Unknown"

        media = GameRecord()
        buy_links: list[dict] = []
        if self.rawg.enabled:
            media = await self.enricher.fetch_media(resolved.id, name)
            if rawg.get("id") is not None:
                buy_links = await self.enricher.fetch_storefronts(str(rawg["id"]))

        if buy_links:
            stores = [{"name": link["name"], "url": link["url"]} for link in buy_links]
        else:
            stores = generic_store_links(rawg.get("raw_stores")) or igdb_store_links(igdb.get("websites"))

        description = await self._describe(locale, rawg, rawg_localized, igdb, data.get("igdb_localized"))

        if is_numeric_id(ident):
            game_id = int(ident)
        else:
            game_id = _first(rawg.get("id"), igdb.get("id"))

        return GameRecord(
            id=game_id,
            slug=_first(rawg.get("slug"), igdb.get("slug"), ident),
            name=name,
            description=sanitize_description(description),
            released=_first(igdb.get("released"), rawg.get("released")),
            cover=_first(igdb.get("cover"), rawg.get("background_image")),
            background_image=_first(rawg.get("background_image"), igdb.get("cover")),
            metacritic=_first(rawg.get("metacritic"), igdb.get("rating")),
            playtime=rawg.get("playtime"),
            genres=_first(igdb.get("genres"), rawg.get("genres")) or [],
            tags=_first(igdb.get("tags"), rawg.get("tags")) or [],
            platforms=_first(igdb.get("platforms"), rawg.get("platforms")) or [],
            developers=_first(igdb.get("developers"), rawg.get("developers")) or [],
            publishers=_first(igdb.get("publishers"), rawg.get("publishers")) or [],
            screenshots=media.screenshots,
            videos=media.videos,
            buy_links=buy_links,
            stores=stores,
            pc_requirements=await self._pc_requirements(rawg.get("raw_platforms"), locale),
            source="both" if rawg and igdb else ("rawg" if rawg else "igdb"),
            id_source=resolved.source,
            updated_at=self.clock(),
        )

    # -- public API --------------------------------------------------------

    async def get_game(self, identifier: str | int, locale: str | None = None) -> GameRecord | None:
        """
        Full resolution. Returns None only when neither the store nor any
        provider has data for the identifier; expired rows beat a not-found.
        """
        identifier = str(identifier).strip()
        locale = locale or self.default_locale
        now = self.clock()

        canonical = await self._read_canonical(identifier)
        if canonical is not None and canonical.is_fresh(self.canonical_ttl, now):
            logger.debug(f"Games table hit for {identifier} ({int(canonical.age(now) // 86400)} days old)")
            record = await self.enricher.enrich(canonical, identifier, locale, update_canonical=True)
            return await self._with_rating(record, identifier)
        if canonical is not None:
            logger.info(f"Games table entry for {identifier} is stale, refreshing")

        entry = await self._read_cache(identifier, locale)
        if entry is not None and not entry.is_expired(now):
            record = entry.record
            if record is not None:
                logger.debug(f"Api cache hit for {identifier} ({locale})")
                record = await self.enricher.enrich(record, identifier, locale)
                return await self._with_rating(record, identifier)

        logger.info(f"No valid cache for game {identifier} ({locale}), fetching from providers")
        record = await self._fetch_full(identifier, locale)
        if record is None:
            stale = self._stale_fallback(canonical, entry)
            if stale is None:
                return None
            logger.warning(f"No fresh provider data for {identifier}, serving stale record")
            stale = await self.enricher.enrich(stale, identifier, locale, update_canonical=canonical is not None)
            return await self._with_rating(stale, identifier)

        await self._persist(record, identifier, locale)
        logger.info(
            f"Game '{record.name}' compiled: {len(record.screenshots)} screenshot(s), "
            f"{len(record.trailers)} trailer(s), {len(record.storefront_links)} store link(s)"
        )
        return await self._with_rating(record, identifier)

    async def get_game_minimal(self, identifier: str | int, locale: str | None = None) -> GameRecord | None:
        """
        Batch variant: identity, cover, rating and release fields only, from
        RAWG alone and without enrichment.
        """
        identifier = str(identifier).strip()
        locale = locale or self.default_locale
        now = self.clock()

        canonical = await self._read_canonical(identifier)
        if canonical is not None and canonical.is_fresh(self.canonical_ttl, now):
            return await self._with_rating(canonical.minimal(), identifier)

        entry = await self._read_cache(identifier, locale)
        if entry is not None and not entry.is_expired(now) and entry.record is not None:
            return await self._with_rating(entry.record.minimal(), identifier)

        ident = clean_identifier(identifier)
        data = await self._call(f"rawg ({ident})", lambda: self.rawg.fetch_game(ident))
        rawg = normalize_rawg_game(data)
        if not rawg:
            stale = self._stale_fallback(canonical, entry)
            if stale is None:
                return None
            logger.warning(f"RAWG has nothing for {identifier}, serving stale record")
            return await self._with_rating(stale.minimal(), identifier)

        fetched = GameRecord(
            id=int(ident) if is_numeric_id(ident) else rawg.get("id"),
            slug=rawg.get("slug") or ident,
            name=rawg.get("name") or "Unknown",
            cover=rawg.get("background_image"),
            background_image=rawg.get("background_image"),
            metacritic=rawg.get("metacritic"),
            released=rawg.get("released"),
            genres=rawg.get("genres") or [],
            platforms=rawg.get("platforms") or [],
            source="rawg",
            id_source=SOURCE_NUMERIC if is_numeric_id(ident) else SOURCE_SLUG,
            updated_at=now,
        )

        # A stale canonical row keeps its richer fields
        record = merge_records(canonical, fetched) if canonical is not None else fetched
        await self._persist(record, identifier, locale)
        return await self._with_rating(record.minimal(), identifier)
