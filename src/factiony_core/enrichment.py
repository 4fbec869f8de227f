"""
Gap detection and gap filling for game records.

Records fetched cheaply (batch lookups, discovery seeding) or records whose
providers had nothing at the time are upgraded here without a full re-fetch.
Every step is best effort: a provider failure leaves the record as it was.
"""

import logging
from dataclasses import fields, replace
from typing import Any

from .constants import (
    CACHE_TTL,
    DEFAULT_LOCALE,
    ENRICHED_TTL,
    GAMEPLAY_KEYWORDS,
    MAX_GAMEPLAY,
    MAX_SCREENSHOTS,
    MAX_TRAILERS,
    TRAILER_KEYWORDS,
)
from .exceptions import FactionyException, StoreUnavailable
from .identity import ResolvedId, resolve_identifier
from .models import GameRecord
from .normalize import normalize_rawg_stores, pick_mp4_url
from .rawg_api_manager import RawgAPIManager
from .store import GameStore
from .translate_api_manager import TranslateAPIManager
from .youtube_api_manager import YouTubeAPIManager

logger = logging.getLogger(__name__)

# RAWG's first screenshots repeat the background/cover art
SCREENSHOT_OFFSET = 3


def needs_media_enrichment(record: GameRecord | None) -> bool:
    if record is None:
        return True
    needed = not record.has_media()
    if needed and record.name:
        logger.debug(f"Media missing for '{record.name}'")
    return needed


def needs_storefront_enrichment(record: GameRecord | None) -> bool:
    if record is None:
        return True
    needed = not record.has_storefronts()
    if needed and record.name:
        logger.debug(f"Buy links missing for '{record.name}'")
    return needed


def score_video(title: str) -> int:
    lower = (title or "").lower()
    score = 0
    if "official" in lower:
        score += 5
    if any(word in lower for word in ("trailer", "reveal", "announcement", "launch")):
        score += 4
    if "online" in lower:
        score -= 5
    if "update" in lower or "dlc" in lower:
        score -= 2
    return score


def classify_videos(movies: list[dict[str, Any]]) -> tuple[list[dict], list[dict], int]:
    """
    Scores the provider's clips and splits them into trailers and gameplay.

    Returns (trailers, gameplay, playable_count). The sort is stable, so clips
    with equal scores keep the provider's order and the output is the same
    for the same input.
    """
    playable = []
    for movie in movies or []:
        url = pick_mp4_url(movie)
        if not url:
            continue
        provider = "youtube" if ("youtube.com" in url or "youtu.be" in url) else "rawg_mp4"
        title = movie.get("name") or "Video"
        playable.append(
            {
                "title": title,
                "provider": provider,
                "url": url,
                "thumbnail": movie.get("preview"),
                "score": score_video(title),
            }
        )

    playable.sort(key=lambda clip: clip["score"], reverse=True)

    trailers: list[dict] = []
    gameplay: list[dict] = []
    for clip in playable:
        name = clip["title"].lower()
        if any(word in name for word in TRAILER_KEYWORDS):
            if len(trailers) < MAX_TRAILERS:
                trailers.append(clip)
        elif any(word in name for word in GAMEPLAY_KEYWORDS):
            if len(gameplay) < MAX_GAMEPLAY:
                gameplay.append(clip)

    return trailers, gameplay, len(playable)


def _is_empty(value: Any) -> bool:
    if value is None or value == "":
        return True
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def merge_records(base: GameRecord, update: GameRecord) -> GameRecord:
    """
    Fills base with the non-empty fields of update.

    A populated field of base is never replaced by an empty value; videos are
    merged per sub-list so a trailer-only update keeps known gameplay clips.
    """
    changes: dict[str, Any] = {}
    for f in fields(GameRecord):
        if f.name == "videos":
            continue
        new_value = getattr(update, f.name)
        if not _is_empty(new_value):
            changes[f.name] = new_value

    videos = dict(base.videos)
    for kind in ("trailers", "gameplay"):
        if update.videos.get(kind):
            videos[kind] = update.videos[kind]
    changes["videos"] = videos

    return replace(base, **changes)


class Enricher:
    def __init__(
        self,
        store: GameStore,
        rawg: RawgAPIManager,
        youtube: YouTubeAPIManager | None = None,
        translator: TranslateAPIManager | None = None,
        default_locale: str = DEFAULT_LOCALE,
    ):
        self.store = store
        self.rawg = rawg
        self.youtube = youtube
        self.translator = translator
        self.default_locale = default_locale

    async def fetch_screenshots(self, ident: str) -> list[str]:
        try:
            results = await self.rawg.fetch_screenshots(ident)
        except FactionyException as e:
            logger.warning(f"Screenshots unavailable for {ident}: {e}")
            return []

        images = [item.get("image") for item in results if item.get("image")]
        if len(images) > SCREENSHOT_OFFSET:
            images = images[SCREENSHOT_OFFSET:]
        return images[:MAX_SCREENSHOTS]

    async def fetch_videos(self, ident: str, name: str | None) -> dict[str, list[dict]]:
        try:
            movies = await self.rawg.fetch_movies(ident)
        except FactionyException as e:
            logger.warning(f"Movies unavailable for {ident}: {e}")
            movies = []

        trailers, gameplay, playable_count = classify_videos(movies)
        logger.debug(
            f"Videos for {ident}: {playable_count} playable, {len(trailers)} trailer(s), {len(gameplay)} gameplay"
        )

        if playable_count == 0 and name and self.youtube is not None and self.youtube.enabled:
            try:
                trailers.extend(await self.youtube.search_trailers(name))
            except FactionyException as e:
                logger.warning(f"YouTube fallback failed for '{name}': {e}")

        return {"trailers": trailers, "gameplay": gameplay}

    async def fetch_media(self, ident: str, name: str | None) -> GameRecord:
        screenshots = await self.fetch_screenshots(ident)
        videos = await self.fetch_videos(ident, name)
        return GameRecord(screenshots=screenshots, videos=videos)

    async def fetch_storefronts(self, ident: str) -> list[dict[str, Any]]:
        try:
            results = await self.rawg.fetch_stores(ident)
        except FactionyException as e:
            logger.warning(f"Store links unavailable for {ident}: {e}")
            return []
        links = normalize_rawg_stores(results)
        logger.debug(f"Mapped {len(links)} store link(s) for {ident}: {[link['store'] for link in links]}")
        return links

    async def localize_text(self, text: str | None, locale: str) -> str | None:
        """Machine-translates text into locale; the original text is kept on any failure."""
        if not text or locale == self.default_locale or self.translator is None:
            return text
        try:
            return await self.translator.translate(text, source=self.default_locale, target=locale)
        except Exception as e:
            logger.warning(f"Translation to '{locale}' failed, keeping original text: {e}")
            return text

    async def _write_back(
        self,
        record: GameRecord,
        identifier: str,
        locale: str,
        ttl: float | None,
        update_canonical: bool,
    ):
        payload = record.to_payload()
        # Slug and numeric id entries must carry the same payload
        keys = [identifier]
        if record.id is not None and str(record.id) != identifier:
            keys.append(str(record.id))
        try:
            for key in keys:
                updated = await self.store.update_cache_payload(key, locale, payload, ttl=ttl)
                if not updated:
                    await self.store.upsert_cache_entry(key, locale, payload, ttl or CACHE_TTL)
            if update_canonical and record.id is not None:
                await self.store.upsert_canonical(record)
        except StoreUnavailable as e:
            logger.error(f"Enrichment write-back failed for {identifier} ({locale}): {e}")

    async def enrich_media(
        self,
        record: GameRecord,
        identifier: str,
        locale: str,
        resolved: ResolvedId | None = None,
        update_canonical: bool = False,
    ) -> GameRecord:
        if not needs_media_enrichment(record) or not self.rawg.enabled:
            return record

        try:
            resolved = resolved or await resolve_identifier(identifier, record, self.rawg)
            logger.debug(f"Media enrichment for {identifier}: RAWG id {resolved.id} ({resolved.source})")
            media = await self.fetch_media(resolved.id, record.name)
        except Exception as e:
            logger.exception(f"Media enrichment failed for {identifier}: {e}")
            return record

        if not media.screenshots and not media.trailers and not media.gameplay:
            logger.info(f"No media found upstream for {identifier}")
            return record

        enriched = merge_records(record, media)
        await self._write_back(enriched, identifier, locale, ENRICHED_TTL, update_canonical)
        logger.info(
            f"Media enriched for {identifier}: {len(enriched.screenshots)} screenshot(s), "
            f"{len(enriched.trailers)} trailer(s), {len(enriched.gameplay)} gameplay"
        )
        return enriched

    async def enrich_storefronts(
        self,
        record: GameRecord,
        identifier: str,
        locale: str,
        resolved: ResolvedId | None = None,
        update_canonical: bool = False,
    ) -> GameRecord:
        if not needs_storefront_enrichment(record) or not self.rawg.enabled:
            return record

        try:
            resolved = resolved or await resolve_identifier(identifier, record, self.rawg)
            links = await self.fetch_storefronts(resolved.id)
        except Exception as e:
            logger.exception(f"Buy links enrichment failed for {identifier}: {e}")
            return record

        if not links:
            logger.info(f"No buy links found upstream for {identifier}")
            return record

        stores = [{"name": link["name"], "url": link["url"]} for link in links]
        enriched = merge_records(record, GameRecord(buy_links=links, stores=stores))
        await self._write_back(enriched, identifier, locale, None, update_canonical)
        logger.info(f"Buy links enriched for {identifier}: {len(links)} link(s)")
        return enriched

    async def enrich(
        self, record: GameRecord, identifier: str, locale: str, update_canonical: bool = False
    ) -> GameRecord:
        """Fills every detected gap; a record without gaps is returned untouched."""
        media_gap = needs_media_enrichment(record)
        storefront_gap = needs_storefront_enrichment(record)
        if not (media_gap or storefront_gap) or not self.rawg.enabled:
            return record

        try:
            resolved = await resolve_identifier(identifier, record, self.rawg)
        except Exception as e:
            logger.exception(f"Identifier resolution failed for {identifier}: {e}")
            return record
        if not resolved.confident:
            logger.warning(f"Enriching {identifier} with unconfirmed id '{resolved.id}'")

        if media_gap:
            record = await self.enrich_media(record, identifier, locale, resolved, update_canonical)
        if storefront_gap:
            record = await self.enrich_storefronts(record, identifier, locale, resolved, update_canonical)
        return record
