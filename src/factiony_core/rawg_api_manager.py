import logging
import time
from typing import Any

import aiohttp

from .exceptions import GameNotFound
from .network import request_json
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class RawgAPIManager:
    """
    Client for the RAWG catalog (provider A).

    Answers for numeric ids and slugs alike. Without an API key every method
    returns "no data" without touching the network.
    """

    BASE_URL = "https://api.rawg.io/api"
    PROVIDER = "RAWG"

    def __init__(self, session: aiohttp.ClientSession, api_key: str | None, base_url: str | None = None):
        self.session = session
        self.api_key = api_key
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.rate_limiter = RateLimiter(calls_per_second=5.0)

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def _get(self, path: str, identifier: str = "", **params: Any) -> Any:
        await self.rate_limiter.acquire()
        return await request_json(
            self.session,
            "GET",
            f"{self.base_url}{path}",
            self.PROVIDER,
            identifier=identifier,
            params={"key": self.api_key, **params},
        )

    async def fetch_game(self, ident: str, locale: str | None = None) -> dict | None:
        """
        Fetches the details payload for a numeric id or slug.
        Raises GameNotFound on 404 and the other provider errors on failure.
        """
        if not self.enabled:
            return None

        params = {"locale": locale} if locale else {}
        data = await self._get(f"/games/{ident}", identifier=ident, **params)
        if not isinstance(data, dict) or not data.get("id"):
            raise GameNotFound(ident, self.PROVIDER)
        return data

    async def resolve_slug(self, slug: str) -> int | None:
        """Looks up a slug and returns the numeric id RAWG assigned to it."""
        if not self.enabled:
            return None
        try:
            data = await self.fetch_game(slug)
        except GameNotFound:
            logger.warning(f"Failed to resolve slug '{slug}' on RAWG")
            return None

        game_id = data.get("id") if data else None
        if isinstance(game_id, int):
            logger.debug(f"Resolved slug '{slug}' to RAWG id {game_id}")
            return game_id
        return None

    async def fetch_screenshots(self, ident: str | int) -> list[dict[str, Any]]:
        if not self.enabled:
            return []
        data = await self._get(f"/games/{ident}/screenshots", identifier=str(ident))
        return (data or {}).get("results") or []

    async def fetch_movies(self, ident: str | int) -> list[dict[str, Any]]:
        if not self.enabled:
            return []
        data = await self._get(f"/games/{ident}/movies", identifier=str(ident))
        results = (data or {}).get("results") or []
        logger.debug(f"RAWG movies for {ident}: {len(results)} result(s)")
        return results

    async def fetch_stores(self, ident: str | int) -> list[dict[str, Any]]:
        if not self.enabled:
            return []
        data = await self._get(f"/games/{ident}/stores", identifier=str(ident))
        return (data or {}).get("results") or []

    async def fetch_top_rated(self, limit: int) -> list[dict[str, Any]]:
        """Top metacritic titles released since 2010 (twice the limit, for filtering)."""
        if not self.enabled:
            return []
        today = time.strftime("%Y-%m-%d", time.gmtime())
        data = await self._get(
            "/games",
            ordering="-metacritic",
            metacritic="80,100",
            dates=f"2010-01-01,{today}",
            page_size=limit * 2,
        )
        return (data or {}).get("results") or []
