import logging

import aiohttp

from .network import request_json
from .normalize import is_numeric_id
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

GAME_FIELDS = (
    "name, total_rating, rating, involved_companies.company.name, involved_companies.publisher, "
    "first_release_date, summary, genres.name, platforms.name, cover.url, websites.url, "
    "websites.category, slug, themes.name, game_modes.name"
)


class IgdbAPIManager:
    """
    Client for IGDB (provider B). Queries are Apicalypse bodies POSTed to /v4.
    Only numeric ids are answered; slug lookups are skipped.
    """

    BASE_URL = "https://api.igdb.com/v4"
    PROVIDER = "IGDB"

    def __init__(self, session: aiohttp.ClientSession, client_id: str | None, access_token: str | None):
        self.session = session
        self.client_id = client_id
        self.access_token = access_token
        # IGDB allows 4 requests per second per client
        self.rate_limiter = RateLimiter(calls_per_second=4.0)

    @property
    def enabled(self) -> bool:
        return bool(self.client_id and self.access_token)

    def can_answer(self, identifier: str) -> bool:
        return self.enabled and is_numeric_id(identifier)

    async def _query(self, endpoint: str, body: str, identifier: str) -> list:
        await self.rate_limiter.acquire()
        data = await request_json(
            self.session,
            "POST",
            f"{self.BASE_URL}/{endpoint}",
            self.PROVIDER,
            identifier=identifier,
            data=body,
            headers={"Client-ID": self.client_id, "Authorization": f"Bearer {self.access_token}"},
        )
        return data if isinstance(data, list) else []

    async def fetch_game(self, game_id: str) -> dict | None:
        if not self.can_answer(game_id):
            if self.enabled:
                logger.debug(f"Skipping IGDB for slug-based query: {game_id}")
            return None
        results = await self._query("games", f"fields {GAME_FIELDS}; where id = {int(game_id)};", game_id)
        return results[0] if results else None

    async def fetch_localization(self, game_id: str, locale: str) -> dict | None:
        """Returns the {description, summary} localization for the locale, if IGDB has one."""
        if not self.can_answer(game_id):
            return None
        body = f'fields description, summary, locale; where game = {int(game_id)} & locale = "{locale}";'
        results = await self._query("game_localizations", body, game_id)
        return results[0] if results else None
