import logging
from dataclasses import dataclass

import aiohttp
from aiohttp import web

from factiony_core.batch import BatchResolver, parse_ids
from factiony_core.constants import DISCOVERY_DEFAULT_LIMIT
from factiony_core.db import Database
from factiony_core.discovery import DiscoveryCatalog
from factiony_core.enrichment import Enricher
from factiony_core.igdb_api_manager import IgdbAPIManager
from factiony_core.rawg_api_manager import RawgAPIManager
from factiony_core.resolver import GameResolver
from factiony_core.store import GameStore
from factiony_core.sweeper import CacheSweeper
from factiony_core.translate_api_manager import TranslateAPIManager
from factiony_core.youtube_api_manager import YouTubeAPIManager

from .config import (
    DATABASE_URL,
    DEFAULT_LOCALE,
    IGDB_ACCESS_TOKEN,
    IGDB_CLIENT_ID,
    RAWG_API_KEY,
    SWEEP_INTERVAL,
    YOUTUBE_API_KEY,
)

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
}
GAME_CACHE_CONTROL = "public, max-age=604800"


@dataclass
class Services:
    """Everything the handlers need, built once per application."""

    resolver: GameResolver
    batch_resolver: BatchResolver
    discovery: DiscoveryCatalog
    default_locale: str = DEFAULT_LOCALE
    store: GameStore | None = None
    sweeper: CacheSweeper | None = None
    session: aiohttp.ClientSession | None = None

    async def close(self):
        if self.sweeper:
            await self.sweeper.stop()
        if self.session:
            await self.session.close()
        if self.store:
            await self.store.close()


SERVICES = web.AppKey("services", Services)


async def build_services() -> Services:
    session = aiohttp.ClientSession()
    store = GameStore(Database(DATABASE_URL))
    await store.setup()

    rawg = RawgAPIManager(session=session, api_key=RAWG_API_KEY)
    igdb = IgdbAPIManager(session=session, client_id=IGDB_CLIENT_ID, access_token=IGDB_ACCESS_TOKEN)
    youtube = YouTubeAPIManager(session=session, api_key=YOUTUBE_API_KEY)
    translator = TranslateAPIManager(session=session)

    if not rawg.enabled:
        logger.warning("RAWG_API_KEY is not set. Media and buy link enrichment will be disabled.")
    if not igdb.enabled:
        logger.warning("IGDB credentials are not set. IGDB data will be skipped.")

    enricher = Enricher(store, rawg, youtube=youtube, translator=translator, default_locale=DEFAULT_LOCALE)
    resolver = GameResolver(store, rawg, igdb, enricher, default_locale=DEFAULT_LOCALE)
    sweeper = CacheSweeper(store, interval=SWEEP_INTERVAL)
    sweeper.start()

    return Services(
        resolver=resolver,
        batch_resolver=BatchResolver(resolver),
        discovery=DiscoveryCatalog(store, rawg),
        default_locale=DEFAULT_LOCALE,
        store=store,
        sweeper=sweeper,
        session=session,
    )


def _json(payload: dict, status: int = 200, cache: bool = False) -> web.Response:
    headers = {"Cache-Control": GAME_CACHE_CONTROL} if cache else None
    return web.json_response(payload, status=status, headers=headers)


@web.middleware
async def cors_middleware(request: web.Request, handler):
    if request.method == "OPTIONS":
        return web.Response(status=200, text="ok", headers=CORS_HEADERS)
    try:
        response = await handler(request)
    except web.HTTPException as e:
        e.headers.update(CORS_HEADERS)
        raise
    response.headers.update(CORS_HEADERS)
    return response


async def fetch_game_data(request: web.Request) -> web.Response:
    services = request.app[SERVICES]
    game_id = request.query.get("gameId", "").strip()
    locale = request.query.get("locale") or services.default_locale
    if not game_id:
        return _json({"ok": False, "error": "Missing gameId parameter"}, status=400)

    try:
        record = await services.resolver.get_game(game_id, locale)
    except Exception as e:
        logger.exception(f"Unexpected error fetching game {game_id}: {e}")
        return _json({"ok": False, "error": "Server error", "details": str(e)}, status=500)

    if record is None:
        return _json({"ok": False, "error": "Game not found in any API"}, status=404)
    return _json({"ok": True, "game": record.to_payload()}, cache=True)


async def fetch_games_data(request: web.Request) -> web.Response:
    services = request.app[SERVICES]
    ids = parse_ids(request.query.get("ids"))
    locale = request.query.get("locale") or services.default_locale
    if not ids:
        return _json({"ok": False, "error": "Missing ids parameter"}, status=400)

    try:
        games = await services.batch_resolver.resolve_many(ids, locale)
    except Exception as e:
        logger.exception(f"Unexpected error fetching {len(ids)} game(s): {e}")
        return _json({"ok": False, "error": "Server error", "details": str(e)}, status=500)

    payload = {game_id: record.to_payload() if record is not None else None for game_id, record in games.items()}
    return _json({"ok": True, "games": payload}, cache=True)


async def get_discovery_catalog(request: web.Request) -> web.Response:
    services = request.app[SERVICES]
    try:
        limit = int(request.query.get("limit", DISCOVERY_DEFAULT_LIMIT))
    except ValueError:
        limit = DISCOVERY_DEFAULT_LIMIT

    try:
        result = await services.discovery.get_top_rated(limit)
    except Exception as e:
        logger.exception(f"Unexpected error building discovery catalog: {e}")
        return _json({"ok": False, "error": "Server error", "details": str(e)}, status=500)
    return _json(result.to_payload())


def create_app(services: Services | None = None) -> web.Application:
    """
    Builds the application. With no services given, they are created on
    startup from the environment and torn down on cleanup.
    """
    app = web.Application(middlewares=[cors_middleware])
    if services is not None:
        app[SERVICES] = services

    async def on_startup(app: web.Application):
        if services is None:
            app[SERVICES] = await build_services()
        logger.info("Factiony API ready")

    async def on_cleanup(app: web.Application):
        if services is None and SERVICES in app:
            await app[SERVICES].close()

    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)

    app.router.add_get("/fetch-game-data", fetch_game_data)
    app.router.add_get("/fetch-games-data", fetch_games_data)
    app.router.add_get("/get-discovery-catalog", get_discovery_catalog)
    return app
