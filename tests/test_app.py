from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from factiony_api.app import Services, create_app
from factiony_core.discovery import DiscoveryResult
from factiony_core.models import GameRecord


@pytest.fixture
def services():
    resolver = MagicMock()
    resolver.get_game = AsyncMock(return_value=GameRecord(id=3498, name="Grand Theft Auto V"))
    batch_resolver = MagicMock()
    batch_resolver.resolve_many = AsyncMock(return_value={"1": GameRecord(id=1, name="One"), "2": None})
    discovery = MagicMock()
    discovery.get_top_rated = AsyncMock(
        return_value=DiscoveryResult(top_rated=[GameRecord(id=1, name="One")], db_count=1, used_fallback=True)
    )
    return Services(resolver=resolver, batch_resolver=batch_resolver, discovery=discovery)


@pytest_asyncio.fixture
async def client(services):
    async with TestClient(TestServer(create_app(services))) as client:
        yield client


@pytest.mark.asyncio
async def test_fetch_game_data(client, services):
    resp = await client.get("/fetch-game-data", params={"gameId": "3498", "locale": "fr"})
    body = await resp.json()

    assert resp.status == 200
    assert body["ok"] is True
    assert body["game"]["name"] == "Grand Theft Auto V"
    assert resp.headers["Cache-Control"] == "public, max-age=604800"
    assert resp.headers["Access-Control-Allow-Origin"] == "*"
    services.resolver.get_game.assert_awaited_once_with("3498", "fr")


@pytest.mark.asyncio
async def test_fetch_game_data_default_locale(client, services):
    await client.get("/fetch-game-data", params={"gameId": "3498"})
    services.resolver.get_game.assert_awaited_once_with("3498", "en")


@pytest.mark.asyncio
async def test_fetch_game_data_missing_id(client):
    resp = await client.get("/fetch-game-data")
    assert resp.status == 400
    assert (await resp.json())["ok"] is False


@pytest.mark.asyncio
async def test_fetch_game_data_not_found(client, services):
    services.resolver.get_game.return_value = None
    resp = await client.get("/fetch-game-data", params={"gameId": "nope"})

    assert resp.status == 404
    assert await resp.json() == {"ok": False, "error": "Game not found in any API"}


@pytest.mark.asyncio
async def test_fetch_game_data_unexpected_error(client, services):
    services.resolver.get_game.side_effect = RuntimeError("kaboom")
    resp = await client.get("/fetch-game-data", params={"gameId": "3498"})
    body = await resp.json()

    assert resp.status == 500
    assert body["error"] == "Server error"
    assert body["details"] == "kaboom"


@pytest.mark.asyncio
async def test_fetch_games_data(client, services):
    resp = await client.get("/fetch-games-data", params={"ids": "1,1,2"})
    body = await resp.json()

    assert resp.status == 200
    assert body["games"]["1"]["name"] == "One"
    assert body["games"]["2"] is None
    services.batch_resolver.resolve_many.assert_awaited_once_with(["1", "2"], "en")


@pytest.mark.asyncio
async def test_fetch_games_data_requires_ids(client):
    resp = await client.get("/fetch-games-data", params={"ids": " , "})
    assert resp.status == 400


@pytest.mark.asyncio
async def test_discovery_catalog(client, services):
    resp = await client.get("/get-discovery-catalog", params={"limit": "5"})
    body = await resp.json()

    assert resp.status == 200
    assert body["stats"] == {"dbCount": 1, "usedFallback": True, "finalCount": 1}
    assert body["topRated"][0]["name"] == "One"
    services.discovery.get_top_rated.assert_awaited_once_with(5)


@pytest.mark.asyncio
async def test_discovery_catalog_bad_limit(client, services):
    await client.get("/get-discovery-catalog", params={"limit": "lots"})
    services.discovery.get_top_rated.assert_awaited_once_with(12)


@pytest.mark.asyncio
async def test_options_preflight(client):
    resp = await client.options("/fetch-game-data")
    assert resp.status == 200
    assert resp.headers["Access-Control-Allow-Origin"] == "*"
    assert "GET" in resp.headers["Access-Control-Allow-Methods"]
