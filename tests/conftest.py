from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
import pytest_asyncio
from dotenv import load_dotenv
from factories import make_igdb, make_rawg, rawg_game

from factiony_core.db.engine import Database
from factiony_core.enrichment import Enricher
from factiony_core.resolver import GameResolver
from factiony_core.store import GameStore

load_dotenv()


@pytest_asyncio.fixture
async def session():
    async with aiohttp.ClientSession() as session:
        yield session


@pytest_asyncio.fixture
async def memory_store():
    # In-memory SQLite for fast testing
    store = GameStore(Database("sqlite+aiosqlite:///:memory:"))
    await store.setup()
    yield store
    await store.close()


@pytest.fixture
def rawg():
    return make_rawg(rawg_game())


@pytest.fixture
def igdb():
    return make_igdb()


@pytest.fixture
def youtube():
    youtube = MagicMock()
    youtube.enabled = True
    youtube.search_trailers = AsyncMock(return_value=[])
    return youtube


@pytest.fixture
def translator():
    translator = MagicMock()
    translator.translate = AsyncMock(side_effect=lambda text, source="en", target="fr": f"[{target}] {text}")
    return translator


@pytest.fixture
def enricher(memory_store, rawg, youtube, translator):
    return Enricher(memory_store, rawg, youtube=youtube, translator=translator)


@pytest.fixture
def resolver(memory_store, rawg, igdb, enricher):
    return GameResolver(memory_store, rawg, igdb, enricher)
