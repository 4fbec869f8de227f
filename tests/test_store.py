import time
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from factiony_core.exceptions import StoreUnavailable
from factiony_core.models import GameRecord
from factiony_core.store import GameStore, cache_key


def record(game_id=3498, **extra):
    defaults = {"slug": "grand-theft-auto-v", "name": "Grand Theft Auto V", "released": "2013-09-17", "metacritic": 92.0}
    defaults.update(extra)
    return GameRecord(id=game_id, **defaults)


def test_cache_key_is_identifier_and_locale():
    assert cache_key("witcher-3", "fr") == "witcher-3_fr"
    assert cache_key(3328, "en") == "3328_en"


@pytest.mark.asyncio
async def test_canonical_roundtrip(memory_store: GameStore):
    assert await memory_store.get_canonical("3498") is None

    await memory_store.upsert_canonical(record(screenshots=["a.jpg"], updated_at=1000.0))
    stored = await memory_store.get_canonical(3498)

    assert stored is not None
    assert stored.name == "Grand Theft Auto V"
    assert stored.screenshots == ["a.jpg"]
    assert stored.updated_at == 1000.0


@pytest.mark.asyncio
async def test_canonical_upsert_overwrites(memory_store: GameStore):
    await memory_store.upsert_canonical(record(name="Old Name"))
    await memory_store.upsert_canonical(record(name="New Name"))

    stored = await memory_store.get_canonical("3498")
    assert stored.name == "New Name"


@pytest.mark.asyncio
async def test_canonical_requires_numeric_id(memory_store: GameStore):
    with pytest.raises(ValueError):
        await memory_store.upsert_canonical(GameRecord(slug="no-id"))


@pytest.mark.asyncio
async def test_cache_entry_expiry(memory_store: GameStore):
    payload = record().to_payload()
    await memory_store.upsert_cache_entry("grand-theft-auto-v", "en", payload, ttl=60)

    entry = await memory_store.get_cache_entry("grand-theft-auto-v", "en")
    assert entry is not None
    assert entry.key == "grand-theft-auto-v_en"
    assert not entry.is_expired()
    assert entry.is_expired(time.time() + 120)
    assert entry.record.id == 3498

    # Locale is part of the key
    assert await memory_store.get_cache_entry("grand-theft-auto-v", "fr") is None


@pytest.mark.asyncio
async def test_update_cache_payload(memory_store: GameStore):
    assert await memory_store.update_cache_payload("3498", "en", {"id": 3498}) is False

    await memory_store.upsert_cache_entry("3498", "en", {"id": 3498}, ttl=10)
    before = await memory_store.get_cache_entry("3498", "en")

    updated = await memory_store.update_cache_payload("3498", "en", {"id": 3498, "name": "GTA V"}, ttl=3600)
    after = await memory_store.get_cache_entry("3498", "en")

    assert updated is True
    assert after.payload["name"] == "GTA V"
    assert after.expires_at > before.expires_at


@pytest.mark.asyncio
async def test_update_cache_payload_keeps_expiry_without_ttl(memory_store: GameStore):
    await memory_store.upsert_cache_entry("3498", "en", {"id": 3498}, ttl=10)
    before = await memory_store.get_cache_entry("3498", "en")

    await memory_store.update_cache_payload("3498", "en", {"id": 3498, "name": "GTA V"})
    after = await memory_store.get_cache_entry("3498", "en")

    assert after.expires_at == before.expires_at


@pytest.mark.asyncio
async def test_purge_expired(memory_store: GameStore):
    await memory_store.upsert_cache_entry("1", "en", {"id": 1}, ttl=-1)
    await memory_store.upsert_cache_entry("2", "en", {"id": 2}, ttl=3600)

    assert await memory_store.purge_expired() == 1
    assert await memory_store.get_cache_entry("1", "en") is None
    assert await memory_store.get_cache_entry("2", "en") is not None


@pytest.mark.asyncio
async def test_community_rating(memory_store: GameStore):
    assert await memory_store.get_community_rating("3498") is None
    await memory_store.set_community_rating("3498", 4.5, ratings_count=12)
    assert await memory_store.get_community_rating(3498) == 4.5


@pytest.mark.asyncio
async def test_top_rated_order_and_filters(memory_store: GameStore):
    await memory_store.upsert_canonical(record(1, name="Rated High", metacritic=80.0))
    await memory_store.upsert_canonical(record(2, name="Metacritic Only", metacritic=97.0))
    await memory_store.upsert_canonical(record(3, name="Unreleased", released="2999-01-01"))
    await memory_store.upsert_canonical(record(4, name="No Score", metacritic=None))
    await memory_store.set_community_rating("1", 4.9, ratings_count=3)

    top = await memory_store.get_top_rated(10)

    assert [r.name for r in top] == ["Rated High", "Metacritic Only"]
    assert top[0].community_rating == 4.9
    assert top[1].community_rating is None


@pytest.mark.asyncio
async def test_clear(memory_store: GameStore):
    await memory_store.upsert_canonical(record())
    await memory_store.upsert_cache_entry("3498", "en", {"id": 3498}, ttl=60)
    await memory_store.clear()

    assert await memory_store.get_canonical("3498") is None
    assert await memory_store.get_cache_entry("3498", "en") is None


@pytest.mark.asyncio
async def test_database_errors_are_wrapped():
    db = MagicMock()
    db.connected = True
    failing = MagicMock()
    failing.__aenter__.side_effect = OperationalError("SELECT", {}, Exception("database is locked"))
    db.session = failing
    store = GameStore(db)

    with pytest.raises(StoreUnavailable) as exc_info:
        await store.get_canonical("3498")
    assert exc_info.value.operation == "get_canonical"

    with pytest.raises(StoreUnavailable):
        await store.purge_expired()
