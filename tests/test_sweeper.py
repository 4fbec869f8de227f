import asyncio
from unittest.mock import AsyncMock

import pytest

from factiony_core.exceptions import StoreUnavailable
from factiony_core.sweeper import CacheSweeper


@pytest.mark.asyncio
async def test_run_once_purges_expired(memory_store):
    await memory_store.upsert_cache_entry("1", "en", {"id": 1}, ttl=-1)
    await memory_store.upsert_cache_entry("2", "en", {"id": 2}, ttl=3600)

    assert await CacheSweeper(memory_store).run_once() == 1
    assert await memory_store.get_cache_entry("2", "en") is not None


@pytest.mark.asyncio
async def test_failures_do_not_stop_the_loop():
    outcomes = [StoreUnavailable("purge_expired"), RuntimeError("boom")]

    async def purge_expired(now=None):
        if outcomes:
            raise outcomes.pop(0)
        return 0

    store = AsyncMock()
    store.purge_expired.side_effect = purge_expired
    sweeper = CacheSweeper(store, interval=0.01)

    sweeper.start()
    assert sweeper.running
    await asyncio.sleep(0.1)
    await sweeper.stop()

    assert not sweeper.running
    assert store.purge_expired.await_count >= 3


@pytest.mark.asyncio
async def test_stop_without_start():
    sweeper = CacheSweeper(AsyncMock())
    await sweeper.stop()
    assert not sweeper.running
