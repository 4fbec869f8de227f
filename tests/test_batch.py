import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from factiony_core.batch import BatchResolver, dedupe, parse_ids
from factiony_core.models import GameRecord


def test_dedupe_keeps_first_seen_order():
    assert dedupe(["2", "1", "2", " 1 ", "", "3"]) == ["2", "1", "3"]


def test_parse_ids():
    assert parse_ids("1, 2,,3,1") == ["1", "2", "3"]
    assert parse_ids("") == []
    assert parse_ids(None) == []


def make_resolver(found=None):
    resolver = MagicMock()

    async def get_game_minimal(identifier, locale=None):
        if found is not None and identifier not in found:
            return None
        return GameRecord(id=int(identifier), name=f"Game {identifier}")

    resolver.get_game_minimal = AsyncMock(side_effect=get_game_minimal)
    return resolver


@pytest.mark.asyncio
async def test_duplicates_resolved_once():
    resolver = make_resolver()
    results = await BatchResolver(resolver).resolve_many(["1", "1", "2"], "en")

    assert set(results) == {"1", "2"}
    assert results["1"].name == "Game 1"
    assert resolver.get_game_minimal.await_count == 2


@pytest.mark.asyncio
async def test_every_key_present_even_on_failure():
    resolver = make_resolver(found={"1"})
    original = resolver.get_game_minimal.side_effect

    async def flaky(identifier, locale=None):
        if identifier == "3":
            raise RuntimeError("boom")
        return await original(identifier, locale)

    resolver.get_game_minimal.side_effect = flaky
    results = await BatchResolver(resolver).resolve_many(["1", "2", "3"], "en")

    assert results["1"] is not None
    assert results["2"] is None
    assert results["3"] is None


@pytest.mark.asyncio
async def test_chunks_run_sequentially():
    active = 0
    peak = 0

    async def get_game_minimal(identifier, locale=None):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return GameRecord(id=int(identifier))

    resolver = MagicMock()
    resolver.get_game_minimal = AsyncMock(side_effect=get_game_minimal)

    ids = [str(i) for i in range(1, 15)]
    results = await BatchResolver(resolver, max_concurrent=6).resolve_many(ids, "en")

    assert list(results) == ids
    assert peak == 6


@pytest.mark.asyncio
async def test_empty_input():
    resolver = make_resolver()
    assert await BatchResolver(resolver).resolve_many([], "en") == {}
    resolver.get_game_minimal.assert_not_called()
