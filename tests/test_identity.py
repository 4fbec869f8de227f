from unittest.mock import AsyncMock

import pytest
from factories import make_rawg, rawg_game

from factiony_core.exceptions import NetworkError
from factiony_core.identity import (
    SOURCE_FALLBACK,
    SOURCE_NUMERIC,
    SOURCE_PAYLOAD,
    SOURCE_SLUG,
    resolve_identifier,
)
from factiony_core.models import GameRecord


@pytest.mark.asyncio
async def test_payload_id_wins():
    rawg = make_rawg(rawg_game())
    resolved = await resolve_identifier("some-slug", GameRecord(id=42, slug="some-slug"), rawg)

    assert resolved.id == "42"
    assert resolved.source == SOURCE_PAYLOAD == "payload_id"
    assert resolved.confident
    rawg.resolve_slug.assert_not_called()


@pytest.mark.asyncio
async def test_numeric_identifier_after_cleaning():
    resolved = await resolve_identifier("3498_fr", None, make_rawg(rawg_game()))
    assert resolved.id == "3498"
    assert resolved.source == SOURCE_NUMERIC
    assert resolved.numeric


@pytest.mark.asyncio
async def test_slug_resolved_through_provider():
    rawg = make_rawg(rawg_game(game_id=3328, slug="the-witcher-3-wild-hunt"))
    known = GameRecord(slug="the-witcher-3-wild-hunt")

    resolved = await resolve_identifier("The Witcher 3 (2015)", known, rawg)

    assert resolved.id == "3328"
    assert resolved.source == SOURCE_SLUG
    rawg.resolve_slug.assert_awaited_once_with("the-witcher-3-wild-hunt")


@pytest.mark.asyncio
async def test_unresolvable_slug_is_flagged():
    rawg = make_rawg(None)
    resolved = await resolve_identifier("unknown-game", None, rawg)

    assert resolved.id == "unknown-game"
    assert resolved.source == SOURCE_FALLBACK
    assert not resolved.confident


@pytest.mark.asyncio
async def test_provider_failure_degrades_to_fallback():
    rawg = make_rawg(rawg_game())
    rawg.resolve_slug = AsyncMock(side_effect=NetworkError("timeout"))

    resolved = await resolve_identifier("grand-theft-auto-v", None, rawg)
    assert resolved.source == SOURCE_FALLBACK


@pytest.mark.asyncio
async def test_disabled_provider_skips_lookup():
    rawg = make_rawg(rawg_game())
    rawg.enabled = False

    resolved = await resolve_identifier("grand-theft-auto-v", None, rawg)
    assert resolved.source == SOURCE_FALLBACK
    rawg.resolve_slug.assert_not_called()
