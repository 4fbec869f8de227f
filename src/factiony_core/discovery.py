import logging
import time
from dataclasses import dataclass, field
from typing import Any

from .constants import DISCOVERY_DEFAULT_LIMIT, DISCOVERY_MIN_DB_ROWS
from .exceptions import FactionyException, StoreUnavailable
from .models import GameRecord
from .normalize import normalize_rawg_game
from .rawg_api_manager import RawgAPIManager
from .store import GameStore

logger = logging.getLogger(__name__)


@dataclass
class DiscoveryResult:
    top_rated: list[GameRecord] = field(default_factory=list)
    db_count: int = 0
    used_fallback: bool = False

    @property
    def final_count(self) -> int:
        return len(self.top_rated)

    def to_payload(self) -> dict[str, Any]:
        return {
            "ok": True,
            "topRated": [record.to_payload() for record in self.top_rated],
            "stats": {
                "dbCount": self.db_count,
                "usedFallback": self.used_fallback,
                "finalCount": self.final_count,
            },
        }


class DiscoveryCatalog:
    """
    Top-rated catalog served from the games table, seeded from RAWG whenever
    the table holds too few qualifying rows.
    """

    def __init__(self, store: GameStore, rawg: RawgAPIManager, min_db_rows: int = DISCOVERY_MIN_DB_ROWS):
        self.store = store
        self.rawg = rawg
        self.min_db_rows = min_db_rows

    async def _from_store(self, limit: int) -> list[GameRecord]:
        try:
            return await self.store.get_top_rated(limit)
        except StoreUnavailable as e:
            logger.error(f"Top rated query failed: {e}")
            return []

    async def _seed_from_rawg(self, limit: int) -> list[GameRecord]:
        try:
            results = await self.rawg.fetch_top_rated(limit)
        except FactionyException as e:
            logger.error(f"RAWG top rated fetch failed: {e}")
            return []

        today = time.strftime("%Y-%m-%d", time.gmtime())
        now = time.time()
        records = []
        for raw in results:
            game = normalize_rawg_game(raw)
            released = game.get("released")
            if not game.get("id") or not released or released > today or game.get("metacritic") is None:
                continue
            records.append(
                GameRecord(
                    id=game["id"],
                    slug=game.get("slug"),
                    name=game.get("name"),
                    description=game.get("description"),
                    released=released,
                    cover=game.get("background_image"),
                    background_image=game.get("background_image"),
                    metacritic=game["metacritic"],
                    playtime=game.get("playtime"),
                    genres=game.get("genres") or [],
                    tags=game.get("tags") or [],
                    platforms=game.get("platforms") or [],
                    developers=game.get("developers") or [],
                    publishers=game.get("publishers") or [],
                    source="rawg",
                    updated_at=now,
                )
            )
            if len(records) >= limit:
                break

        logger.info(f"RAWG top rated: {len(results)} fetched, {len(records)} valid")
        for record in records:
            try:
                await self.store.upsert_canonical(record)
            except StoreUnavailable as e:
                logger.error(f"Failed to store top rated game {record.id}: {e}")
        return records

    async def get_top_rated(self, limit: int = DISCOVERY_DEFAULT_LIMIT) -> DiscoveryResult:
        limit = max(1, limit)
        top_rated = await self._from_store(limit)
        result = DiscoveryResult(top_rated=top_rated, db_count=len(top_rated))

        if result.db_count < self.min_db_rows:
            logger.info(f"Only {result.db_count} top rated game(s) in the games table, seeding from RAWG")
            result.used_fallback = True
            seeded = await self._seed_from_rawg(limit)
            result.top_rated = await self._from_store(limit) or seeded

        logger.info(
            f"Discovery: db_count={result.db_count}, used_fallback={result.used_fallback}, "
            f"final_count={result.final_count}"
        )
        return result
