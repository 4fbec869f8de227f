import logging
import time
from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, desc, select
from sqlalchemy.exc import SQLAlchemyError

from .db.engine import Database
from .db.models import ApiCacheEntry, Game, GameStat
from .exceptions import StoreUnavailable
from .models import GameRecord

logger = logging.getLogger(__name__)


def cache_key(identifier: str | int, locale: str) -> str:
    return f"{identifier}_{locale}"


@dataclass
class CacheEntry:
    key: str
    payload: dict[str, Any]
    expires_at: float

    def is_expired(self, now: float | None = None) -> bool:
        return self.expires_at <= (now if now is not None else time.time())

    @property
    def record(self) -> GameRecord | None:
        return GameRecord.from_payload(self.payload)


class GameStore:
    """
    Adapter over the two durable stores: the canonical games table and the
    locale-scoped api cache table.

    Writes are plain last-write-wins upserts; merging happens before the call.
    Every database failure is raised as StoreUnavailable so callers can treat
    it as a miss.
    """

    def __init__(self, db: Database):
        self.db = db

    async def setup(self):
        if not self.db.connected:
            try:
                await self.db.connect()
            except SQLAlchemyError as e:
                raise StoreUnavailable("setup", e) from e

    async def close(self):
        await self.db.close()

    async def get_canonical(self, game_id: str | int) -> GameRecord | None:
        try:
            async with self.db.session as session:
                row = await session.get(Game, str(game_id))
        except SQLAlchemyError as e:
            raise StoreUnavailable("get_canonical", e) from e

        if not row:
            return None
        record = GameRecord.from_payload(row.payload)
        if record is not None:
            record.updated_at = row.updated_at
        return record

    async def upsert_canonical(self, record: GameRecord):
        if record.id is None:
            raise ValueError("Canonical records must carry a numeric id")

        if record.updated_at is None:
            record.updated_at = time.time()

        row = Game(
            id=str(record.id),
            slug=record.slug,
            name=record.name,
            released=record.released,
            metacritic=record.metacritic,
            source=record.source,
            payload=record.to_payload(),
            updated_at=record.updated_at,
        )
        try:
            async with self.db.session as session:
                await session.merge(row)
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreUnavailable("upsert_canonical", e) from e

    async def get_cache_entry(self, identifier: str | int, locale: str) -> CacheEntry | None:
        key = cache_key(identifier, locale)
        try:
            async with self.db.session as session:
                row = await session.get(ApiCacheEntry, key)
        except SQLAlchemyError as e:
            raise StoreUnavailable("get_cache_entry", e) from e

        if not row:
            return None
        return CacheEntry(key=row.cache_key, payload=row.payload, expires_at=row.expires_at)

    async def upsert_cache_entry(self, identifier: str | int, locale: str, payload: dict[str, Any], ttl: float):
        row = ApiCacheEntry(
            cache_key=cache_key(identifier, locale),
            payload=payload,
            expires_at=time.time() + ttl,
        )
        try:
            async with self.db.session as session:
                await session.merge(row)
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreUnavailable("upsert_cache_entry", e) from e

    async def update_cache_payload(
        self, identifier: str | int, locale: str, payload: dict[str, Any], ttl: float | None = None
    ) -> bool:
        """
        Enrichment write-back: replaces the payload of an existing entry and,
        when ttl is given, moves expires_at to now + ttl.
        Returns False when no entry exists for the key.
        """
        key = cache_key(identifier, locale)
        try:
            async with self.db.session as session:
                row = await session.get(ApiCacheEntry, key)
                if not row:
                    return False
                row.payload = payload
                if ttl is not None:
                    row.expires_at = time.time() + ttl
                await session.commit()
                return True
        except SQLAlchemyError as e:
            raise StoreUnavailable("update_cache_payload", e) from e

    async def get_community_rating(self, game_id: str | int) -> float | None:
        try:
            async with self.db.session as session:
                row = await session.get(GameStat, str(game_id))
        except SQLAlchemyError as e:
            raise StoreUnavailable("get_community_rating", e) from e
        return row.average_rating if row else None

    async def set_community_rating(self, game_id: str | int, average_rating: float | None, ratings_count: int = 0):
        try:
            async with self.db.session as session:
                await session.merge(
                    GameStat(game_id=str(game_id), average_rating=average_rating, ratings_count=ratings_count)
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreUnavailable("set_community_rating", e) from e

    async def get_top_rated(self, limit: int) -> list[GameRecord]:
        """
        Released games with a numeric metacritic score, best community rating
        first, then metacritic.
        """
        today = time.strftime("%Y-%m-%d", time.gmtime())
        stmt = (
            select(Game, GameStat.average_rating)
            .outerjoin(GameStat, GameStat.game_id == Game.id)
            .where(Game.metacritic.is_not(None), Game.released.is_not(None), Game.released <= today)
            .order_by(desc(GameStat.average_rating).nulls_last(), desc(Game.metacritic), Game.id)
            .limit(limit)
        )
        try:
            async with self.db.session as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as e:
            raise StoreUnavailable("get_top_rated", e) from e

        records = []
        for game, rating in rows:
            record = GameRecord.from_payload(game.payload)
            if record is None:
                continue
            record.community_rating = rating
            record.updated_at = game.updated_at
            records.append(record)
        return records

    async def purge_expired(self, now: float | None = None) -> int:
        cutoff = now if now is not None else time.time()
        try:
            async with self.db.session as session:
                result = await session.execute(delete(ApiCacheEntry).where(ApiCacheEntry.expires_at <= cutoff))
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreUnavailable("purge_expired", e) from e

        purged = result.rowcount or 0
        if purged:
            logger.info(f"Purged {purged} expired api cache entries")
        return purged

    async def clear(self):
        try:
            async with self.db.session as session:
                await session.execute(delete(ApiCacheEntry))
                await session.execute(delete(Game))
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreUnavailable("clear", e) from e
