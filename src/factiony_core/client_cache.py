"""
Read-through cache in front of the single and batch endpoints.

Reads go memory -> durable local cache -> in-flight request -> network, and at
most one network request per key is outstanding at any time: concurrent
callers share the same asyncio.Task. Registries are only touched when a
request starts and when it settles, which needs no lock on a single event loop.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Protocol

import aiohttp
from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .batch import BatchResolver, dedupe
from .constants import CACHE_TTL, CLIENT_BATCH_TIMEOUT, CLIENT_MEMORY_MAX_ENTRIES, CLIENT_SINGLE_TIMEOUT, DEFAULT_LOCALE
from .db.models import LocalBase, LocalCacheEntry
from .exceptions import FactionyException, GameNotFound, StoreUnavailable
from .models import GameRecord
from .network import request_json
from .resolver import GameResolver
from .store import GameStore

logger = logging.getLogger(__name__)


class LocalCache:
    """
    Durable local cache that survives restarts, with synchronous reads.
    Rows older than ttl read as misses and are dropped.
    """

    def __init__(self, path: str = ":memory:", ttl: float = CACHE_TTL):
        self.path = path
        self.ttl = ttl
        if path == ":memory:":
            # One shared connection, otherwise every session sees an empty database
            self.engine = create_engine("sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
        else:
            if os.path.dirname(path):
                os.makedirs(os.path.dirname(path), exist_ok=True)
            self.engine = create_engine(f"sqlite:///{path}")
        LocalBase.metadata.create_all(self.engine)
        self.session_factory = sessionmaker(self.engine, expire_on_commit=False)

    def get_entry(self, key: str) -> tuple[dict[str, Any], float] | None:
        """Returns (payload, fetched_at) for a live row."""
        try:
            with self.session_factory() as session:
                row = session.get(LocalCacheEntry, key)
                if row is None:
                    return None
                if time.time() - row.fetched_at > self.ttl:
                    session.delete(row)
                    session.commit()
                    return None
                return row.data, row.fetched_at
        except (SQLAlchemyError, ValueError) as e:
            logger.error(f"Local cache read error for {key}: {e}")
            return None

    def get(self, key: str) -> dict[str, Any] | None:
        entry = self.get_entry(key)
        return entry[0] if entry is not None else None

    def set(self, key: str, payload: dict[str, Any], fetched_at: float | None = None):
        row = LocalCacheEntry(
            key=key,
            fetched_at=fetched_at if fetched_at is not None else time.time(),
            data=payload,
        )
        try:
            with self.session_factory() as session:
                session.merge(row)
                session.commit()
        except (SQLAlchemyError, TypeError, ValueError) as e:
            logger.error(f"Local cache write error for {key}: {e}")

    def delete(self, key: str):
        try:
            with self.session_factory() as session:
                session.execute(delete(LocalCacheEntry).where(LocalCacheEntry.key == key))
                session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Local cache delete error for {key}: {e}")

    def clear(self) -> int:
        try:
            with self.session_factory() as session:
                result = session.execute(delete(LocalCacheEntry))
                session.commit()
                return result.rowcount
        except SQLAlchemyError as e:
            logger.error(f"Error clearing local cache: {e}")
            return 0

    def count(self) -> int:
        try:
            with self.session_factory() as session:
                return session.scalar(select(func.count()).select_from(LocalCacheEntry)) or 0
        except SQLAlchemyError as e:
            logger.error(f"Error reading local cache stats: {e}")
            return 0

    def close(self):
        self.engine.dispose()


class GameDataClient(Protocol):
    async def fetch_single(self, game_id: str, locale: str) -> GameRecord | None: ...

    async def fetch_batch(self, game_ids: list[str], locale: str) -> dict[str, GameRecord | None]: ...


class HttpGameDataClient:
    """Talks to the fetch-game-data / fetch-games-data endpoints."""

    PROVIDER = "Factiony API"

    def __init__(self, session: aiohttp.ClientSession, base_url: str, api_key: str | None = None):
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}

    async def fetch_single(self, game_id: str, locale: str) -> GameRecord | None:
        try:
            data = await request_json(
                self.session,
                "GET",
                f"{self.base_url}/fetch-game-data",
                self.PROVIDER,
                identifier=game_id,
                timeout=CLIENT_SINGLE_TIMEOUT,
                params={"gameId": game_id, "locale": locale},
                headers=self.headers,
            )
        except GameNotFound:
            return None
        if not data or not data.get("ok"):
            return None
        return GameRecord.from_payload(data.get("game"))

    async def fetch_batch(self, game_ids: list[str], locale: str) -> dict[str, GameRecord | None]:
        data = await request_json(
            self.session,
            "GET",
            f"{self.base_url}/fetch-games-data",
            self.PROVIDER,
            timeout=CLIENT_BATCH_TIMEOUT,
            params={"ids": ",".join(game_ids), "locale": locale},
            headers=self.headers,
        )
        games = (data or {}).get("games") or {}
        return {game_id: GameRecord.from_payload(games.get(game_id)) for game_id in game_ids}


class ResolverGameDataClient:
    """In-process client that calls the resolvers directly."""

    def __init__(self, resolver: GameResolver, batch_resolver: BatchResolver):
        self.resolver = resolver
        self.batch_resolver = batch_resolver

    async def fetch_single(self, game_id: str, locale: str) -> GameRecord | None:
        return await self.resolver.get_game(game_id, locale)

    async def fetch_batch(self, game_ids: list[str], locale: str) -> dict[str, GameRecord | None]:
        return await self.batch_resolver.resolve_many(game_ids, locale)


@dataclass
class CachedGame:
    record: GameRecord
    from_cache: bool


async def fetch_game_from_cache_or_api(
    store: GameStore, client: GameDataClient, game_id: str, locale: str = DEFAULT_LOCALE
) -> CachedGame | None:
    """
    Reads the shared api cache table first and only calls the endpoint on a
    miss or an expired entry. The flag tells callers which path answered.
    Never raises; an unreachable endpoint reads as None.
    """
    game_id = str(game_id).strip()
    try:
        entry = await store.get_cache_entry(game_id, locale)
    except StoreUnavailable as e:
        logger.warning(f"Api cache unavailable for {game_id}, asking the endpoint: {e}")
        entry = None

    if entry is not None and not entry.is_expired():
        record = entry.record
        if record is not None:
            return CachedGame(record, from_cache=True)

    try:
        record = await client.fetch_single(game_id, locale)
    except FactionyException as e:
        logger.warning(f"Fetching game {game_id} failed: {e}")
        return None
    return CachedGame(record, from_cache=False) if record is not None else None


async def fetch_games_from_cache_or_api(
    store: GameStore, client: GameDataClient, game_ids: list[str], locale: str = DEFAULT_LOCALE
) -> list[CachedGame]:
    """Sequential lookups in input order; games that resolve to nothing are left out."""
    results = []
    for game_id in game_ids:
        found = await fetch_game_from_cache_or_api(store, client, game_id, locale)
        if found is not None:
            results.append(found)
    return results


@dataclass
class InflightBatch:
    game_ids: frozenset[str]
    locale: str
    task: "asyncio.Task[dict[str, GameRecord | None]]"


@dataclass
class _Cached:
    record: GameRecord
    timestamp: float


class GameDataCache:
    """
    Process-scoped read-through cache. Construct one per process (or per test)
    and share it; it never calls providers itself, only the injected client.
    """

    def __init__(
        self,
        client: GameDataClient,
        local_cache: LocalCache | None = None,
        ttl: float = CACHE_TTL,
        max_entries: int = CLIENT_MEMORY_MAX_ENTRIES,
    ):
        self.client = client
        self.local_cache = local_cache
        self.ttl = ttl
        self.max_entries = max_entries
        self._memory: dict[str, _Cached] = {}
        self._inflight_single: dict[str, asyncio.Task] = {}
        self._inflight_batches: list[InflightBatch] = []

    @staticmethod
    def cache_key(game_id: str, locale: str) -> str:
        return f"{locale}:{game_id}"

    def _get_cached(self, key: str) -> GameRecord | None:
        cached = self._memory.get(key)
        if cached is not None:
            if time.time() - cached.timestamp <= self.ttl:
                return cached.record
            del self._memory[key]

        if self.local_cache is None:
            return None
        stored = self.local_cache.get_entry(key)
        if stored is None:
            return None
        payload, fetched_at = stored
        record = GameRecord.from_payload(payload)
        if record is not None:
            # Keep the original fetch time so the memory copy expires with the durable one
            self._remember(key, record, fetched_at)
        return record

    def _remember(self, key: str, record: GameRecord, fetched_at: float):
        self._memory.pop(key, None)
        self._memory[key] = _Cached(record, fetched_at)
        if len(self._memory) <= self.max_entries:
            return
        now = time.time()
        self._memory = {k: v for k, v in self._memory.items() if now - v.timestamp <= self.ttl}
        # Insertion order is recency order; evict the oldest first
        while len(self._memory) > self.max_entries:
            self._memory.pop(next(iter(self._memory)))

    def _set_cached(self, key: str, record: GameRecord):
        self._remember(key, record, time.time())
        if self.local_cache is not None:
            self.local_cache.set(key, record.to_payload())

    def _find_batch(self, game_id: str, locale: str) -> InflightBatch | None:
        for batch in self._inflight_batches:
            if batch.locale == locale and game_id in batch.game_ids:
                return batch
        return None

    async def _fetch_single(self, game_id: str, locale: str, key: str) -> GameRecord | None:
        started = time.monotonic()
        try:
            record = await self.client.fetch_single(game_id, locale)
            if record is not None:
                self._set_cached(key, record)
            logger.debug(f"Single fetch for {game_id} completed in {(time.monotonic() - started) * 1000:.0f}ms")
            return record
        except Exception as e:
            logger.error(f"Single fetch failed for {game_id}: {e}")
            return None
        finally:
            self._inflight_single.pop(key, None)

    async def _fetch_batch(self, batch_ids: list[str], locale: str) -> dict[str, GameRecord | None]:
        started = time.monotonic()
        try:
            games = await self.client.fetch_batch(batch_ids, locale)
        except Exception as e:
            logger.error(f"Batch fetch of {len(batch_ids)} game(s) failed: {e}")
            return {}
        finally:
            self._inflight_batches = [b for b in self._inflight_batches if b.task is not asyncio.current_task()]

        for game_id, record in games.items():
            if record is not None:
                self._set_cached(self.cache_key(game_id, locale), record)
        elapsed_ms = (time.monotonic() - started) * 1000
        logger.debug(f"Batch fetch of {len(batch_ids)} game(s) completed in {elapsed_ms:.0f}ms")
        return games

    async def get_game(self, game_id: str, locale: str = DEFAULT_LOCALE) -> GameRecord | None:
        game_id = str(game_id).strip()
        key = self.cache_key(game_id, locale)

        cached = self._get_cached(key)
        if cached is not None:
            logger.debug(f"Cache hit: {game_id}")
            return cached

        task = self._inflight_single.get(key)
        if task is not None:
            logger.debug(f"Waiting for in-flight single request: {game_id}")
            return await asyncio.shield(task)

        batch = self._find_batch(game_id, locale)
        if batch is not None:
            logger.debug(f"Waiting for in-flight batch request: {game_id}")
            results = await asyncio.shield(batch.task)
            return results.get(game_id)

        task = asyncio.ensure_future(self._fetch_single(game_id, locale, key))
        self._inflight_single[key] = task
        return await asyncio.shield(task)

    async def get_games(self, game_ids: list[str], locale: str = DEFAULT_LOCALE) -> dict[str, GameRecord | None]:
        """
        Returns one entry per distinct input id; None stands for "resolved to
        absent". Never raises because of a failed fetch.
        """
        unique = dedupe(game_ids)
        result: dict[str, GameRecord | None] = {game_id: None for game_id in unique}

        to_fetch = []
        for game_id in unique:
            cached = self._get_cached(self.cache_key(game_id, locale))
            if cached is not None:
                result[game_id] = cached
            else:
                to_fetch.append(game_id)

        if not to_fetch:
            logger.debug(f"All {len(unique)} game(s) served from cache")
            return result
        logger.debug(f"{len(unique) - len(to_fetch)}/{len(unique)} game(s) from cache, fetching {len(to_fetch)}")

        # Reuse whatever is already on the wire for this locale
        waiting: dict[str, asyncio.Future] = {}
        remaining = []
        for game_id in to_fetch:
            single = self._inflight_single.get(self.cache_key(game_id, locale))
            batch = self._find_batch(game_id, locale)
            if single is not None:
                waiting[game_id] = single
            elif batch is not None:
                waiting[game_id] = batch.task
            else:
                remaining.append(game_id)

        if remaining:
            task = asyncio.ensure_future(self._fetch_batch(remaining, locale))
            self._inflight_batches.append(InflightBatch(frozenset(remaining), locale, task))
            for game_id in remaining:
                waiting[game_id] = task

        distinct = list({id(task): task for task in waiting.values()}.values())
        outcomes = await asyncio.shield(asyncio.gather(*distinct))
        by_task = {id(task): outcome for task, outcome in zip(distinct, outcomes)}

        for game_id, task in waiting.items():
            outcome = by_task[id(task)]
            result[game_id] = outcome.get(game_id) if isinstance(outcome, dict) else outcome
        return result

    def clear(self):
        self._memory.clear()
        if self.local_cache is not None:
            removed = self.local_cache.clear()
            logger.info(f"Cleared {removed} item(s) from the local cache")

    def stats(self) -> dict[str, int]:
        return {
            "memory_size": len(self._memory),
            "local_size": self.local_cache.count() if self.local_cache is not None else 0,
            "inflight_single": len(self._inflight_single),
            "inflight_batches": len(self._inflight_batches),
        }
