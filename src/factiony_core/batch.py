import asyncio
import logging
import time

from .constants import MAX_CONCURRENT_API_CALLS
from .models import GameRecord
from .resolver import GameResolver

logger = logging.getLogger(__name__)


def dedupe(identifiers: list[str]) -> list[str]:
    """Strips blanks and duplicates, keeping first-seen order."""
    seen: dict[str, None] = {}
    for identifier in identifiers:
        identifier = str(identifier).strip()
        if identifier:
            seen.setdefault(identifier, None)
    return list(seen)


def parse_ids(param: str | None) -> list[str]:
    """Splits the comma-separated ids query parameter."""
    return dedupe((param or "").split(","))


class BatchResolver:
    """
    Resolves many identifiers with the minimal resolver variant.

    Identifiers are processed in chunks of max_concurrent; chunks run one after
    another and the lookups inside a chunk run concurrently. The result holds
    exactly one entry per distinct identifier, None for not-found or failures.
    """

    def __init__(self, resolver: GameResolver, max_concurrent: int = MAX_CONCURRENT_API_CALLS):
        self.resolver = resolver
        self.max_concurrent = max(1, max_concurrent)

    async def _resolve_one(self, identifier: str, locale: str) -> GameRecord | None:
        try:
            return await self.resolver.get_game_minimal(identifier, locale)
        except Exception as e:
            logger.exception(f"Batch lookup failed for {identifier}: {e}")
            return None

    async def resolve_many(self, identifiers: list[str], locale: str | None = None) -> dict[str, GameRecord | None]:
        unique = dedupe(identifiers)
        results: dict[str, GameRecord | None] = {}
        if not unique:
            return results

        started = time.monotonic()
        for start in range(0, len(unique), self.max_concurrent):
            chunk = unique[start : start + self.max_concurrent]
            records = await asyncio.gather(*(self._resolve_one(identifier, locale) for identifier in chunk))
            results.update(zip(chunk, records))

        found = sum(1 for record in results.values() if record is not None)
        elapsed_ms = (time.monotonic() - started) * 1000
        logger.info(
            f"Batch resolved {found}/{len(unique)} game(s) in {elapsed_ms:.0f}ms "
            f"({elapsed_ms / len(unique):.1f}ms per game)"
        )
        return results
