import asyncio
import logging
import time

from .exceptions import StoreUnavailable
from .store import GameStore

logger = logging.getLogger(__name__)


class CacheSweeper:
    """Periodically deletes expired api cache rows."""

    def __init__(self, store: GameStore, interval: float = 3600):
        self.store = store
        self.interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        try:
            removed = await self.store.purge_expired(time.time())
        except StoreUnavailable as e:
            logger.error(f"Cache sweep failed: {e}")
            return 0
        if removed:
            logger.info(f"Swept {removed} expired cache entr{'y' if removed == 1 else 'ies'}")
        return removed

    async def _loop(self):
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.run_once()
            except Exception as e:
                logger.exception(f"Unexpected error in cache sweep: {e}")

    def start(self):
        if self.running:
            return
        logger.info(f"Starting cache sweeper (every {self.interval:.0f}s)")
        self._task = asyncio.create_task(self._loop())

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
