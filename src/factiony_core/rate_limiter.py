import asyncio
import time


class RateLimiter:
    """
    Minimum-interval limiter shared by every call a provider manager makes.
    Concurrent resolutions queue on the lock, so a burst of lookups is spread
    out instead of tripping the provider's 429 guard.
    """

    def __init__(self, calls_per_second: float = 1.0):
        self.delay = 1.0 / calls_per_second if calls_per_second > 0 else 0
        self.last_call = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self):
        """Waits until the provider may be called again."""
        if not self.delay:
            return

        async with self._lock:
            elapsed = time.monotonic() - self.last_call
            if self.last_call and elapsed < self.delay:
                await asyncio.sleep(self.delay - elapsed)
            self.last_call = time.monotonic()

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False
