import asyncio
import time

import pytest

from factiony_core.rate_limiter import RateLimiter


@pytest.mark.asyncio
async def test_rate_limiter_initialization():
    limiter = RateLimiter(calls_per_second=5.0)
    assert limiter.delay == 0.2
    assert limiter.last_call == 0.0


@pytest.mark.asyncio
async def test_rate_limiter_acquire_wait():
    # 10 calls per second = 0.1s delay
    limiter = RateLimiter(calls_per_second=10.0)

    start = time.monotonic()
    await limiter.acquire()
    t1 = time.monotonic()
    await limiter.acquire()
    t2 = time.monotonic()

    # First call is instant, the second waits out the interval
    assert (t1 - start) < 0.05
    assert (t2 - t1) >= 0.09


@pytest.mark.asyncio
async def test_rate_limiter_spreads_concurrent_callers():
    limiter = RateLimiter(calls_per_second=20.0)  # 0.05s delay

    async def worker():
        async with limiter:
            return time.monotonic()

    results = sorted(await asyncio.gather(worker(), worker(), worker()))

    # 1st: instant, 2nd: +0.05s, 3rd: +0.10s
    assert (results[2] - results[0]) >= 0.09


@pytest.mark.asyncio
async def test_rate_limiter_unlimited():
    limiter = RateLimiter(calls_per_second=0)
    start = time.monotonic()
    for _ in range(5):
        await limiter.acquire()
    assert limiter.delay == 0
    assert (time.monotonic() - start) < 0.05
