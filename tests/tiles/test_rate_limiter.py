"""Tests for the global upstream rate limiter."""

from __future__ import annotations

import asyncio

import pytest

from tiles.rate_limiter import RateLimiter

# Scheduler jitter allowance for timing assertions (seconds)
JITTER = 0.01


class TestRateLimiter:
    """Tests for RateLimiter class."""

    def test_rejects_zero_concurrency(self):
        with pytest.raises(ValueError):
            RateLimiter(max_concurrent=0)

    def test_min_interval(self):
        assert RateLimiter(requests_per_second=4).min_interval == 0.25
        assert RateLimiter(requests_per_second=0).min_interval == 0.0

    @pytest.mark.asyncio
    async def test_concurrency_cap(self):
        """Never more than max_concurrent callers inside a slot."""
        limiter = RateLimiter(max_concurrent=2, requests_per_second=0)
        in_flight = 0
        peak = 0

        async def job():
            nonlocal in_flight, peak
            async with limiter.slot():
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.02)
                in_flight -= 1

        await asyncio.gather(*(job() for _ in range(8)))
        assert peak == 2
        assert limiter.active == 0
        assert limiter.queued == 0

    @pytest.mark.asyncio
    async def test_dispatch_spacing(self):
        """Successive dispatches are at least 1/requests_per_second apart."""
        limiter = RateLimiter(max_concurrent=3, requests_per_second=20)
        loop = asyncio.get_running_loop()
        stamps: list[float] = []

        async def job():
            async with limiter.slot():
                stamps.append(loop.time())
                await asyncio.sleep(0.01)

        await asyncio.gather(*(job() for _ in range(6)))
        stamps.sort()
        gaps = [b - a for a, b in zip(stamps, stamps[1:])]
        assert all(g >= limiter.min_interval - JITTER for g in gaps)
        assert stamps[-1] - stamps[0] >= 5 * limiter.min_interval - JITTER

    @pytest.mark.asyncio
    async def test_fifo_order(self):
        """Queued callers are admitted in arrival order."""
        limiter = RateLimiter(max_concurrent=1, requests_per_second=0)
        order: list[int] = []

        async def job(i: int):
            async with limiter.slot():
                order.append(i)
                await asyncio.sleep(0)

        await asyncio.gather(*(job(i) for i in range(5)))
        assert order == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_cancelled_waiter_leaves_queue(self):
        """A cancelled waiter neither keeps a queue place nor leaks a slot."""
        limiter = RateLimiter(max_concurrent=1, requests_per_second=0)
        await limiter.acquire()

        waiter = asyncio.create_task(limiter.acquire())
        await asyncio.sleep(0)
        assert limiter.queued == 1

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter
        assert limiter.queued == 0

        limiter.release()
        assert limiter.active == 0

    @pytest.mark.asyncio
    async def test_run_returns_result(self):
        limiter = RateLimiter(max_concurrent=1, requests_per_second=0)

        async def work():
            return 42

        assert await limiter.run(work) == 42
        assert limiter.stats()['dispatched'] == 1

    @pytest.mark.asyncio
    async def test_slot_released_on_error(self):
        limiter = RateLimiter(max_concurrent=1, requests_per_second=0)
        with pytest.raises(RuntimeError):
            async with limiter.slot():
                raise RuntimeError('boom')
        assert limiter.active == 0
