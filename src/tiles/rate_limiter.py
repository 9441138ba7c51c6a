"""Global limiter for upstream tile requests.

Two limits are enforced for every caller in the process:
- at most ``max_concurrent`` requests in flight, extra callers queue FIFO;
- successive dispatches are at least ``1 / requests_per_second`` apart.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from typing import TYPE_CHECKING, Any, TypeVar

from shared.constants import RATE_LIMIT_MAX_CONCURRENT, RATE_LIMIT_REQUESTS_PER_SECOND

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RateLimiter:
    """FIFO concurrency cap plus minimum spacing between dispatches.

    All state changes happen synchronously between awaits on the event loop,
    so they are atomic with respect to each other. No lock is held while a
    caller sleeps.

    Usage:
        limiter = RateLimiter(max_concurrent=2, requests_per_second=2)
        async with limiter.slot():
            await do_request()
    """

    def __init__(
        self,
        max_concurrent: int = RATE_LIMIT_MAX_CONCURRENT,
        requests_per_second: float = RATE_LIMIT_REQUESTS_PER_SECOND,
    ) -> None:
        if max_concurrent < 1:
            msg = 'max_concurrent must be at least 1'
            raise ValueError(msg)
        self.max_concurrent = max_concurrent
        self.min_interval = 1.0 / requests_per_second if requests_per_second > 0 else 0.0
        self._active = 0
        self._waiters: deque[asyncio.Future[None]] = deque()
        self._next_dispatch_at: float | None = None
        self._dispatched = 0

    @property
    def active(self) -> int:
        return self._active

    @property
    def queued(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    async def acquire(self) -> None:
        """Wait for a concurrency slot, then for the dispatch spacing."""
        loop = asyncio.get_running_loop()
        if self._active < self.max_concurrent and not self._waiters:
            self._active += 1
        else:
            waiter: asyncio.Future[None] = loop.create_future()
            self._waiters.append(waiter)
            try:
                await waiter
            except asyncio.CancelledError:
                if waiter.done() and not waiter.cancelled():
                    # Slot was handed over just before cancellation
                    self.release()
                else:
                    with contextlib.suppress(ValueError):
                        self._waiters.remove(waiter)
                raise

        try:
            await self._wait_for_spacing(loop)
        except BaseException:
            self.release()
            raise
        self._dispatched += 1

    async def _wait_for_spacing(self, loop: asyncio.AbstractEventLoop) -> None:
        now = loop.time()
        if self._next_dispatch_at is None:
            dispatch_at = now
        else:
            dispatch_at = max(now, self._next_dispatch_at)
        # Reserve the dispatch time before sleeping so later callers queue behind it
        self._next_dispatch_at = dispatch_at + self.min_interval
        while (delay := dispatch_at - loop.time()) > 0:
            await asyncio.sleep(delay)

    def release(self) -> None:
        """Free a slot, handing it directly to the oldest live waiter."""
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        self._active = max(0, self._active - 1)

    @contextlib.asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        await self.acquire()
        try:
            yield
        finally:
            self.release()

    async def run(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` inside a limiter slot."""
        async with self.slot():
            return await fn()

    def stats(self) -> dict[str, Any]:
        return {
            'max_concurrent': self.max_concurrent,
            'min_interval_s': self.min_interval,
            'active': self._active,
            'queued': self.queued,
            'dispatched': self._dispatched,
        }
