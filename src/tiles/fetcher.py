"""Tile fetcher: memory cache, global rate limiting and retrying HTTP GETs."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import aiohttp

from domain.errors import UpstreamError
from shared.constants import (
    HTTP_2XX_MAX,
    HTTP_4XX_MAX,
    HTTP_4XX_MIN,
    HTTP_BACKOFF_BASE_MS,
    HTTP_OK,
    HTTP_RETRIES_DEFAULT,
    HTTP_TIMEOUT_MS,
    OSM_TILE_BASE,
    USER_AGENT,
)
from tiles.coverage import TileCoordinate

if TYPE_CHECKING:
    from tiles.cache import TileCache
    from tiles.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


def tile_url(base_url: str, zoom: int, x: int, y: int) -> str:
    return f'{base_url.rstrip("/")}/{zoom}/{x}/{y}.png'


class TileFetcher:
    """Fetch upstream tiles through the shared cache and rate limiter.

    The cache and limiter are process-wide objects created at startup and
    passed in; every request shares the same upstream budget.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        cache: TileCache,
        limiter: RateLimiter,
        *,
        base_url: str = OSM_TILE_BASE,
        timeout_s: float = HTTP_TIMEOUT_MS / 1000.0,
        max_retries: int = HTTP_RETRIES_DEFAULT,
        base_delay_s: float = HTTP_BACKOFF_BASE_MS / 1000.0,
        user_agent: str = USER_AGENT,
        referer: str | None = None,
    ) -> None:
        self.session = session
        self.cache = cache
        self.limiter = limiter
        self.base_url = base_url
        self.timeout_s = timeout_s
        self.max_retries = max(1, max_retries)
        self.base_delay_s = base_delay_s
        self.headers = {'User-Agent': user_agent}
        if referer:
            self.headers['Referer'] = referer

        self._stats_cache_hits = 0
        self._stats_cache_misses = 0
        self._stats_downloads = 0
        self._stats_errors = 0

    @property
    def stats(self) -> dict[str, Any]:
        return {
            'cache_hits': self._stats_cache_hits,
            'cache_misses': self._stats_cache_misses,
            'downloads': self._stats_downloads,
            'errors': self._stats_errors,
        }

    async def fetch_tile(self, zoom: int, x: int, y: int, base_url: str | None = None) -> bytes:
        """
        Return encoded bytes of tile z/x/y.

        Raises:
            UpstreamError: on a 4xx response or when all attempts failed.

        """
        coord = TileCoordinate(zoom=zoom, x=x, y=y)
        cached = self.cache.get(coord)
        if cached is not None:
            self._stats_cache_hits += 1
            logger.debug('Tile cache hit z/x/y=%d/%d/%d', zoom, x, y)
            return cached
        self._stats_cache_misses += 1

        url = tile_url(base_url or self.base_url, zoom, x, y)
        async with self.limiter.slot():
            logger.debug('Fetching tile z/x/y=%d/%d/%d from %s', zoom, x, y, url)
            try:
                data = await self._get_with_retry(url)
            except UpstreamError:
                self._stats_errors += 1
                raise

        self._stats_downloads += 1
        self.cache.put(coord, data)
        return data

    async def _get_with_retry(self, url: str) -> bytes:
        last_exc: Exception | None = None
        for attempt in range(self.max_retries):
            try:
                return await self._get_once(url)
            except UpstreamError as e:
                if not e.retryable:
                    logger.warning('Tile fetch failed without retry: %s', e)
                    raise
                last_exc = e
                logger.warning(
                    'Tile fetch failed (attempt %d/%d): %s', attempt + 1, self.max_retries, e
                )
            except TimeoutError as e:
                last_exc = e
                logger.warning(
                    'Tile request timeout (attempt %d/%d): %s', attempt + 1, self.max_retries, url
                )
            except aiohttp.ClientError as e:
                last_exc = e
                logger.warning(
                    'Tile fetch failed (attempt %d/%d): %s %s',
                    attempt + 1,
                    self.max_retries,
                    url,
                    e,
                )
            if attempt < self.max_retries - 1:
                await asyncio.sleep(self.base_delay_s * 2**attempt)

        msg = f'Failed to fetch tile after {self.max_retries} attempts: {url}: {last_exc}'
        status = last_exc.status if isinstance(last_exc, UpstreamError) else None
        raise UpstreamError(msg, url=url, status=status) from last_exc

    async def _get_once(self, url: str) -> bytes:
        timeout = aiohttp.ClientTimeout(total=self.timeout_s)
        resp = await self.session.get(url, timeout=timeout, headers=self.headers)
        try:
            sc = resp.status
            if HTTP_OK <= sc < HTTP_2XX_MAX:
                return await resp.read()
            if HTTP_4XX_MIN <= sc < HTTP_4XX_MAX:
                msg = f'HTTP {sc}: {url}'
                raise UpstreamError(msg, url=url, status=sc, retryable=False)
            msg = f'HTTP {sc}: {url}'
            raise UpstreamError(msg, url=url, status=sc)
        finally:
            resp.release()
