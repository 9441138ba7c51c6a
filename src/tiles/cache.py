"""In-memory LRU cache for raw upstream tiles.

This module provides TileCache: a bounded, time-bound store of encoded tile
bytes keyed by (zoom, x, y). It knows nothing about networking.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING

from shared.constants import TILE_CACHE_MAX_SIZE, TILE_CACHE_TTL_MINUTES

if TYPE_CHECKING:
    from collections.abc import Callable

    from tiles.coverage import TileCoordinate

logger = logging.getLogger(__name__)

TileKey = tuple[int, int, int]


@dataclass(frozen=True)
class TileImage:
    """Encoded tile bytes and the clock reading when they were stored."""

    data: bytes
    stored_at: float


@dataclass
class CacheStats:
    """Read-only snapshot of the tile cache."""

    size: int
    max_size: int
    ttl_seconds: float
    hits: int
    misses: int


class TileCache:
    """Thread-safe LRU tile cache with lazy TTL expiry.

    Features:
    - Strict LRU: reads and writes refresh recency
    - Overwriting an existing key never evicts another entry
    - Entries older than the TTL are dropped when read (no background sweep)

    Usage:
        cache = TileCache(max_size=1000, ttl_minutes=60)
        cache.put(coord, tile_bytes)
        data = cache.get(coord)
    """

    def __init__(
        self,
        max_size: int = TILE_CACHE_MAX_SIZE,
        ttl_minutes: float = TILE_CACHE_TTL_MINUTES,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize tile cache.

        Args:
            max_size: Maximum number of tiles kept in memory.
            ttl_minutes: Entry lifetime, checked on read.
            clock: Monotonic time source in seconds.
        """
        if max_size < 1:
            msg = 'max_size must be at least 1'
            raise ValueError(msg)
        self.max_size = max_size
        self.ttl_seconds = ttl_minutes * 60.0
        self._clock = clock
        self._entries: OrderedDict[TileKey, TileImage] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @staticmethod
    def _key(coord: TileCoordinate) -> TileKey:
        return (coord.zoom, coord.x, coord.y)

    def get(self, coord: TileCoordinate) -> bytes | None:
        """Get tile bytes, or None when absent or expired.

        An expired entry is removed as a side effect.
        """
        key = self._key(coord)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._clock() - entry.stored_at > self.ttl_seconds:
                del self._entries[key]
                self._misses += 1
                logger.debug('Tile %d/%d/%d expired', *key)
                return None
            self._entries.move_to_end(key)
            self._hits += 1
            return entry.data

    def put(self, coord: TileCoordinate, data: bytes) -> None:
        """Store tile bytes, evicting the least recently used entry if full."""
        key = self._key(coord)
        entry = TileImage(data=bytes(data), stored_at=self._clock())
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug('Evicted tile %d/%d/%d', *evicted)
            self._entries[key] = entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                max_size=self.max_size,
                ttl_seconds=self.ttl_seconds,
                hits=self._hits,
                misses=self._misses,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, coord: TileCoordinate) -> bool:
        # Membership test does not touch recency or TTL
        with self._lock:
            return self._key(coord) in self._entries
