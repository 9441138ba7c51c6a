"""Upstream tile handling.

This module provides:
- TileCache: in-memory LRU store of raw tiles with lazy TTL
- RateLimiter: global concurrency cap and request spacing
- TileFetcher: HTTP fetcher with retries and caching integration
- canvas_tiles: tiles covering a map canvas
"""

from tiles.cache import CacheStats, TileCache, TileImage
from tiles.coverage import TileCoordinate, TilePlacement, canvas_tiles
from tiles.fetcher import TileFetcher, tile_url
from tiles.rate_limiter import RateLimiter

__all__ = [
    'CacheStats',
    'RateLimiter',
    'TileCache',
    'TileCoordinate',
    'TileFetcher',
    'TileImage',
    'TilePlacement',
    'canvas_tiles',
    'tile_url',
]
