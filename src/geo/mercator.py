"""Web Mercator slippy-map math: lat/lon to tile grid coordinates."""

from __future__ import annotations

import math
from typing import NamedTuple

from shared.constants import MERCATOR_MAX_LAT


class TileProjection(NamedTuple):
    """Fractional and integer tile position of a point plus pixel offset."""

    x_tile_float: float
    y_tile_float: float
    x_tile: int
    y_tile: int
    x_px: float
    y_px: float


def clamp_latitude(lat: float) -> float:
    # tan/sec diverge at the poles
    return max(-MERCATOR_MAX_LAT, min(MERCATOR_MAX_LAT, lat))


def project(lat: float, lon: float, zoom: int, tile_size: int) -> TileProjection:
    """
    Convert latitude/longitude to tile coordinates and pixel offsets.

    Latitude is clamped to the Web Mercator limit (±85.0511°) so the result is
    always finite. Tile indices are not wrapped or clamped here; see
    ``wrap_tile_x`` and ``clamp_tile_y``.
    """
    n = 2**zoom
    x_float = (lon + 180.0) / 360.0 * n
    lat_rad = math.radians(clamp_latitude(lat))
    y_float = (1.0 - math.log(math.tan(lat_rad) + 1.0 / math.cos(lat_rad)) / math.pi) / 2.0 * n

    x_tile = math.floor(x_float)
    y_tile = math.floor(y_float)
    return TileProjection(
        x_tile_float=x_float,
        y_tile_float=y_float,
        x_tile=x_tile,
        y_tile=y_tile,
        x_px=(x_float - x_tile) * tile_size,
        y_px=(y_float - y_tile) * tile_size,
    )


def wrap_tile_x(x: int, zoom: int) -> int:
    """World wraps horizontally."""
    return x % (2**zoom)


def clamp_tile_y(y: int, zoom: int) -> int:
    """No vertical wrap: Mercator is undefined past the poles."""
    return max(0, min(2**zoom - 1, y))
