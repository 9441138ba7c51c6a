from __future__ import annotations

import math
from dataclasses import dataclass

from geo.mercator import clamp_tile_y, project, wrap_tile_x


@dataclass(frozen=True)
class TileCoordinate:
    zoom: int
    x: int
    y: int


@dataclass(frozen=True)
class TilePlacement:
    """Upstream tile plus its logical draw offset relative to the canvas."""

    coord: TileCoordinate
    col: int
    row: int
    draw_x: float
    draw_y: float


def canvas_tiles(lat: float, lon: float, zoom: int, tile_size: int) -> list[TilePlacement]:
    """
    Tiles overlapping a ``tile_size`` square canvas centred on (lat, lon).

    The canvas spans at most a 2×2 tile neighbourhood starting at the tile
    that contains its top-left corner. Horizontal indices wrap around the
    world, vertical indices are clamped to the grid.
    """
    proj = project(lat, lon, zoom, tile_size)
    half = tile_size / 2
    top_left_x = proj.x_tile_float * tile_size - half
    top_left_y = proj.y_tile_float * tile_size - half
    tile_x0 = math.floor(top_left_x / tile_size)
    tile_y0 = math.floor(top_left_y / tile_size)
    offset_x = top_left_x - tile_x0 * tile_size
    offset_y = top_left_y - tile_y0 * tile_size

    placements: list[TilePlacement] = []
    for row in range(2):
        for col in range(2):
            coord = TileCoordinate(
                zoom=zoom,
                x=wrap_tile_x(tile_x0 + col, zoom),
                y=clamp_tile_y(tile_y0 + row, zoom),
            )
            placements.append(
                TilePlacement(
                    coord=coord,
                    col=col,
                    row=row,
                    draw_x=col * tile_size - offset_x,
                    draw_y=row * tile_size - offset_y,
                )
            )
    return placements
