"""Geo module - Web Mercator tile math."""

from geo.mercator import TileProjection, clamp_latitude, clamp_tile_y, project, wrap_tile_x

__all__ = [
    'TileProjection',
    'clamp_latitude',
    'clamp_tile_y',
    'project',
    'wrap_tile_x',
]
