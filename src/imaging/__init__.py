"""Imaging package - map composition, markers and text."""

from imaging.composer import MapCompositor, ScaledCanvas, decode_tile, encode_image
from imaging.markers import (
    ImageMarker,
    MarkerLoader,
    MarkerRenderPlan,
    VectorMarker,
    fit_marker,
    resolve_marker_plan,
)
from imaging.text import draw_attribution, load_font

__all__ = [
    'ImageMarker',
    'MapCompositor',
    'MarkerLoader',
    'MarkerRenderPlan',
    'ScaledCanvas',
    'VectorMarker',
    'decode_tile',
    'draw_attribution',
    'encode_image',
    'fit_marker',
    'load_font',
    'resolve_marker_plan',
]
