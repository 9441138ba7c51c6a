"""Shared utilities and helpers."""
from shared.colors import parse_color, with_opacity

__all__ = [
    'parse_color',
    'with_opacity',
]
