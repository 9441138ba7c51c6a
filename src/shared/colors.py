"""Color parsing for configuration values."""

from __future__ import annotations

import re

from PIL import ImageColor

_RGBA_RE = re.compile(
    r'^rgba\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*([0-9]*\.?[0-9]+)\s*\)$',
    re.IGNORECASE,
)


def parse_color(value: str) -> tuple[int, int, int, int]:
    """
    Convert a color string into an RGBA tuple.

    Accepts everything PIL.ImageColor understands (names, #rgb, #rrggbb,
    rgb(...)) plus CSS-style ``rgba(r, g, b, a)`` where ``a`` is a fraction
    in [0, 1].

    Raises:
        ValueError: if the string is not a recognised color.

    """
    text = value.strip()
    m = _RGBA_RE.match(text)
    if m:
        r, g, b = (int(m.group(i)) for i in (1, 2, 3))
        alpha = float(m.group(4))
        if max(r, g, b) > 255 or alpha > 1.0:
            msg = f'Color component out of range: {value!r}'
            raise ValueError(msg)
        return r, g, b, round(alpha * 255)
    rgb = ImageColor.getrgb(text)
    if len(rgb) == 3:
        return rgb[0], rgb[1], rgb[2], 255
    return rgb[0], rgb[1], rgb[2], rgb[3]


def with_opacity(color: tuple[int, int, int, int], opacity: float) -> tuple[int, int, int, int]:
    """Multiply the alpha channel of ``color`` by ``opacity`` (clamped to [0, 1])."""
    opacity = max(0.0, min(1.0, opacity))
    r, g, b, a = color
    return r, g, b, round(a * opacity)
