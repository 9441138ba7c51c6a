"""Text rendering utilities - fonts and the attribution bar."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from functools import lru_cache

from PIL import Image, ImageDraw, ImageFont

from domain.models import AttributionStyle
from shared.colors import parse_color, with_opacity

logger = logging.getLogger(__name__)

Font = ImageFont.FreeTypeFont | ImageFont.ImageFont

_SYSTEM_FONTS = (
    # Linux (абсолютные пути: truetype() не ищет по системным каталогам)
    '/usr/share/fonts/truetype/dejavu/DejaVuSansCondensed.ttf',
    '/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf',
    '/usr/share/fonts/truetype/liberation/LiberationSansNarrow-Regular.ttf',
    '/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf',
    '/usr/share/fonts/truetype/freefont/FreeSans.ttf',
    '/usr/share/fonts/truetype/noto/NotoSans-Regular.ttf',
    # Windows
    'arial.ttf',
    'segoeui.ttf',
    'tahoma.ttf',
    # macOS
    '/System/Library/Fonts/Helvetica.ttc',
    '/Library/Fonts/Arial.ttf',
)


@lru_cache(maxsize=16)
def load_font(font_size: int, font_path: str | None = None) -> Font:
    """
    Подгружает масштабируемый шрифт для подписи.

    Порядок:
      1) font_path (если задан).
      2) Системные шрифты (Linux, Windows, macOS).
      3) Резерв: встроенный шрифт PIL нужного размера.
    """
    if font_path:
        try:
            return ImageFont.truetype(font_path, font_size)
        except OSError:
            logger.warning('Failed to load attribution font from %s', font_path)
    for name in _SYSTEM_FONTS:
        try:
            return ImageFont.truetype(name, font_size)
        except OSError:
            logger.debug('Шрифт %s не найден, пробуем следующий', name)
            continue
    logger.debug('Системные шрифты не найдены, используется встроенный (%d px)', font_size)
    return ImageFont.load_default(size=font_size)


@dataclass(frozen=True)
class BarLayout:
    """Геометрия полосы атрибуции в пикселях холста."""

    top: int
    height: int
    text_x: int
    text_y: int


def attribution_layout(
    style: AttributionStyle, font: Font, canvas_height: int, scale: int = 1
) -> BarLayout:
    """
    Высота полосы = высота текста + 2 × padding_y, полоса прижата к низу.

    Отступы задаются в логических пикселях и умножаются на ``scale``.
    """
    left, top, _right, bottom = font.getbbox(style.text)
    text_h = bottom - top
    pad_x = style.padding_x * scale
    pad_y = style.padding_y * scale
    height = min(canvas_height, math.ceil(text_h + 2 * pad_y))
    bar_top = canvas_height - height
    return BarLayout(
        top=bar_top,
        height=height,
        text_x=pad_x - left,
        text_y=bar_top + pad_y - top,
    )


def draw_attribution(canvas: Image.Image, style: AttributionStyle, scale: int = 1) -> None:
    """
    Рисует полупрозрачную полосу во всю ширину холста и текст поверх неё.

    Прозрачность применяется только к подложке, текст непрозрачный.
    Холст должен быть в режиме RGBA.
    """
    if not style.visible:
        return
    font = load_font(style.font_size * scale, style.font_path)
    layout = attribution_layout(style, font, canvas.height, scale)

    bg = with_opacity(parse_color(style.background_color), style.opacity)
    overlay = Image.new('RGBA', canvas.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)
    draw.rectangle(
        [0, layout.top, canvas.width - 1, canvas.height - 1],
        fill=bg,
    )
    canvas.alpha_composite(overlay)

    ImageDraw.Draw(canvas).text(
        (layout.text_x, layout.text_y),
        style.text,
        font=font,
        fill=parse_color(style.text_color),
    )
