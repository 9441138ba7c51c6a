"""Map composition: tiles, marker and attribution on one canvas."""

from __future__ import annotations

import asyncio
import io
import logging
import math
from typing import TYPE_CHECKING, Protocol

from PIL import Image, ImageDraw, ImageFilter

from domain.errors import RenderError
from imaging.markers import ImageMarker, MarkerLoader, VectorMarker, resolve_marker_plan
from imaging.text import draw_attribution
from shared.colors import parse_color
from shared.constants import OutputFormat
from tiles.coverage import TileCoordinate, TilePlacement, canvas_tiles

if TYPE_CHECKING:
    from domain.models import AppSettings, GeoRequest, ShadowStyle
    from imaging.markers import MarkerRenderPlan

logger = logging.getLogger(__name__)

_SAVE_OPTIONS: dict[OutputFormat, dict[str, object]] = {
    OutputFormat.PNG: {'optimize': False},
    OutputFormat.JPEG: {'quality': 90},
    OutputFormat.WEBP: {'quality': 90},
}


class TileSource(Protocol):
    async def fetch_tile(self, zoom: int, x: int, y: int, base_url: str | None = None) -> bytes: ...


class ScaledCanvas:
    """RGBA canvas of ``size * scale`` device pixels addressed in logical units.

    Callers pass logical coordinates; conversion to device pixels happens here
    so the drawing code is independent of the output scale.
    """

    def __init__(self, size: int, scale: int) -> None:
        self.size = size
        self.scale = scale
        self.image = Image.new('RGBA', (size * scale, size * scale), (255, 255, 255, 255))

    @property
    def device_size(self) -> int:
        return self.image.width

    def px(self, value: float) -> int:
        """Logical to device pixels, half rounded up."""
        return math.floor(value * self.scale + 0.5)

    def new_layer(self) -> Image.Image:
        return Image.new('RGBA', self.image.size, (0, 0, 0, 0))

    def composite(self, layer: Image.Image, left: int = 0, top: int = 0) -> None:
        """Alpha-composite ``layer`` with its top-left corner at device (left, top)."""
        # alpha_composite() не принимает отрицательный dest: обрезаем слой
        skip_x, skip_y = max(0, -left), max(0, -top)
        if skip_x >= layer.width or skip_y >= layer.height:
            return
        if skip_x or skip_y:
            layer = layer.crop((skip_x, skip_y, layer.width, layer.height))
        left, top = left + skip_x, top + skip_y
        if left >= self.image.width or top >= self.image.height:
            return
        self.image.alpha_composite(layer, dest=(left, top))

    def paste_tile(self, tile: Image.Image, left: int, top: int) -> None:
        """Paste a tile at device position, resizing it to the device tile edge."""
        edge = self.size * self.scale
        if tile.size != (edge, edge):
            tile = tile.resize((edge, edge), Image.Resampling.LANCZOS)
        self.image.paste(tile, (left, top))


def decode_tile(data: bytes, coord: TileCoordinate) -> Image.Image:
    try:
        with Image.open(io.BytesIO(data)) as im:
            im.load()
            return im.convert('RGBA')
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        msg = f'Cannot decode tile {coord.zoom}/{coord.x}/{coord.y}: {e}'
        raise RenderError(msg) from e


def encode_image(img: Image.Image, fmt: OutputFormat) -> bytes:
    buf = io.BytesIO()
    try:
        img.convert('RGB').save(buf, format=fmt.pil_format, **_SAVE_OPTIONS.get(fmt, {}))
    except (OSError, ValueError, KeyError) as e:
        msg = f'Cannot encode map as {fmt.value}: {e}'
        raise RenderError(msg) from e
    return buf.getvalue()


def draw_shadow(
    canvas: ScaledCanvas,
    shape: Image.Image,
    left: int,
    top: int,
    style: ShadowStyle,
) -> None:
    """Composite a blurred silhouette of ``shape`` (its alpha) in the shadow color.

    Only a patch around the shape is blurred, padded so the blur tails fit.
    """
    r, g, b, a = parse_color(style.color)
    alpha = shape.getchannel('A').point(lambda v: v * a // 255)
    silhouette = Image.new('RGBA', shape.size, (r, g, b, 0))
    silhouette.putalpha(alpha)

    # Canvas-style blur radius is roughly two standard deviations
    sigma = style.blur * canvas.scale / 2
    pad = math.ceil(3 * sigma) + 1 if sigma > 0 else 0
    patch = Image.new('RGBA', (shape.width + 2 * pad, shape.height + 2 * pad), (r, g, b, 0))
    patch.paste(silhouette, (pad, pad))
    if sigma > 0:
        patch = patch.filter(ImageFilter.GaussianBlur(sigma))
    canvas.composite(
        patch,
        left + canvas.px(style.offset_x) - pad,
        top + canvas.px(style.offset_y) - pad,
    )


def draw_image_marker(canvas: ScaledCanvas, plan: ImageMarker, shadow: ShadowStyle) -> None:
    """Place the marker so its anchor point lands on the canvas centre."""
    center = canvas.device_size / 2
    marker = plan.image
    left = math.floor(center - plan.anchor_x * marker.width + 0.5)
    top = math.floor(center - plan.anchor_y * marker.height + 0.5)

    if shadow.enabled:
        draw_shadow(canvas, marker, left, top, shadow)
    canvas.composite(marker, left, top)


def draw_vector_marker(canvas: ScaledCanvas, plan: VectorMarker, shadow: ShadowStyle) -> None:
    """Filled circle, thin border and a centred cross. Only the fill casts a shadow."""
    style = plan.style
    c = canvas.device_size / 2
    r = style.radius * canvas.scale
    circle = [c - r, c - r, c + r, c + r]

    if shadow.enabled:
        disc = Image.new('RGBA', (math.ceil(2 * r) + 1, math.ceil(2 * r) + 1), (0, 0, 0, 0))
        ImageDraw.Draw(disc).ellipse([0, 0, 2 * r, 2 * r], fill=(0, 0, 0, 255))
        draw_shadow(canvas, disc, math.floor(c - r), math.floor(c - r), shadow)

    layer = canvas.new_layer()
    draw = ImageDraw.Draw(layer)
    draw.ellipse(circle, fill=parse_color(style.fill_color))

    # Stroke is centred on the circle outline
    bw = style.border_width * canvas.scale
    if bw > 0:
        half = bw / 2
        draw.ellipse(
            [c - r - half, c - r - half, c + r + half, c + r + half],
            outline=parse_color(style.border_color),
            width=bw,
        )

    cross = parse_color(style.cross_color)
    cross_w = max(1, 2 * canvas.scale)
    draw.line([(c - r, c), (c + r, c)], fill=cross, width=cross_w)
    draw.line([(c, c - r), (c, c + r)], fill=cross, width=cross_w)
    canvas.composite(layer)


class MapCompositor:
    """Builds one encoded map image per GeoRequest.

    Stateless between requests apart from the injected tile source and the
    marker bitmap cache.
    """

    def __init__(
        self,
        fetcher: TileSource,
        settings: AppSettings,
        marker_loader: MarkerLoader | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.settings = settings
        self.marker_loader = marker_loader or MarkerLoader()

    async def compose(self, request: GeoRequest) -> bytes:
        """
        Fetch, stitch, decorate and encode.

        Raises:
            UpstreamError: a required tile could not be fetched.
            RenderError: tile decoding or encoding failed.

        """
        placements = canvas_tiles(request.lat, request.lon, request.zoom, self.settings.tile_size)
        raw = await self._fetch_tiles(placements)
        # Decoding, drawing and encoding run off the event loop
        return await asyncio.to_thread(self.render, request, placements, raw)

    async def _fetch_tiles(self, placements: list[TilePlacement]) -> dict[TileCoordinate, bytes]:
        # Wrap and clamp can map several placements onto one tile
        unique = list(dict.fromkeys(p.coord for p in placements))
        logger.debug('Fetching %d tile(s) for %d placement(s)', len(unique), len(placements))
        results = await asyncio.gather(*(self.fetcher.fetch_tile(c.zoom, c.x, c.y) for c in unique))
        return dict(zip(unique, results, strict=True))

    def render(
        self,
        request: GeoRequest,
        placements: list[TilePlacement],
        raw: dict[TileCoordinate, bytes],
    ) -> bytes:
        """Synchronous part of compose: decode, stitch, decorate, encode."""
        scale = request.clamped_scale
        tiles = {coord: decode_tile(data, coord) for coord, data in raw.items()}

        canvas = ScaledCanvas(self.settings.tile_size, scale)
        self._draw_tiles(canvas, placements, tiles)

        plan = resolve_marker_plan(self.settings, request, self.marker_loader, scale)
        self.draw_marker(canvas, plan)
        draw_attribution(canvas.image, self.settings.attribution, scale)

        return encode_image(canvas.image, self.settings.output_format)

    @staticmethod
    def _draw_tiles(
        canvas: ScaledCanvas,
        placements: list[TilePlacement],
        tiles: dict[TileCoordinate, Image.Image],
    ) -> None:
        # One rounded origin keeps neighbouring tiles seamless at any scale
        first = min(placements, key=lambda p: (p.row, p.col))
        origin_x = canvas.px(first.draw_x)
        origin_y = canvas.px(first.draw_y)
        step = canvas.size * canvas.scale
        for p in placements:
            canvas.paste_tile(
                tiles[p.coord],
                origin_x + (p.col - first.col) * step,
                origin_y + (p.row - first.row) * step,
            )

    def draw_marker(self, canvas: ScaledCanvas, plan: MarkerRenderPlan) -> None:
        shadow = self.settings.image_marker_shadow
        if isinstance(plan, ImageMarker):
            draw_image_marker(canvas, plan, shadow)
        else:
            draw_vector_marker(canvas, plan, shadow)
