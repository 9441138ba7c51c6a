"""Marker assets: loading, rasterising, fitting and plan resolution."""

from __future__ import annotations

import io
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from PIL import Image, ImageOps

from domain.errors import AssetError
from shared.constants import MARKER_TARGET_SIZE, MarkerFit

if TYPE_CHECKING:
    from domain.models import AnchorSpec, AppSettings, GeoRequest, VectorMarkerStyle

logger = logging.getLogger(__name__)

# SVG is rasterised larger than the footprint and downsampled on fit
SVG_SUPERSAMPLE = 2


@dataclass(frozen=True)
class ImageMarker:
    """Fitted marker bitmap (device pixels) and its normalized anchor."""

    image: Image.Image
    fit: MarkerFit
    anchor_x: float
    anchor_y: float


@dataclass(frozen=True)
class VectorMarker:
    style: VectorMarkerStyle


MarkerRenderPlan = ImageMarker | VectorMarker


def fit_marker(img: Image.Image, size: int, fit: MarkerFit) -> Image.Image:
    """
    Fit ``img`` into a ``size``×``size`` transparent square.

    ``contain`` keeps the whole image and centres it, ``cover`` fills the
    square and crops the overflow. Anchors are fractions of this square.
    """
    img = img.convert('RGBA')
    if fit == MarkerFit.COVER:
        return ImageOps.fit(img, (size, size), method=Image.Resampling.LANCZOS)
    fitted = ImageOps.contain(img, (size, size), method=Image.Resampling.LANCZOS)
    square = Image.new('RGBA', (size, size), (0, 0, 0, 0))
    square.paste(fitted, ((size - fitted.width) // 2, (size - fitted.height) // 2))
    return square


def _rasterize_svg(path: Path, width: int) -> Image.Image:
    try:
        import cairosvg  # noqa: PLC0415

        png = cairosvg.svg2png(url=str(path), output_width=width)
        return Image.open(io.BytesIO(png)).convert('RGBA')
    except Exception as e:
        msg = f'Cannot rasterize SVG marker {path}: {e}'
        raise AssetError(msg) from e


def _open_raster(path: Path) -> Image.Image:
    try:
        with Image.open(path) as im:
            im.load()
            return im.convert('RGBA')
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        msg = f'Cannot load marker image {path}: {e}'
        raise AssetError(msg) from e


class MarkerLoader:
    """Loads marker files and memoizes fitted bitmaps.

    Cache key is (path, size, fit, mtime), so an edited asset is picked up
    on the next request without a restart.
    """

    def __init__(self, base_dir: Path | str | None = None) -> None:
        self.base_dir = Path(base_dir) if base_dir is not None else None
        self._cache: dict[tuple[str, int, str, int], Image.Image] = {}
        self._lock = threading.Lock()

    def resolve_path(self, file: str) -> Path:
        path = Path(file)
        if self.base_dir is not None and not path.is_absolute():
            path = self.base_dir / path
        return path

    def load(self, file: str, size: int, fit: MarkerFit = MarkerFit.CONTAIN) -> Image.Image:
        """
        Return the marker fitted into a ``size`` px square.

        Raises:
            AssetError: file missing, unreadable or not an image.

        """
        path = self.resolve_path(file)
        try:
            mtime_ns = path.stat().st_mtime_ns
        except OSError as e:
            msg = f'Marker file not found: {path}'
            raise AssetError(msg) from e

        key = (str(path), size, fit.value, mtime_ns)
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            return cached

        if path.suffix.lower() == '.svg':
            raw = _rasterize_svg(path, size * SVG_SUPERSAMPLE)
        else:
            raw = _open_raster(path)
        fitted = fit_marker(raw, size, fit)
        logger.debug('Loaded marker %s at %dpx (%s)', path, size, fit.value)

        with self._lock:
            # Drop stale versions of the same file
            for old in [k for k in self._cache if k[0] == key[0] and k[3] != mtime_ns]:
                del self._cache[old]
            self._cache[key] = fitted
        return fitted

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


def resolve_anchor(
    settings: AppSettings, request_anchor: str | None, marker_anchor: str | None
) -> AnchorSpec | None:
    """Request anchor, then the marker's own, then the configured default."""
    for name in (request_anchor, marker_anchor, settings.default_anchor):
        anchor = settings.find_anchor(name)
        if anchor is not None:
            return anchor
    return None


def resolve_marker_plan(
    settings: AppSettings,
    request: GeoRequest,
    loader: MarkerLoader,
    scale: int,
) -> MarkerRenderPlan:
    """
    Decide once per request how the marker is drawn.

    Any failure to resolve or load an image marker yields the vector marker.
    """
    vector = VectorMarker(style=settings.marker)
    marker_name = request.marker_name or settings.default_marker
    spec = settings.find_marker(marker_name)
    if spec is None:
        return vector

    anchor = resolve_anchor(settings, request.anchor_name, spec.anchor)
    anchor_x, anchor_y = (anchor.x, anchor.y) if anchor is not None else (0.5, 0.5)
    try:
        image = loader.load(spec.file, MARKER_TARGET_SIZE * scale, spec.fit)
    except AssetError as e:
        logger.warning('Marker %r unavailable, drawing vector marker: %s', spec.name, e)
        return vector
    return ImageMarker(image=image, fit=spec.fit, anchor_x=anchor_x, anchor_y=anchor_y)
