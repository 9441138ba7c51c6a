from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, field_validator, model_validator

from shared.colors import parse_color
from shared.constants import (
    HTTP_BACKOFF_BASE_MS,
    HTTP_RETRIES_DEFAULT,
    HTTP_TIMEOUT_MS,
    MAX_OUTPUT_SCALE,
    MAX_ZOOM,
    MIN_OUTPUT_SCALE,
    MIN_ZOOM,
    OSM_TILE_BASE,
    RATE_LIMIT_MAX_CONCURRENT,
    RATE_LIMIT_REQUESTS_PER_SECOND,
    RESULT_CACHE_DIR,
    SERVER_HOST,
    SERVER_PORT,
    TILE_CACHE_MAX_SIZE,
    TILE_CACHE_TTL_MINUTES,
    TILE_SIZE,
    USER_AGENT,
    MarkerFit,
    OutputFormat,
)

_FROZEN = {'frozen': True, 'extra': 'ignore'}


@dataclass(frozen=True)
class GeoRequest:
    """One validated map request."""

    lat: float
    lon: float
    zoom: int
    marker_name: str | None = None
    anchor_name: str | None = None
    scale: int = 1

    @property
    def clamped_scale(self) -> int:
        return max(MIN_OUTPUT_SCALE, min(MAX_OUTPUT_SCALE, int(self.scale)))


def _check_color(v: str) -> str:
    parse_color(v)
    return v


class AnchorSpec(BaseModel):
    """Normalized point inside a marker image that lands on the coordinate."""

    model_config = _FROZEN

    name: str
    x: float
    y: float

    @field_validator('x', 'y')
    @classmethod
    def validate_unit_range(cls, v: float) -> float:
        v = float(v)
        if not (0.0 <= v <= 1.0):
            msg = 'Anchor coordinates must be in [0.0, 1.0]'
            raise ValueError(msg)
        return v


class MarkerSpec(BaseModel):
    """Image-backed marker from the catalog."""

    model_config = _FROZEN

    name: str
    file: str
    anchor: str | None = None
    fit: MarkerFit = MarkerFit.CONTAIN


class VectorMarkerStyle(BaseModel):
    """Fallback circle marker drawn when no image marker is available."""

    model_config = _FROZEN

    radius: float = 8
    fill_color: str = '#e53935'
    border_color: str = 'black'
    cross_color: str = 'white'
    border_width: int = 2

    @field_validator('fill_color', 'border_color', 'cross_color')
    @classmethod
    def validate_colors(cls, v: str) -> str:
        return _check_color(v)


class ShadowStyle(BaseModel):
    model_config = _FROZEN

    enabled: bool = True
    color: str = 'rgba(0, 0, 0, 0.35)'
    blur: float = 6
    offset_x: float = 0
    offset_y: float = 2

    @field_validator('color')
    @classmethod
    def validate_color(cls, v: str) -> str:
        return _check_color(v)


class AttributionStyle(BaseModel):
    """Semi-transparent text bar at the bottom of the map."""

    model_config = _FROZEN

    enabled: bool = True
    text: str = '© OpenStreetMap'
    background_color: str = '#000000'
    text_color: str = '#FFFFFF'
    opacity: float = 0.5
    font_size: int = 12
    font_path: str | None = None
    padding_x: int = 8
    padding_y: int = 6

    @field_validator('background_color', 'text_color')
    @classmethod
    def validate_colors(cls, v: str) -> str:
        return _check_color(v)

    @field_validator('opacity')
    @classmethod
    def clamp_opacity(cls, v: float) -> float:
        return max(0.0, min(1.0, float(v)))

    @property
    def visible(self) -> bool:
        return self.enabled and bool(self.text)


class TileCacheSettings(BaseModel):
    model_config = _FROZEN

    max_size: int = TILE_CACHE_MAX_SIZE
    ttl_minutes: float = TILE_CACHE_TTL_MINUTES

    @field_validator('max_size')
    @classmethod
    def validate_max_size(cls, v: int) -> int:
        if v < 1:
            msg = 'tile_cache.max_size must be at least 1'
            raise ValueError(msg)
        return v


class RateLimitSettings(BaseModel):
    model_config = _FROZEN

    max_concurrent: int = RATE_LIMIT_MAX_CONCURRENT
    requests_per_second: float = RATE_LIMIT_REQUESTS_PER_SECOND

    @field_validator('max_concurrent')
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1:
            msg = 'rate_limit.max_concurrent must be at least 1'
            raise ValueError(msg)
        return v


class RetrySettings(BaseModel):
    model_config = _FROZEN

    max_retries: int = HTTP_RETRIES_DEFAULT
    base_delay_ms: float = HTTP_BACKOFF_BASE_MS

    @field_validator('max_retries')
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 1:
            msg = 'retry.max_retries must be at least 1'
            raise ValueError(msg)
        return v

    @field_validator('base_delay_ms')
    @classmethod
    def validate_base_delay(cls, v: float) -> float:
        if v < 0:
            msg = 'retry.base_delay_ms must not be negative'
            raise ValueError(msg)
        return v


class CorsSettings(BaseModel):
    model_config = _FROZEN

    enabled: bool = True
    allowed_origins: str = '*'
    allowed_methods: str = 'GET, OPTIONS'
    allowed_headers: str = 'Content-Type'
    max_age: int = 86400


DEFAULT_ANCHORS: tuple[AnchorSpec, ...] = (
    AnchorSpec(name='center', x=0.5, y=0.5),
    AnchorSpec(name='top-left', x=0, y=0),
    AnchorSpec(name='top-center', x=0.5, y=0),
    AnchorSpec(name='top-right', x=1, y=0),
    AnchorSpec(name='bottom-left', x=0, y=1),
    AnchorSpec(name='bottom-center', x=0.5, y=1),
    AnchorSpec(name='bottom-right', x=1, y=1),
    AnchorSpec(name='left-center', x=0, y=0.5),
    AnchorSpec(name='right-center', x=1, y=0.5),
    # alias
    AnchorSpec(name='bottom', x=0.5, y=1),
)

DEFAULT_MARKERS: tuple[MarkerSpec, ...] = (
    MarkerSpec(name='pin', file='assets/markers/pin.svg', anchor='bottom-center'),
)


def _catalog_names(items: Any) -> list[str]:
    names = []
    for item in items or ():
        if isinstance(item, BaseModel):
            names.append(getattr(item, 'name', ''))
        elif isinstance(item, dict):
            names.append(str(item.get('name', '')))
    return names


class AppSettings(BaseModel):
    """Full service configuration, loaded once at startup and never mutated."""

    model_config = _FROZEN

    host: str = SERVER_HOST
    port: int = SERVER_PORT
    log_level: str = 'INFO'
    cache_dir: str = RESULT_CACHE_DIR
    # Base for relative marker file paths; None means the working directory
    asset_dir: str | None = None

    tile_size: int = TILE_SIZE
    osm_base_url: str = OSM_TILE_BASE
    user_agent: str = USER_AGENT
    referer: str | None = None
    request_timeout_ms: float = HTTP_TIMEOUT_MS
    min_zoom: int = MIN_ZOOM
    max_zoom: int = MAX_ZOOM
    output_format: OutputFormat = OutputFormat.PNG

    tile_cache: TileCacheSettings = TileCacheSettings()
    rate_limit: RateLimitSettings = RateLimitSettings()
    retry: RetrySettings = RetrySettings()

    marker: VectorMarkerStyle = VectorMarkerStyle()
    image_marker_shadow: ShadowStyle = ShadowStyle()
    anchors: tuple[AnchorSpec, ...] = DEFAULT_ANCHORS
    markers: tuple[MarkerSpec, ...] = DEFAULT_MARKERS
    default_marker: str | None = 'pin'
    default_anchor: str = 'center'

    cors: CorsSettings = CorsSettings()
    attribution: AttributionStyle = AttributionStyle()

    @model_validator(mode='before')
    @classmethod
    def normalize_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        anchor_names = _catalog_names(data.get('anchors', DEFAULT_ANCHORS))
        if data.get('default_anchor') not in anchor_names:
            data['default_anchor'] = 'center'
        marker_names = _catalog_names(data.get('markers', DEFAULT_MARKERS))
        if data.get('default_marker', 'pin') not in marker_names:
            data['default_marker'] = marker_names[0] if marker_names else None
        return data

    @field_validator('tile_size')
    @classmethod
    def validate_tile_size(cls, v: int) -> int:
        if v < 1:
            msg = 'tile_size must be at least 1'
            raise ValueError(msg)
        return v

    @field_validator('request_timeout_ms')
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        # ClientTimeout(total=0) отключает таймаут
        if v <= 0:
            msg = 'request_timeout_ms must be positive'
            raise ValueError(msg)
        return v

    @model_validator(mode='after')
    def validate_zoom_range(self) -> AppSettings:
        if not (0 <= self.min_zoom <= self.max_zoom):
            msg = f'Invalid zoom range [{self.min_zoom}, {self.max_zoom}]'
            raise ValueError(msg)
        return self

    def find_anchor(self, name: str | None) -> AnchorSpec | None:
        if name is None:
            return None
        return next((a for a in self.anchors if a.name == name), None)

    def find_marker(self, name: str | None) -> MarkerSpec | None:
        if name is None:
            return None
        return next((m for m in self.markers if m.name == name), None)

    @property
    def request_timeout_s(self) -> float:
        return self.request_timeout_ms / 1000.0

    @property
    def retry_base_delay_s(self) -> float:
        return self.retry.base_delay_ms / 1000.0

    @property
    def tile_cache_ttl_s(self) -> float:
        return self.tile_cache.ttl_minutes * 60.0
