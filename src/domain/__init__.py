"""Domain layer - request and settings models, errors."""
from domain.errors import (
    AssetError,
    CacheIOError,
    RenderError,
    SettingsError,
    StaticMapError,
    UpstreamError,
)
from domain.models import AppSettings, GeoRequest

__all__ = [
    'AppSettings',
    'AssetError',
    'CacheIOError',
    'GeoRequest',
    'RenderError',
    'SettingsError',
    'StaticMapError',
    'UpstreamError',
]
