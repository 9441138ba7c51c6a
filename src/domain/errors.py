"""Error taxonomy of the static map pipeline.

Only UpstreamError and RenderError fail a request. AssetError and
CacheIOError are recovered where they are raised.
"""

from __future__ import annotations


class StaticMapError(Exception):
    """Base class for all pipeline errors."""


class UpstreamError(StaticMapError):
    """Upstream tile fetch failed (non-retryable 4xx or retries exhausted)."""

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        status: int | None = None,
        retryable: bool = True,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status = status
        self.retryable = retryable


class AssetError(StaticMapError):
    """Marker asset could not be loaded or rasterized."""


class RenderError(StaticMapError):
    """Canvas composition or encoding failed."""


class CacheIOError(StaticMapError):
    """Result cache could not be read or written."""


class SettingsError(StaticMapError):
    """Configuration file is present but invalid."""
