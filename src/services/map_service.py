"""Request orchestration: result cache lookup, composition, cache write."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from domain.errors import CacheIOError

if TYPE_CHECKING:
    from domain.models import GeoRequest
    from imaging.composer import MapCompositor
    from services.result_cache import ResultCache
    from shared.constants import OutputFormat

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderedMap:
    content: bytes
    content_type: str
    digest: str
    from_cache: bool


class MapService:
    """Serve a map from disk when possible, compose it otherwise.

    Only UpstreamError and RenderError escape ``render``. Cache read failures
    count as a miss, cache write failures are logged and the freshly composed
    image is still returned.
    """

    def __init__(
        self,
        compositor: MapCompositor,
        result_cache: ResultCache,
        output_format: OutputFormat,
    ) -> None:
        self.compositor = compositor
        self.result_cache = result_cache
        self.output_format = output_format

    def digest_for(self, request: GeoRequest) -> str:
        return self.result_cache.key(
            request.zoom,
            request.lat,
            request.lon,
            request.marker_name,
            request.anchor_name,
            request.clamped_scale,
        )

    async def render(self, request: GeoRequest) -> RenderedMap:
        digest = self.digest_for(request)
        content_type = self.output_format.content_type

        if self.result_cache.exists(digest):
            try:
                content = self.result_cache.read(digest)
            except CacheIOError as e:
                logger.warning('Result cache read failed, composing again: %s', e)
            else:
                logger.info('Result cache hit %s', digest)
                return RenderedMap(content, content_type, digest, from_cache=True)

        logger.info(
            'Result cache miss %s (z=%d lat=%.6f lon=%.6f)',
            digest,
            request.zoom,
            request.lat,
            request.lon,
        )
        content = await self.compositor.compose(request)
        try:
            self.result_cache.write(digest, content)
        except CacheIOError:
            logger.exception('Failed to store composed map %s', digest)
        return RenderedMap(content, content_type, digest, from_cache=False)
