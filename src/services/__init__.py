"""Services package - request orchestration and result caching."""

from services.map_service import MapService, RenderedMap
from services.result_cache import ResultCache, result_key

__all__ = [
    'MapService',
    'RenderedMap',
    'ResultCache',
    'result_key',
]
