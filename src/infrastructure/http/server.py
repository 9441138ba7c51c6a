"""HTTP surface of the map service (aiohttp.web)."""

from __future__ import annotations

import dataclasses
import logging
import math
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping

import aiohttp
from aiohttp import web

from domain.errors import RenderError, UpstreamError
from domain.models import AppSettings, CorsSettings, GeoRequest
from imaging.composer import MapCompositor
from imaging.markers import MarkerLoader
from infrastructure.http.client import make_http_session
from services.map_service import MapService
from services.result_cache import ResultCache
from shared.constants import MAX_OUTPUT_SCALE, MIN_OUTPUT_SCALE, RESPONSE_MAX_AGE
from tiles.cache import TileCache
from tiles.fetcher import TileFetcher
from tiles.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

SETTINGS_KEY = web.AppKey('settings', AppSettings)
TILE_CACHE_KEY = web.AppKey('tile_cache', TileCache)
LIMITER_KEY = web.AppKey('rate_limiter', RateLimiter)
FETCHER_KEY = web.AppKey('tile_fetcher', TileFetcher)
SERVICE_KEY = web.AppKey('map_service', MapService)

SECURITY_HEADERS: dict[str, str] = {
    'X-Content-Type-Options': 'nosniff',
    'X-Frame-Options': 'DENY',
    'X-XSS-Protection': '1; mode=block',
    'Referrer-Policy': 'strict-origin-when-cross-origin',
    'Permissions-Policy': 'geolocation=(), microphone=(), camera=()',
}

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def cors_headers(cors: CorsSettings) -> dict[str, str]:
    if not cors.enabled:
        return {}
    return {
        'Access-Control-Allow-Origin': cors.allowed_origins,
        'Access-Control-Allow-Methods': cors.allowed_methods,
        'Access-Control-Allow-Headers': cors.allowed_headers,
        'Access-Control-Max-Age': str(cors.max_age),
    }


def response_headers(settings: AppSettings) -> dict[str, str]:
    return {**SECURITY_HEADERS, **cors_headers(settings.cors)}


def _parse_float(query: Mapping[str, str], name: str, low: float, high: float) -> float:
    raw = query.get(name, '').strip()
    if not raw:
        msg = f'{name} is required'
        raise ValueError(msg)
    try:
        value = float(raw)
    except ValueError:
        msg = f'{name} must be a number'
        raise ValueError(msg) from None
    if not math.isfinite(value) or not (low <= value <= high):
        msg = f'Invalid {name} (must be between {low:g} and {high:g})'
        raise ValueError(msg)
    return value


def _parse_int(
    query: Mapping[str, str], name: str, low: int, high: int, default: int | None = None
) -> int:
    raw = query.get(name, '').strip()
    if not raw:
        if default is not None:
            return default
        msg = f'{name} is required'
        raise ValueError(msg)
    # int() сам по себе принимает '1_0', '+5' и не-ASCII цифры
    if not (raw.isascii() and raw.removeprefix('-').isdigit()):
        msg = f'{name} must be an integer'
        raise ValueError(msg)
    value = int(raw)
    if not (low <= value <= high):
        msg = f'Invalid {name} (must be between {low} and {high})'
        raise ValueError(msg)
    return value


def parse_map_query(query: Mapping[str, str], settings: AppSettings) -> GeoRequest:
    """
    Validate ``/map`` query parameters into a GeoRequest.

    A missing marker becomes the configured default marker; a missing anchor
    stays unset and is resolved later from the marker catalog.

    Raises:
        ValueError: with a message suitable for a 400 response.

    """
    lat = _parse_float(query, 'lat', -90.0, 90.0)
    lon = _parse_float(query, 'lon', -180.0, 180.0)
    zoom = _parse_int(query, 'zoom', settings.min_zoom, settings.max_zoom)
    scale = _parse_int(query, 'scale', MIN_OUTPUT_SCALE, MAX_OUTPUT_SCALE, default=1)

    marker_name = query.get('marker') or settings.default_marker
    if query.get('marker') and settings.find_marker(marker_name) is None:
        msg = f'Unknown marker: {marker_name}'
        raise ValueError(msg)

    anchor_name = query.get('anchor') or None
    if anchor_name is not None and settings.find_anchor(anchor_name) is None:
        msg = f'Unknown anchor: {anchor_name}'
        raise ValueError(msg)

    return GeoRequest(
        lat=lat,
        lon=lon,
        zoom=zoom,
        marker_name=marker_name,
        anchor_name=anchor_name,
        scale=scale,
    )


@web.middleware
async def headers_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    headers = response_headers(request.app[SETTINGS_KEY])
    try:
        response = await handler(request)
    except web.HTTPException as exc:
        exc.headers.update(headers)
        raise
    response.headers.update(headers)
    return response


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except UpstreamError as e:
        logger.error('Upstream failure for %s: %s', request.path_qs, e)
        return web.Response(status=502, text='Bad Gateway: tile server unavailable')
    except RenderError as e:
        logger.error('Render failure for %s: %s', request.path_qs, e)
        return web.Response(status=500, text='Internal Server Error')
    except Exception:
        logger.exception('Unhandled error for %s', request.path_qs)
        return web.Response(status=500, text='Internal Server Error')


async def handle_map(request: web.Request) -> web.Response:
    settings = request.app[SETTINGS_KEY]
    try:
        geo = parse_map_query(request.query, settings)
    except ValueError as e:
        logger.warning('Rejected map request %r: %s', request.query_string, e)
        return web.Response(status=400, text=str(e))

    rendered = await request.app[SERVICE_KEY].render(geo)
    return web.Response(
        body=rendered.content,
        content_type=rendered.content_type,
        headers={
            'Cache-Control': f'public, max-age={RESPONSE_MAX_AGE}',
            'ETag': f'"{rendered.digest}"',
            'X-Cache': 'HIT' if rendered.from_cache else 'MISS',
        },
    )


async def handle_preflight(request: web.Request) -> web.Response:
    return web.Response(status=204)


async def handle_health(request: web.Request) -> web.Response:
    app = request.app
    return web.json_response(
        {
            'status': 'ok',
            'tile_cache': dataclasses.asdict(app[TILE_CACHE_KEY].stats()),
            'fetcher': app[FETCHER_KEY].stats,
            'rate_limiter': app[LIMITER_KEY].stats(),
        }
    )


def _pipeline_ctx(
    session: aiohttp.ClientSession | None,
    marker_loader: MarkerLoader | None,
) -> Callable[[web.Application], AsyncIterator[None]]:
    async def ctx(app: web.Application) -> AsyncIterator[None]:
        settings = app[SETTINGS_KEY]
        # Может упасть с CacheIOError, поэтому до создания сессии
        result_cache = ResultCache(settings.cache_dir, settings.output_format.extension)
        loader = marker_loader or MarkerLoader(settings.asset_dir)

        owned = session is None
        http = session or make_http_session(settings.user_agent, settings.rate_limit.max_concurrent)
        try:
            tile_cache = TileCache(settings.tile_cache.max_size, settings.tile_cache.ttl_minutes)
            limiter = RateLimiter(
                settings.rate_limit.max_concurrent, settings.rate_limit.requests_per_second
            )
            fetcher = TileFetcher(
                http,
                tile_cache,
                limiter,
                base_url=settings.osm_base_url,
                timeout_s=settings.request_timeout_s,
                max_retries=settings.retry.max_retries,
                base_delay_s=settings.retry_base_delay_s,
                user_agent=settings.user_agent,
                referer=settings.referer,
            )
            compositor = MapCompositor(fetcher, settings, loader)

            app[TILE_CACHE_KEY] = tile_cache
            app[LIMITER_KEY] = limiter
            app[FETCHER_KEY] = fetcher
            app[SERVICE_KEY] = MapService(compositor, result_cache, settings.output_format)
            logger.info(
                'Map pipeline ready: upstream=%s, cache_dir=%s, format=%s',
                settings.osm_base_url,
                settings.cache_dir,
                settings.output_format.value,
            )
            yield
        finally:
            if owned:
                await http.close()

    return ctx


def create_app(
    settings: AppSettings,
    *,
    session: aiohttp.ClientSession | None = None,
    marker_loader: MarkerLoader | None = None,
) -> web.Application:
    """
    Build the web application.

    Shared pipeline objects (tile cache, rate limiter, fetcher) are created
    once on startup. An injected ``session`` is left open on cleanup.
    """
    app = web.Application(middlewares=[headers_middleware, error_middleware])
    app[SETTINGS_KEY] = settings
    app.cleanup_ctx.append(_pipeline_ctx(session, marker_loader))
    app.router.add_get('/map', handle_map)
    app.router.add_route('OPTIONS', '/map', handle_preflight)
    app.router.add_get('/health', handle_health)
    return app
