from __future__ import annotations

import ssl

import aiohttp
import certifi

from shared.constants import RATE_LIMIT_MAX_CONCURRENT, USER_AGENT


def make_ssl_context() -> ssl.SSLContext:
    # Создать SSL-контекст с сертификатами из certifi
    return ssl.create_default_context(cafile=certifi.where())


def make_http_session(
    user_agent: str = USER_AGENT,
    limit: int = RATE_LIMIT_MAX_CONCURRENT,
) -> aiohttp.ClientSession:
    """Upstream tile session; the connector pool matches the concurrency cap."""
    connector = aiohttp.TCPConnector(ssl=make_ssl_context(), limit=max(1, limit))
    return aiohttp.ClientSession(
        connector=connector,
        headers={'User-Agent': user_agent},
    )
