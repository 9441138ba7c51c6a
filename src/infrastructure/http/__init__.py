"""HTTP client and server infrastructure."""
from infrastructure.http.client import make_http_session, make_ssl_context
from infrastructure.http.server import create_app, parse_map_query

__all__ = [
    'create_app',
    'make_http_session',
    'make_ssl_context',
    'parse_map_query',
]
