"""Infrastructure - HTTP client and server."""
