"""Pytest configuration and fixtures for static map tests."""

import io
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from PIL import Image  # noqa: E402

TILE_COLOR = (100, 150, 200)


def png_bytes(color=TILE_COLOR, size=256) -> bytes:
    buf = io.BytesIO()
    Image.new('RGB', (size, size), color).save(buf, format='PNG')
    return buf.getvalue()


class FakeTileSource:
    """Stand-in for TileFetcher that returns the same tile for every coordinate."""

    def __init__(self, data: bytes, error: Exception | None = None):
        self.data = data
        self.error = error
        self.calls: list[tuple[int, int, int]] = []

    async def fetch_tile(self, zoom, x, y, base_url=None):
        self.calls.append((zoom, x, y))
        if self.error is not None:
            raise self.error
        return self.data


def make_response(status: int, body: bytes = b'') -> MagicMock:
    """aiohttp-like response object for a mocked ClientSession.get."""
    resp = MagicMock()
    resp.status = status
    resp.read = AsyncMock(return_value=body)
    resp.release = MagicMock()
    return resp


@pytest.fixture
def tile_png() -> bytes:
    """Solid 256px PNG tile."""
    return png_bytes()


@pytest.fixture
def fake_source(tile_png) -> FakeTileSource:
    return FakeTileSource(tile_png)


@pytest.fixture
def write_marker(tmp_path):
    """Factory: write a solid PNG marker file and return its path."""

    def _write(name='marker.png', color=(0, 0, 255, 255), size=(32, 32)) -> Path:
        path = tmp_path / name
        Image.new('RGBA', size, color).save(path, format='PNG')
        return path

    return _write


@pytest.fixture
def response_factory():
    return make_response


@pytest.fixture
def source_factory():
    return FakeTileSource


@pytest.fixture
def pin_svg() -> Path:
    """Shipped default pin marker."""
    return Path(__file__).resolve().parent.parent / 'assets' / 'markers' / 'pin.svg'


@pytest.fixture
def require_cairosvg():
    """Skip when cairosvg or the native cairo library is missing."""
    try:
        import cairosvg  # noqa: F401, PLC0415
    except (ImportError, OSError) as e:
        pytest.skip(f'cairosvg unavailable: {e}')
