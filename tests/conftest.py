"""Pytest configuration and fixtures for Survey Mapper tests."""

import sys
from io import BytesIO
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))


def png_bytes(color=(255, 0, 0, 255), size=512, mode='RGBA'):
    buf = BytesIO()
    Image.new(mode, (size, size), color).save(buf, format='PNG')
    return buf.getvalue()


def make_response(status=200, body=b''):
    resp = MagicMock()
    resp.status = status
    resp.read = AsyncMock(return_value=body)
    return resp


def tile_color(x, y):
    return (x % 256, y % 256, 7, 255)


class FakeTileClient:
    """aiohttp-like client: every tile is a solid PNG whose color encodes (x, y)."""

    def __init__(self, tile_size=512, fail=None, status=200):
        self.tile_size = tile_size
        self.fail = set(fail or ())
        self.status = status
        self.calls = []
        self.get = AsyncMock(side_effect=self._get)
        self.close = AsyncMock()

    async def _get(self, url, params=None, timeout=None):
        self.calls.append(params)
        x, y = int(params['x']), int(params['y'])
        if (x, y) in self.fail:
            return make_response(status=404)
        if self.status != 200:
            return make_response(status=self.status)
        return make_response(body=png_bytes(tile_color(x, y), self.tile_size))


@pytest.fixture
def fake_client():
    return FakeTileClient()


@pytest.fixture
def tile_png():
    return png_bytes


@pytest.fixture
def response_factory():
    return make_response


@pytest.fixture
def tile_client_factory():
    return FakeTileClient
