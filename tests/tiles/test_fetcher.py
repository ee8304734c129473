"""Tests for Azure Maps tile fetching."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest
from PIL import Image

from domain.errors import TileFetchError
from geo.projection import TileCoordinate
from shared.constants import MapStyle
from shared.progress import CancelledError, EventCancelToken
from tiles.coverage import TileSet
from tiles.fetcher import (
    FetchReport,
    TileFetcher,
    TileImage,
    decode_tile,
    fetch_tile,
    tile_request_params,
)

COORD = TileCoordinate(x=5, y=7, zoom=4)


class TestRequestParams:
    def test_road(self):
        params = tile_request_params(COORD, MapStyle.ROAD, 'secret')
        assert params == {
            'api-version': '2.2',
            'tilesetId': 'microsoft.base.road',
            'zoom': '4',
            'x': '5',
            'y': '7',
            'tileSize': '512',
            'subscription-key': 'secret',
        }

    def test_satellite_and_tile_size(self):
        params = tile_request_params(COORD, 'satellite', 'k', tile_size=256)
        assert params['tilesetId'] == 'microsoft.base.satellite_road_labels'
        assert params['tileSize'] == '256'

    def test_unknown_style_falls_back_to_road(self):
        assert tile_request_params(COORD, 'terrain', 'k')['tilesetId'] == 'microsoft.base.road'


class TestDecodeTile:
    def test_rgb_converted_to_rgba(self, tile_png):
        img = decode_tile(tile_png((1, 2, 3), 256, mode='RGB'), COORD)
        assert img.mode == 'RGBA'
        assert img.getpixel((0, 0)) == (1, 2, 3, 255)

    def test_garbage_raises(self):
        with pytest.raises(TileFetchError) as exc:
            decode_tile(b'not an image', COORD)
        assert exc.value.x == 5
        assert exc.value.y == 7


class TestFetchTile:
    @pytest.mark.asyncio
    async def test_success(self, tile_png, response_factory):
        client = MagicMock()
        resp = response_factory(body=tile_png((9, 9, 9, 255), 512))
        client.get = AsyncMock(return_value=resp)

        tile = await fetch_tile(client, 'key', COORD, MapStyle.ROAD)

        assert tile.coord == COORD
        assert tile.image.size == (512, 512)
        _, kwargs = client.get.call_args
        assert kwargs['params']['x'] == '5'
        resp.release.assert_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize('status', [401, 403, 404, 400])
    async def test_non_retryable_status(self, status, response_factory):
        client = MagicMock()
        client.get = AsyncMock(return_value=response_factory(status=status))

        with pytest.raises(TileFetchError):
            await fetch_tile(client, 'key', COORD, MapStyle.ROAD, retries=3)
        assert client.get.call_count == 1

    @pytest.mark.asyncio
    async def test_key_not_in_error_message(self, response_factory):
        client = MagicMock()
        client.get = AsyncMock(return_value=response_factory(status=403))
        with pytest.raises(TileFetchError) as exc:
            await fetch_tile(client, 'super-secret-key', COORD, MapStyle.ROAD)
        assert 'super-secret-key' not in str(exc.value)

    @pytest.mark.asyncio
    async def test_retries_on_server_error_then_succeeds(self, tile_png, response_factory):
        client = MagicMock()
        client.get = AsyncMock(
            side_effect=[
                response_factory(status=503),
                response_factory(status=429),
                response_factory(body=tile_png()),
            ]
        )
        with patch('tiles.fetcher.asyncio.sleep', new_callable=AsyncMock) as sleep:
            tile = await fetch_tile(client, 'key', COORD, MapStyle.ROAD, retries=3, backoff=2.0)

        assert isinstance(tile, TileImage)
        assert client.get.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self):
        client = MagicMock()
        client.get = AsyncMock(side_effect=aiohttp.ClientConnectionError('boom'))
        with patch('tiles.fetcher.asyncio.sleep', new_callable=AsyncMock) as sleep:
            with pytest.raises(TileFetchError) as exc:
                await fetch_tile(client, 'key', COORD, MapStyle.ROAD, retries=2)

        assert client.get.call_count == 2
        assert sleep.call_count == 1
        assert 'boom' in str(exc.value)

    @pytest.mark.asyncio
    async def test_timeout_is_retried(self, tile_png, response_factory):
        client = MagicMock()
        client.get = AsyncMock(side_effect=[TimeoutError(), response_factory(body=tile_png())])
        with patch('tiles.fetcher.asyncio.sleep', new_callable=AsyncMock):
            tile = await fetch_tile(client, 'key', COORD, MapStyle.ROAD, retries=2)
        assert tile.coord == COORD


class TestTileFetcher:
    @pytest.mark.asyncio
    async def test_fetch_many_collects_all(self, tile_client_factory):
        client = tile_client_factory(tile_size=256)
        ts = TileSet(zoom=5, columns=(3, 4), rows=(6, 7, 8))
        progress = []
        fetcher = TileFetcher(client, 'key', MapStyle.ROAD, tile_size=256, concurrency=2)

        report = await fetcher.fetch_many(ts, on_progress=lambda d, t: progress.append((d, t)))

        assert len(report.tiles) == 6
        assert report.failures == []
        assert {t.coord for t in report.tiles} == set(ts)
        assert progress == [(i, 6) for i in range(1, 7)]
        report.close()

    @pytest.mark.asyncio
    async def test_failed_tile_does_not_abort_batch(self, tile_client_factory):
        client = tile_client_factory(tile_size=256, fail={(4, 7)})
        ts = TileSet(zoom=5, columns=(3, 4), rows=(6, 7))
        fetcher = TileFetcher(client, 'key', MapStyle.ROAD, tile_size=256, retries=1)

        report = await fetcher.fetch_many(ts)

        assert report.completed == 4
        assert len(report.tiles) == 3
        assert len(report.failures) == 1
        assert (report.failures[0].x, report.failures[0].y) == (4, 7)
        report.close()

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, tile_png, response_factory):
        in_flight = 0
        peak = 0

        async def _get(url, params=None, timeout=None):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0)
            in_flight -= 1
            return response_factory(body=tile_png(size=256))

        client = MagicMock()
        client.get = AsyncMock(side_effect=_get)
        ts = TileSet(zoom=6, columns=tuple(range(4)), rows=tuple(range(3)))
        fetcher = TileFetcher(client, 'key', MapStyle.ROAD, tile_size=256, concurrency=3)

        report = await fetcher.fetch_many(ts)

        assert len(report.tiles) == 12
        assert peak <= 3
        report.close()

    @pytest.mark.asyncio
    async def test_cancel_stops_new_requests(self, tile_client_factory):
        client = tile_client_factory(tile_size=256)
        ts = TileSet(zoom=5, columns=(1, 2, 3), rows=(1, 2, 3))
        token = EventCancelToken()
        progress = []

        def _on_progress(done, total):
            progress.append(done)
            token.cancel()

        fetcher = TileFetcher(client, 'key', MapStyle.ROAD, tile_size=256, concurrency=1)
        with pytest.raises(CancelledError):
            await fetcher.fetch_many(ts, on_progress=_on_progress, cancel=token)

        assert progress == [1]
        assert client.get.call_count < len(ts)

    @pytest.mark.asyncio
    async def test_already_cancelled_makes_no_requests(self, tile_client_factory):
        client = tile_client_factory()
        token = EventCancelToken()
        token.cancel()
        fetcher = TileFetcher(client, 'key', MapStyle.ROAD)
        with pytest.raises(CancelledError):
            await fetcher.fetch_many(TileSet(zoom=2, columns=(0, 1), rows=(0,)), cancel=token)
        client.get.assert_not_called()


def test_fetch_report_close_releases_tiles():
    img = Image.new('RGBA', (4, 4))
    report = FetchReport(tiles=[TileImage(COORD, img)])
    report.close()
    assert report.tiles == []
