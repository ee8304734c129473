"""
Модуль загрузки тайлов Azure Maps.

Одиночный тайл: запрос к Render API, декодирование в RGBA, ограниченное
число повторов при 429/5xx/таймаутах. Пакет тайлов: параллельно под
семафором, по принципу «склеиваем то, что загрузилось».
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from http import HTTPStatus
from io import BytesIO
from typing import TYPE_CHECKING

import aiohttp
from PIL import Image, UnidentifiedImageError

from domain.errors import TileFetchError
from geo.projection import TileCoordinate
from shared.constants import (
    AZURE_MAPS_TILE_URL,
    AZURE_TILE_API_VERSION,
    DOWNLOAD_CONCURRENCY,
    EXPORT_TILE_SIZE,
    HTTP_5XX_MAX,
    HTTP_5XX_MIN,
    HTTP_BACKOFF_FACTOR,
    HTTP_RETRIES_DEFAULT,
    HTTP_TIMEOUT_DEFAULT,
    LOG_MEMORY_EVERY_TILES,
    MapStyle,
    map_style_to_tileset_id,
)
from shared.diagnostics import log_memory_usage
from shared.progress import CancelledError

if TYPE_CHECKING:
    from collections.abc import Callable

    from shared.progress import CancelToken
    from tiles.coverage import TileSet

logger = logging.getLogger(__name__)


@dataclass
class TileImage:
    """Декодированный тайл; владеет изображением до передачи в сборку."""

    coord: TileCoordinate
    image: Image.Image

    def close(self) -> None:
        try:
            self.image.close()
        except Exception as e:
            logger.debug('Failed to close tile image: %s', e)


@dataclass
class FetchReport:
    tiles: list[TileImage] = field(default_factory=list)
    failures: list[TileFetchError] = field(default_factory=list)

    @property
    def completed(self) -> int:
        return len(self.tiles) + len(self.failures)

    def close(self) -> None:
        for tile in self.tiles:
            tile.close()
        self.tiles.clear()


def tile_request_params(
    coord: TileCoordinate,
    style: MapStyle | str,
    api_key: str,
    *,
    tile_size: int = EXPORT_TILE_SIZE,
    api_version: str = AZURE_TILE_API_VERSION,
) -> dict[str, str]:
    """Параметры запроса тайла в порядке, принятом Render API."""
    return {
        'api-version': api_version,
        'tilesetId': map_style_to_tileset_id(style),
        'zoom': str(coord.zoom),
        'x': str(coord.x),
        'y': str(coord.y),
        'tileSize': str(tile_size),
        'subscription-key': api_key,
    }


def release_response(resp: object) -> None:
    # Освобождение ресурсов ответа для aiohttp и CachedResponse
    try:
        close = getattr(resp, 'close', None)
        if callable(close):
            close()
        release = getattr(resp, 'release', None)
        if callable(release):
            release()
    except Exception as e:
        logger.debug('Failed to cleanup HTTP response: %s', e, exc_info=True)


def decode_tile(data: bytes, coord: TileCoordinate) -> Image.Image:
    """PNG/JPEG/WebP -> RGBA. Битые данные: TileFetchError."""
    try:
        img = Image.open(BytesIO(data))
        img.load()
        return img.convert('RGBA')
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise TileFetchError(coord.x, coord.y, coord.zoom, e) from e


async def fetch_tile(
    client: aiohttp.ClientSession,
    api_key: str,
    coord: TileCoordinate,
    style: MapStyle | str,
    *,
    tile_size: int = EXPORT_TILE_SIZE,
    api_version: str = AZURE_TILE_API_VERSION,
    timeout_s: float = HTTP_TIMEOUT_DEFAULT,
    retries: int = HTTP_RETRIES_DEFAULT,
    backoff: float = HTTP_BACKOFF_FACTOR,
) -> TileImage:
    """
    Загружает один тайл и возвращает TileImage (RGBA).

    - Ключ подписки не попадает в лог и тексты ошибок.
    - 401/403/404 и ошибки декодирования не повторяются.
    - 429/5xx/таймауты/сетевые ошибки повторяются до retries раз
      с экспоненциальной задержкой.
    """
    params = tile_request_params(
        coord, style, api_key, tile_size=tile_size, api_version=api_version
    )
    where = f'z/x/y={coord.zoom}/{coord.x}/{coord.y}'
    timeout = aiohttp.ClientTimeout(total=timeout_s)
    attempts = max(1, int(retries))

    last_exc: BaseException | None = None
    for attempt in range(attempts):
        try:
            resp = await client.get(AZURE_MAPS_TILE_URL, params=params, timeout=timeout)
            try:
                sc = resp.status
                if sc == HTTPStatus.OK:
                    data = await resp.read()
                    return TileImage(coord, decode_tile(data, coord))
                if sc in (HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN):
                    msg = f'Access denied (HTTP {sc}); check the subscription key'
                    raise TileFetchError(coord.x, coord.y, coord.zoom, msg)
                if sc == HTTPStatus.NOT_FOUND:
                    raise TileFetchError(coord.x, coord.y, coord.zoom, 'HTTP 404')
                if sc == HTTPStatus.TOO_MANY_REQUESTS or HTTP_5XX_MIN <= sc < HTTP_5XX_MAX:
                    last_exc = RuntimeError(f'HTTP {sc}')
                else:
                    raise TileFetchError(
                        coord.x, coord.y, coord.zoom, f'Unexpected HTTP {sc}'
                    )
            finally:
                release_response(resp)
        except TileFetchError:
            raise
        except (TimeoutError, aiohttp.ClientError, OSError) as e:
            last_exc = e
        logger.debug('Tile %s attempt %d/%d failed: %s', where, attempt + 1, attempts, last_exc)
        if attempt + 1 < attempts:
            await asyncio.sleep(backoff**attempt)
    raise TileFetchError(coord.x, coord.y, coord.zoom, last_exc or 'unknown error')


class TileFetcher:
    """Пакетная загрузка тайлов с ограничением параллелизма."""

    def __init__(
        self,
        client: aiohttp.ClientSession,
        api_key: str,
        style: MapStyle | str,
        *,
        tile_size: int = EXPORT_TILE_SIZE,
        concurrency: int = DOWNLOAD_CONCURRENCY,
        api_version: str = AZURE_TILE_API_VERSION,
        timeout_s: float = HTTP_TIMEOUT_DEFAULT,
        retries: int = HTTP_RETRIES_DEFAULT,
        backoff: float = HTTP_BACKOFF_FACTOR,
    ):
        self.client = client
        self.api_key = api_key
        self.style = style
        self.tile_size = tile_size
        self.api_version = api_version
        self.timeout_s = timeout_s
        self.retries = retries
        self.backoff = backoff
        self.concurrency = max(1, int(concurrency))

    async def fetch_tile(self, coord: TileCoordinate) -> TileImage:
        return await fetch_tile(
            self.client,
            self.api_key,
            coord,
            self.style,
            tile_size=self.tile_size,
            api_version=self.api_version,
            timeout_s=self.timeout_s,
            retries=self.retries,
            backoff=self.backoff,
        )

    async def fetch_many(
        self,
        tile_set: TileSet,
        *,
        on_progress: Callable[[int, int], None] | None = None,
        cancel: CancelToken | None = None,
    ) -> FetchReport:
        """
        Загружает все тайлы набора.

        Ошибка одного тайла логируется и не прерывает соседние загрузки.
        После каждого завершения вызывается on_progress(completed, total).
        При отмене новые запросы не начинаются, уже начатые дожидаются,
        их результаты отбрасываются, затем бросается CancelledError.
        """
        total = len(tile_set)
        report = FetchReport()
        semaphore = asyncio.Semaphore(self.concurrency)

        def _cancelled() -> bool:
            return cancel is not None and cancel.is_cancelled()

        async def _worker(coord: TileCoordinate) -> TileImage | TileFetchError | None:
            async with semaphore:
                if _cancelled():
                    return None
                try:
                    return await self.fetch_tile(coord)
                except TileFetchError as e:
                    return e

        tasks = [asyncio.ensure_future(_worker(c)) for c in tile_set]
        cancelled = False
        try:
            for next_done in asyncio.as_completed(tasks):
                result = await next_done
                if cancelled or _cancelled():
                    cancelled = True
                    if isinstance(result, TileImage):
                        result.close()
                    continue
                if isinstance(result, TileImage):
                    report.tiles.append(result)
                elif isinstance(result, TileFetchError):
                    logger.warning('Tile fetch error: %s', result)
                    report.failures.append(result)
                if on_progress is not None:
                    on_progress(report.completed, total)
                if report.completed % LOG_MEMORY_EVERY_TILES == 0:
                    log_memory_usage(f'after {report.completed} tiles')
        except BaseException:
            for t in tasks:
                t.cancel()
            report.close()
            raise

        if cancelled:
            report.close()
            msg = 'Export cancelled'
            raise CancelledError(msg)
        return report
