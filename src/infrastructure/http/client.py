from __future__ import annotations

import contextlib
import os
import sqlite3
import ssl
from datetime import timedelta
from http import HTTPStatus
from pathlib import Path

import aiohttp
import certifi
from aiohttp_client_cache import CachedSession, SQLiteBackend

from domain.errors import ConfigurationError, NetworkError
from geo.projection import TileCoordinate
from shared.constants import (
    AZURE_MAPS_TILE_URL,
    HTTP_CACHE_DIR,
    HTTP_CACHE_EXPIRE_HOURS,
    HTTP_CACHE_RESPECT_HEADERS,
    HTTP_CACHE_STALE_IF_ERROR_HOURS,
    MapStyle,
)
from tiles.fetcher import tile_request_params


def resolve_cache_dir() -> Path:
    raw_dir = Path(HTTP_CACHE_DIR)
    if raw_dir.is_absolute():
        return raw_dir
    local = os.getenv('LOCALAPPDATA') or os.getenv('XDG_CACHE_HOME')
    if local:
        return (Path(local) / 'SurveyMapper' / 'tiles').resolve()
    # Fallback: user's home directory
    return (Path.home() / '.survey_mapper_cache' / 'tiles').resolve()


def make_ssl_context() -> ssl.SSLContext:
    return ssl.create_default_context(cafile=certifi.where())


def make_http_session(
    cache_dir: Path | None,
    *,
    use_cache: bool = True,
) -> aiohttp.ClientSession:
    """Сессия с сертификатами certifi и, при наличии cache_dir, SQLite-кэшем тайлов."""
    connector = aiohttp.TCPConnector(ssl=make_ssl_context())
    if use_cache and cache_dir is not None:
        cache_dir.mkdir(parents=True, exist_ok=True)
        cache_path = cache_dir / 'http_cache.sqlite'
        with contextlib.suppress(sqlite3.Error):
            if not cache_path.exists():
                with sqlite3.connect(cache_path) as _conn:
                    _conn.execute('PRAGMA journal_mode=WAL;')
        expire_td = timedelta(hours=max(0, int(HTTP_CACHE_EXPIRE_HOURS)))
        stale_hours = int(HTTP_CACHE_STALE_IF_ERROR_HOURS)
        stale_param: bool | timedelta
        stale_param = timedelta(hours=stale_hours) if stale_hours > 0 else False
        backend = SQLiteBackend(str(cache_path), expire_after=expire_td)
        return CachedSession(
            cache=backend,
            connector=connector,
            expire_after=expire_td,
            cache_control=bool(HTTP_CACHE_RESPECT_HEADERS),
            stale_if_error=stale_param,
        )
    return aiohttp.ClientSession(connector=connector)


async def validate_subscription_key(api_key: str) -> None:
    """Быстрая проверка ключа на тайле 0/0/0."""
    params = tile_request_params(TileCoordinate(0, 0, 0), MapStyle.ROAD, api_key)
    timeout = aiohttp.ClientTimeout(total=10, connect=10, sock_connect=10, sock_read=10)
    try:
        async with (
            aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(ssl=make_ssl_context())
            ) as client,
            client.get(AZURE_MAPS_TILE_URL, params=params, timeout=timeout) as resp,
        ):
            sc = resp.status
            if sc == HTTPStatus.OK:
                return
            if sc in (HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN):
                msg = 'Invalid Azure Maps subscription key. Check the key and try again.'
                raise ConfigurationError(msg)
            msg = f'Map server error (HTTP {sc}). Try again later.'
            raise NetworkError(msg)
    except (TimeoutError, aiohttp.ClientConnectorError, aiohttp.ClientOSError) as e:
        msg = 'No internet connection or the map server is unreachable.'
        raise NetworkError(msg, e) from e
