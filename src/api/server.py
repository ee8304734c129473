"""
HTTP-интерфейс экспорта на aiohttp.web.

POST /api/export        : статическая картинка 1280x1280 вокруг центра;
GET  /api/maps-config   : ключ подписки для браузерного SDK;
POST /api/export-hires  : полный экспорт мозаикой по bounds.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from json import JSONDecodeError

import aiohttp
from aiohttp import web
from pydantic import ValidationError

from domain.errors import ConfigurationError, ExportError, TooManyTilesError
from domain.models import HiresExportRequest, StaticExportRequest
from infrastructure.credentials import load_subscription_key
from services.delivery import PngResponseDelivery
from services.export_service import ExportOrchestrator, OrchestratorContext
from services.map_job import open_session
from services.static_export import fetch_static_image
from settings import ExportSettings
from shared.constants import PNG_CACHE_CONTROL, PNG_CONTENT_TYPE
from shared.progress import LoggingSink

logger = logging.getLogger(__name__)

KeyLoader = Callable[[], str]
SessionFactory = Callable[[ExportSettings], aiohttp.ClientSession]

SETTINGS_KEY = web.AppKey('settings', ExportSettings)
KEY_LOADER_KEY = web.AppKey('key_loader', object)
SESSION_FACTORY_KEY = web.AppKey('session_factory', object)
CLIENT_KEY = web.AppKey('client', aiohttp.ClientSession)

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET',
}


def _error(status: int, error: str, **extra: object) -> web.Response:
    return web.json_response({'error': error, **extra}, status=status)


def _api_key(app: web.Application) -> str | None:
    loader: KeyLoader = app[KEY_LOADER_KEY]  # type: ignore[assignment]
    try:
        return loader()
    except ConfigurationError as e:
        logger.error('Subscription key unavailable: %s', e)
        return None


async def handle_export(request: web.Request) -> web.Response:
    if request.method != 'POST':
        return _error(405, 'Method not allowed')
    api_key = _api_key(request.app)
    if api_key is None:
        return _error(500, 'API key missing')
    settings = request.app[SETTINGS_KEY]
    try:
        payload = StaticExportRequest.model_validate(await request.json())
        data = await fetch_static_image(
            request.app[CLIENT_KEY],
            api_key,
            payload,
            api_version=settings.static_api_version,
            timeout_s=settings.timeout_s,
        )
    except (JSONDecodeError, UnicodeDecodeError, ValidationError, ExportError) as e:
        logger.warning('Static export failed: %s', e)
        return _error(500, 'Export failed', details=str(e))
    return web.Response(
        body=data,
        content_type=PNG_CONTENT_TYPE,
        headers={'Cache-Control': PNG_CACHE_CONTROL},
    )


async def handle_maps_config(request: web.Request) -> web.Response:
    api_key = _api_key(request.app)
    if api_key is None:
        return web.json_response(
            {'error': 'API key missing'}, status=500, headers=CORS_HEADERS
        )
    return web.json_response({'subscriptionKey': api_key}, headers=CORS_HEADERS)


async def handle_export_hires(request: web.Request) -> web.Response:
    if request.method != 'POST':
        return _error(405, 'Method not allowed')
    api_key = _api_key(request.app)
    if api_key is None:
        return _error(500, 'API key missing')
    settings = request.app[SETTINGS_KEY]
    try:
        payload = HiresExportRequest.model_validate(await request.json())
        context = OrchestratorContext.from_bounds(payload.bounds, payload.map_type)
        orchestrator = ExportOrchestrator(
            request.app[CLIENT_KEY],
            api_key,
            PngResponseDelivery(),
            settings=settings,
            sink=LoggingSink(),
        )
        result = await orchestrator.export(context, zoom=payload.zoom)
    except TooManyTilesError as e:
        return _error(400, 'Area too large', details=str(e), tiles=e.count)
    except (JSONDecodeError, UnicodeDecodeError, ValidationError, ExportError) as e:
        logger.warning('High-res export failed: %s', e)
        return _error(500, 'Export failed', details=str(e))
    return web.Response(body=result.delivery.content, headers=result.delivery.headers)


def create_app(
    settings: ExportSettings | None = None,
    *,
    api_key_loader: KeyLoader = load_subscription_key,
    session_factory: SessionFactory = open_session,
) -> web.Application:
    app = web.Application()
    app[SETTINGS_KEY] = settings or ExportSettings()
    app[KEY_LOADER_KEY] = api_key_loader
    app[SESSION_FACTORY_KEY] = session_factory

    async def _client_ctx(app: web.Application) -> AsyncIterator[None]:
        factory: SessionFactory = app[SESSION_FACTORY_KEY]  # type: ignore[assignment]
        app[CLIENT_KEY] = factory(app[SETTINGS_KEY])
        yield
        await app[CLIENT_KEY].close()

    app.cleanup_ctx.append(_client_ctx)
    app.router.add_route('*', '/api/export', handle_export)
    app.router.add_get('/api/maps-config', handle_maps_config)
    app.router.add_route('*', '/api/export-hires', handle_export_hires)
    return app
