"""
Точка входа сервисного слоя для экспорта, не зависящая от фронтенда.

Одинаково вызывается из CLI (через asyncio.run), из HTTP-обработчика
(с общей сессией aiohttp) и из тестов.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from infrastructure.http.client import make_http_session, resolve_cache_dir
from services.export_service import ExportOrchestrator

if TYPE_CHECKING:
    import aiohttp

    from services.delivery import Delivery
    from services.export_service import ExportResult, OrchestratorContext
    from settings import ExportSettings
    from shared.progress import CancelToken, ProgressSink

logger = logging.getLogger(__name__)


def open_session(settings: ExportSettings) -> aiohttp.ClientSession:
    cache_dir = resolve_cache_dir() if settings.http_cache else None
    return make_http_session(cache_dir, use_cache=settings.http_cache)


async def export_area(
    context: OrchestratorContext,
    *,
    api_key: str,
    settings: ExportSettings,
    delivery: Delivery,
    sink: ProgressSink | None = None,
    cancel: CancelToken | None = None,
    zoom: int | None = None,
    client: aiohttp.ClientSession | None = None,
) -> ExportResult:
    """Один экспорт; если client не передан, сессия создаётся и закрывается здесь."""
    session = client if client is not None else open_session(settings)
    try:
        orchestrator = ExportOrchestrator(
            session, api_key, delivery, settings=settings, sink=sink
        )
        return await orchestrator.export(context, cancel=cancel, zoom=zoom)
    finally:
        if client is None:
            await session.close()


def run_export_job(
    context: OrchestratorContext,
    *,
    api_key: str,
    settings: ExportSettings,
    delivery: Delivery,
    sink: ProgressSink | None = None,
    cancel: CancelToken | None = None,
    zoom: int | None = None,
) -> ExportResult:
    """Синхронная обёртка для CLI и рабочих потоков."""
    logger.info('Starting export job (style=%s)', context.style.value)
    return asyncio.run(
        export_area(
            context,
            api_key=api_key,
            settings=settings,
            delivery=delivery,
            sink=sink,
            cancel=cancel,
            zoom=zoom,
        )
    )
