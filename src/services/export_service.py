"""
Export orchestration: shape -> bounds -> tile budget -> fetch -> mosaic -> crop -> delivery.

One orchestrator runs at most one job at a time. The only error tolerated
inside a job is a failed tile, which is left blank in the mosaic.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Protocol

import aiohttp

from domain.errors import (
    ExportError,
    ExportInProgressError,
    NetworkError,
    NoShapeSelectedError,
    TooManyTilesError,
)
from domain.models import BoundingBox, GeoPoint
from geo.polygon import AreaReport, bounding_box_of, planar_area
from imaging.composer import assemble_mosaic, crop_to_bounds
from settings import ExportSettings
from shared.constants import (
    MAX_EXPORT_TILES,
    MIN_POLYGON_POINTS,
    MapStyle,
    default_map_style,
)
from shared.diagnostics import estimate_canvas_mb, log_memory_usage
from shared.progress import CancelledError, check_cancelled, notify
from tiles.coverage import (
    TileSet,
    choose_zoom_by_extent,
    choose_zoom_by_pixel_budget,
    tile_grid,
)
from tiles.fetcher import TileFetcher

if TYPE_CHECKING:
    from PIL import Image

    from services.delivery import Delivery, DeliveryResult
    from shared.progress import CancelToken, ProgressSink

logger = logging.getLogger(__name__)

_NETWORK_ERRORS = (aiohttp.ClientError, TimeoutError)


class ExportState(str, Enum):
    IDLE = 'idle'
    BOUNDS_COMPUTED = 'bounds_computed'
    BUDGET_CHECKED = 'budget_checked'
    FETCHING = 'fetching'
    ASSEMBLING = 'assembling'
    CROPPING = 'cropping'
    DELIVERED = 'delivered'
    FAILED = 'failed'
    CANCELLED = 'cancelled'


class MapView(Protocol):
    """What the export needs from a map SDK, whichever SDK it is."""

    def get_viewport_bounds(self) -> BoundingBox: ...

    def get_shape_ring(self) -> Sequence[GeoPoint] | None: ...

    def on_shape_changed(
        self, callback: Callable[[Sequence[GeoPoint] | None], None]
    ) -> None: ...


@dataclass
class OrchestratorContext:
    """Current UI state passed explicitly into each export."""

    ring: Sequence[GeoPoint] | None = None
    style: MapStyle = field(default_factory=default_map_style)
    drawing_mode: str | None = None

    @classmethod
    def from_map_view(
        cls,
        view: MapView,
        style: MapStyle | None = None,
        drawing_mode: str | None = None,
    ) -> OrchestratorContext:
        ctx = cls(
            ring=view.get_shape_ring(),
            style=style or default_map_style(),
            drawing_mode=drawing_mode,
        )
        view.on_shape_changed(ctx.set_ring)
        return ctx

    @classmethod
    def from_bounds(cls, bbox: BoundingBox, style: MapStyle | None = None) -> OrchestratorContext:
        return cls(ring=bbox.to_ring(), style=style or default_map_style(), drawing_mode='rectangle')

    def set_ring(self, ring: Sequence[GeoPoint] | None) -> None:
        self.ring = list(ring) if ring is not None else None

    @property
    def has_shape(self) -> bool:
        return self.ring is not None and len(self.ring) >= MIN_POLYGON_POINTS


@dataclass
class ExportJob:
    bounds: BoundingBox
    zoom: int
    tile_set: TileSet
    completed: int = 0
    failed: int = 0
    canvas: Image.Image | None = None

    @property
    def total(self) -> int:
        return len(self.tile_set)

    def release(self) -> None:
        if self.canvas is not None:
            self.canvas.close()
            self.canvas = None


@dataclass(frozen=True)
class ExportResult:
    bounds: BoundingBox
    zoom: int
    tile_count: int
    failed_tiles: int
    width: int
    height: int
    delivery: DeliveryResult


@dataclass(frozen=True)
class ExportEstimate:
    bounds: BoundingBox
    zoom: int
    width_px: int
    height_px: int
    tile_count: int
    within_budget: bool
    area: AreaReport


def bounds_of_context(context: OrchestratorContext) -> BoundingBox:
    if not context.has_shape:
        raise NoShapeSelectedError
    return bounding_box_of(context.ring)


def estimate_export(
    context: OrchestratorContext, max_tiles: int = MAX_EXPORT_TILES
) -> ExportEstimate:
    """Pixel-budget preview of an export; makes no network calls."""
    bbox = bounds_of_context(context)
    est = choose_zoom_by_pixel_budget(bbox)
    count = len(tile_grid(bbox, est.zoom))
    return ExportEstimate(
        bounds=bbox,
        zoom=est.zoom,
        width_px=est.width_px,
        height_px=est.height_px,
        tile_count=count,
        within_budget=count <= max_tiles,
        area=AreaReport.from_square_meters(planar_area(context.ring)),
    )


class ExportOrchestrator:
    """Drives one export at a time through the ExportState machine."""

    def __init__(
        self,
        client: aiohttp.ClientSession,
        api_key: str,
        delivery: Delivery,
        *,
        settings: ExportSettings | None = None,
        sink: ProgressSink | None = None,
    ) -> None:
        self.client = client
        self.api_key = api_key
        self.delivery = delivery
        self.settings = settings or ExportSettings()
        self.sink = sink
        self._lock = asyncio.Lock()
        self._state = ExportState.IDLE
        self._job: ExportJob | None = None

    @property
    def state(self) -> ExportState:
        return self._state

    @property
    def job(self) -> ExportJob | None:
        return self._job

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def make_fetcher(self, style: MapStyle) -> TileFetcher:
        s = self.settings
        return TileFetcher(
            self.client,
            self.api_key,
            style,
            tile_size=s.tile_size,
            concurrency=s.concurrency,
            api_version=s.tile_api_version,
            timeout_s=s.timeout_s,
            retries=s.retries,
            backoff=s.backoff,
        )

    def _set_state(self, state: ExportState) -> None:
        logger.debug('Export state: %s -> %s', self._state.value, state.value)
        self._state = state

    def estimate(self, context: OrchestratorContext) -> ExportEstimate:
        return estimate_export(context, self.settings.max_tiles)

    def plan(self, context: OrchestratorContext, zoom: int | None = None) -> ExportJob:
        """Bounds, zoom and budget check. Failures leave the orchestrator idle."""
        try:
            bbox = bounds_of_context(context)
            self._set_state(ExportState.BOUNDS_COMPUTED)
            target_zoom = zoom if zoom is not None else choose_zoom_by_extent(bbox)
            tile_set = tile_grid(bbox, target_zoom)
            if len(tile_set) > self.settings.max_tiles:
                raise TooManyTilesError(len(tile_set), self.settings.max_tiles)
        except (NoShapeSelectedError, TooManyTilesError) as e:
            self._set_state(ExportState.IDLE)
            notify(self.sink, 'on_warning', str(e))
            raise
        self._set_state(ExportState.BUDGET_CHECKED)
        return ExportJob(bounds=bbox, zoom=target_zoom, tile_set=tile_set)

    async def export(
        self,
        context: OrchestratorContext,
        *,
        cancel: CancelToken | None = None,
        zoom: int | None = None,
    ) -> ExportResult:
        if self._lock.locked():
            raise ExportInProgressError
        async with self._lock:
            self._set_state(ExportState.IDLE)
            job = self.plan(context, zoom)
            self._job = job
            try:
                return await self._run(job, context.style, cancel)
            finally:
                job.release()
                self._job = None

    async def _run(
        self,
        job: ExportJob,
        style: MapStyle,
        cancel: CancelToken | None,
    ) -> ExportResult:
        ts = self.settings.tile_size
        tile_set = job.tile_set

        def _on_tile_done(completed: int, total: int) -> None:
            job.completed = completed
            notify(self.sink, 'on_progress', completed, total, 'Tiles')

        try:
            self._set_state(ExportState.FETCHING)
            logger.info(
                'Export: %d tiles at zoom %d (~%.1f MB canvas)',
                job.total,
                job.zoom,
                estimate_canvas_mb(tile_set.count_x * ts, tile_set.count_y * ts),
            )
            notify(
                self.sink, 'on_info', f'Fetching {job.total} tiles at zoom level {job.zoom}...'
            )
            report = await self.make_fetcher(style).fetch_many(
                tile_set, on_progress=_on_tile_done, cancel=cancel
            )
            job.failed = len(report.failures)
            try:
                check_cancelled(cancel)
            except CancelledError:
                report.close()
                raise
            if job.failed:
                notify(
                    self.sink,
                    'on_warning',
                    f'{job.failed} of {job.total} tiles failed to load; gaps left blank.',
                )

            self._set_state(ExportState.ASSEMBLING)
            job.canvas = assemble_mosaic(report.tiles, tile_set, ts)
            log_memory_usage('after mosaic assembly')

            self._set_state(ExportState.CROPPING)
            image = crop_to_bounds(
                job.canvas, job.bounds, job.zoom, tile_set.min_x, tile_set.min_y, ts
            )
            job.release()
            try:
                result = self.delivery.deliver(image)
            finally:
                image.close()
        except CancelledError:
            self._set_state(ExportState.CANCELLED)
            notify(self.sink, 'on_warning', 'Export cancelled.')
            raise
        except ExportError as e:
            self._set_state(ExportState.FAILED)
            notify(self.sink, 'on_warning', f'High-res export failed: {e}')
            raise
        except _NETWORK_ERRORS as e:
            self._set_state(ExportState.FAILED)
            notify(self.sink, 'on_warning', f'High-res export failed: {e}')
            msg = f'Export failed: {e}'
            raise NetworkError(msg, e) from e
        except Exception:
            self._set_state(ExportState.FAILED)
            logger.exception('Unexpected export failure')
            raise

        self._set_state(ExportState.DELIVERED)
        notify(
            self.sink,
            'on_info',
            f'High-resolution export complete! Size: {result.width}x{result.height}px',
        )
        return ExportResult(
            bounds=job.bounds,
            zoom=job.zoom,
            tile_count=job.total,
            failed_tiles=job.failed,
            width=result.width,
            height=result.height,
            delivery=result,
        )
