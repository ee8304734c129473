"""Tile coverage: zoom selection and the tile grid for a bounding box."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from domain.models import BoundingBox
from geo.projection import (
    TileCoordinate,
    great_circle_distance_m,
    meters_per_pixel,
    point_to_tile,
)
from shared.constants import (
    PIXEL_BUDGET_FLOOR_ZOOM,
    PIXEL_BUDGET_MAX_PX,
    PIXEL_BUDGET_START_ZOOM,
    ZOOM_BY_EXTENT_FALLBACK,
    ZOOM_BY_EXTENT_STEPS,
)


@dataclass(frozen=True)
class TileSet:
    """Rectangular block of tiles covering a bbox at one zoom.

    `columns` lists x indices left to right; they wrap modulo 2^zoom for
    boxes crossing the antimeridian, so use `column_of` rather than
    `x - min_x` to place a tile.
    """

    zoom: int
    columns: tuple[int, ...]
    rows: tuple[int, ...]

    @property
    def min_x(self) -> int:
        return self.columns[0]

    @property
    def min_y(self) -> int:
        return self.rows[0]

    @property
    def count_x(self) -> int:
        return len(self.columns)

    @property
    def count_y(self) -> int:
        return len(self.rows)

    def __len__(self) -> int:
        return self.count_x * self.count_y

    def __iter__(self) -> Iterator[TileCoordinate]:
        for x in self.columns:
            for y in self.rows:
                yield TileCoordinate(x, y, self.zoom)

    def __contains__(self, item: object) -> bool:
        if not isinstance(item, TileCoordinate):
            return False
        return item.zoom == self.zoom and item.x in self.columns and item.y in self.rows

    def column_of(self, x: int) -> int:
        return self.columns.index(x)

    def row_of(self, y: int) -> int:
        return y - self.min_y


@dataclass(frozen=True)
class ZoomEstimate:
    zoom: int
    width_px: int
    height_px: int


def choose_zoom_by_extent(bbox: BoundingBox) -> int:
    """Zoom by the larger of the lng/lat spans: smaller area, higher zoom."""
    max_diff = max(abs(bbox.lng_span), abs(bbox.lat_span))
    for threshold, zoom in ZOOM_BY_EXTENT_STEPS:
        if max_diff < threshold:
            return zoom
    return ZOOM_BY_EXTENT_FALLBACK


def bbox_extent_m(bbox: BoundingBox) -> tuple[float, float]:
    """Width and height of the bbox in meters along its south and west edges."""
    width_m = great_circle_distance_m(bbox.south, bbox.west, bbox.south, bbox.west + bbox.lng_span)
    height_m = great_circle_distance_m(bbox.south, bbox.west, bbox.north, bbox.west)
    return width_m, height_m


def choose_zoom_by_pixel_budget(
    bbox: BoundingBox,
    max_pixels: int = PIXEL_BUDGET_MAX_PX,
    start_zoom: int = PIXEL_BUDGET_START_ZOOM,
    floor_zoom: int = PIXEL_BUDGET_FLOOR_ZOOM,
) -> ZoomEstimate:
    """
    Highest zoom (searching down from start_zoom) where both pixel extents
    stay below max_pixels; floor_zoom when none qualifies.
    """
    width_m, height_m = bbox_extent_m(bbox)
    center_lat = bbox.center.lat

    def _size_at(zoom: int) -> tuple[int, int]:
        mpp = meters_per_pixel(center_lat, zoom)
        return round(width_m / mpp), round(height_m / mpp)

    for zoom in range(start_zoom, floor_zoom - 1, -1):
        w_px, h_px = _size_at(zoom)
        if w_px < max_pixels and h_px < max_pixels:
            return ZoomEstimate(zoom, w_px, h_px)
    w_px, h_px = _size_at(floor_zoom)
    return ZoomEstimate(floor_zoom, w_px, h_px)


def tile_grid(bbox: BoundingBox, zoom: int) -> TileSet:
    """All tiles between the (north, west) and (south, east) corner tiles."""
    top_left = point_to_tile(bbox.north, bbox.west, zoom)
    bottom_right = point_to_tile(bbox.south, bbox.east, zoom)
    n = 2**zoom
    east_x = bottom_right.x
    if bbox.crosses_antimeridian:
        # восточный угол лежит в следующей копии мира
        east_x += n
    count_x = east_x - top_left.x + 1
    columns = tuple((top_left.x + i) % n for i in range(count_x))
    rows = tuple(range(top_left.y, bottom_right.y + 1))
    return TileSet(zoom=zoom, columns=columns, rows=rows)
