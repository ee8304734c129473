"""Tile planning and download.

This module provides:
- TileSet / tile_grid: which tiles cover a bounding box at a zoom
- choose_zoom_by_extent / choose_zoom_by_pixel_budget: zoom selection
- TileFetcher: bounded-parallel download from Azure Maps with best-effort policy
"""

from tiles.coverage import (
    TileSet,
    ZoomEstimate,
    choose_zoom_by_extent,
    choose_zoom_by_pixel_budget,
    tile_grid,
)
from tiles.fetcher import FetchReport, TileFetcher, TileImage, fetch_tile

__all__ = [
    'FetchReport',
    'TileFetcher',
    'TileImage',
    'TileSet',
    'ZoomEstimate',
    'choose_zoom_by_extent',
    'choose_zoom_by_pixel_budget',
    'fetch_tile',
    'tile_grid',
]
