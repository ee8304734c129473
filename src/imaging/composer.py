"""Image composition utilities - tile assembly and cropping."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from io import BytesIO
from typing import TYPE_CHECKING

from PIL import Image

from domain.errors import EmptyRegionError
from geo.projection import point_to_pixel

if TYPE_CHECKING:
    from domain.models import BoundingBox
    from tiles.coverage import TileSet
    from tiles.fetcher import TileImage

logger = logging.getLogger(__name__)

# Пустые места мозаики остаются прозрачными
_BLANK = (0, 0, 0, 0)


def new_canvas(tile_set: TileSet, tile_size: int) -> Image.Image:
    """Холст размером (столбцы * тайл) x (строки * тайл)."""
    return Image.new(
        'RGBA', (tile_set.count_x * tile_size, tile_set.count_y * tile_size), _BLANK
    )


def tile_offset(tile: TileImage, tile_set: TileSet, tile_size: int) -> tuple[int, int]:
    return (
        tile_set.column_of(tile.coord.x) * tile_size,
        tile_set.row_of(tile.coord.y) * tile_size,
    )


def assemble_mosaic(
    tiles: Iterable[TileImage],
    tile_set: TileSet,
    tile_size: int,
) -> Image.Image:
    """
    Склеивает тайлы в один холст без смешивания.

    Ячейки сетки не пересекаются, поэтому порядок вставки не важен.
    Тайлы после вставки закрываются; отсутствующие остаются прозрачными.
    """
    canvas = new_canvas(tile_set, tile_size)
    for tile in tiles:
        if tile.coord not in tile_set:
            logger.debug('Tile %s is outside of the grid, skipped', tile.coord)
            tile.close()
            continue
        img = tile.image
        if img.size != (tile_size, tile_size):
            img = img.resize((tile_size, tile_size), Image.Resampling.LANCZOS)
        if img.mode != 'RGBA':
            img = img.convert('RGBA')
        canvas.paste(img, tile_offset(tile, tile_set, tile_size))
        if img is not tile.image:
            img.close()
        tile.close()
    return canvas


def crop_rect_for_bounds(
    bbox: BoundingBox,
    zoom: int,
    min_x: int,
    min_y: int,
    tile_size: int,
) -> tuple[int, int, int, int]:
    """
    Прямоугольник (x, y, w, h) точных границ bbox в координатах холста.

    Левый верхний угол холста соответствует тайлу (min_x, min_y). Для bbox через
    антимеридиан восточный край переносится на ширину мира вправо.
    """
    left, top = point_to_pixel(bbox.north, bbox.west, zoom, tile_size)
    right, bottom = point_to_pixel(bbox.south, bbox.east, zoom, tile_size)
    if bbox.crosses_antimeridian:
        right += tile_size * (2**zoom)
    left_px, top_px = math.floor(left), math.floor(top)
    right_px, bottom_px = math.floor(right), math.floor(bottom)
    x = left_px - min_x * tile_size
    y = top_px - min_y * tile_size
    return x, y, right_px - left_px, bottom_px - top_px


def crop_to_bounds(
    canvas: Image.Image,
    bbox: BoundingBox,
    zoom: int,
    min_x: int,
    min_y: int,
    tile_size: int,
) -> Image.Image:
    """Вырезает из мозаики ровно географические границы bbox."""
    x, y, w, h = crop_rect_for_bounds(bbox, zoom, min_x, min_y, tile_size)
    if w <= 0 or h <= 0:
        raise EmptyRegionError(w, h)
    return canvas.crop((x, y, x + w, y + h))


def encode_png(image: Image.Image) -> bytes:
    buf = BytesIO()
    image.save(buf, format='PNG')
    return buf.getvalue()
