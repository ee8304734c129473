"""
Сферическая проекция Web Mercator: тайлы, «мировые» пиксели, разрешение.

Все функции чистые; эллипсоид не учитывается.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache

from pyproj import Geod

from shared.constants import (
    EARTH_MEAN_RADIUS_M,
    GROUND_RESOLUTION_EQUATOR_M,
    WORLD_LAT_MAX_DEG,
    WORLD_LNG_HALF_SPAN_DEG,
    WORLD_LNG_SPAN_DEG,
)


@dataclass(frozen=True, order=True)
class TileCoordinate:
    """Тайл (x, y) пирамиды на уровне zoom."""

    x: int
    y: int
    zoom: int


def _world_fraction(lat_deg: float, lng_deg: float) -> tuple[float, float]:
    """Доля «мира» по x и y в [0, 1] для точки WGS84."""
    if not (-WORLD_LAT_MAX_DEG < lat_deg < WORLD_LAT_MAX_DEG):
        msg = f'Широта {lat_deg} не отображается в Web Mercator'
        raise ValueError(msg)
    lat_rad = math.radians(lat_deg)
    fx = (lng_deg + WORLD_LNG_HALF_SPAN_DEG) / WORLD_LNG_SPAN_DEG
    fy = (1.0 - math.asinh(math.tan(lat_rad)) / math.pi) / 2.0
    return fx, fy


def point_to_tile(lat_deg: float, lng_deg: float, zoom: int) -> TileCoordinate:
    """
    Тайл, содержащий точку.

    Индексы зажимаются в [0, 2^zoom - 1]: долгота 180 и широты за пределом
    проекции (~85.0511) попадают в крайний тайл.
    """
    n = 2**zoom
    fx, fy = _world_fraction(lat_deg, lng_deg)
    x = min(max(math.floor(fx * n), 0), n - 1)
    y = min(max(math.floor(fy * n), 0), n - 1)
    return TileCoordinate(x, y, zoom)


def point_to_pixel(
    lat_deg: float,
    lng_deg: float,
    zoom: int,
    tile_size: int,
) -> tuple[float, float]:
    """Преобразует WGS84 (lat, lng) в «мировые» пиксели при данном размере тайла."""
    n = 2**zoom
    fx, fy = _world_fraction(lat_deg, lng_deg)
    # Сначала масштаб в тайлах, затем в пикселях: floor(px / tile_size)
    # совпадает с индексом тайла для размеров-степеней двойки.
    return fx * n * tile_size, fy * n * tile_size


def pixel_to_point(
    px: float,
    py: float,
    zoom: int,
    tile_size: int,
) -> tuple[float, float]:
    """Обратное преобразование: «мировые» пиксели -> (lat, lng)."""
    world_size = tile_size * (2**zoom)
    lng = px / world_size * WORLD_LNG_SPAN_DEG - WORLD_LNG_HALF_SPAN_DEG
    lat = math.degrees(math.atan(math.sinh(math.pi * (1.0 - 2.0 * py / world_size))))
    return lat, lng


def meters_per_pixel(lat_deg: float, zoom: int) -> float:
    """Метров на пиксель на широте lat_deg (тайл 256, стандартная формула)."""
    return GROUND_RESOLUTION_EQUATOR_M * math.cos(math.radians(lat_deg)) / (2**zoom)


@lru_cache(maxsize=1)
def _sphere() -> Geod:
    return Geod(a=EARTH_MEAN_RADIUS_M, f=0.0)


def great_circle_distance_m(
    lat1_deg: float,
    lng1_deg: float,
    lat2_deg: float,
    lng2_deg: float,
) -> float:
    """Расстояние по большому кругу на сфере среднего радиуса Земли."""
    _, _, dist = _sphere().inv(lng1_deg, lat1_deg, lng2_deg, lat2_deg)
    return float(dist)
