"""
Геометрия нарисованных фигур: охват, площадь, длина ломаной.

Площадь считается в плоском приближении (формула шнурования по сырым
долготе/широте с поправкой метров на градус). Это не геодезически точная
площадь; формула сохранена ради совпадения с уже показанными значениями.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from domain.models import BoundingBox, GeoPoint
from geo.projection import great_circle_distance_m
from shared.constants import (
    ACRES_PER_SQ_M,
    FT_PER_M,
    M_PER_KM,
    METERS_PER_DEGREE_LAT,
    MILES_PER_M,
    MIN_PATH_POINTS,
    MIN_POLYGON_POINTS,
    SQ_FT_PER_SQ_M,
    SQ_M_PER_HECTARE,
)

Ring = Sequence[GeoPoint] | Sequence[tuple[float, float]]


def _as_array(points: Ring) -> np.ndarray:
    arr = np.asarray(points, dtype=np.float64)
    if arr.size == 0:
        return arr.reshape(0, 2)
    return arr.reshape(-1, 2)


def bounding_box_of(ring: Ring) -> BoundingBox:
    """Min/max по вершинам кольца. Меньше трёх точек: ValueError."""
    arr = _as_array(ring)
    if len(arr) < MIN_POLYGON_POINTS:
        msg = f'Для охвата нужно не меньше {MIN_POLYGON_POINTS} точек, получено {len(arr)}'
        raise ValueError(msg)
    lons = arr[:, 0]
    lats = arr[:, 1]
    return BoundingBox(
        north=float(lats.max()),
        south=float(lats.min()),
        east=float(lons.max()),
        west=float(lons.min()),
    )


def planar_area(ring: Ring) -> float:
    """Площадь в м² (плоское приближение). Для < 3 точек возвращает 0."""
    arr = _as_array(ring)
    if len(arr) < MIN_POLYGON_POINTS:
        return 0.0
    x = arr[:, 0]
    y = arr[:, 1]
    # Кольцо замыкается: последняя вершина соединяется с первой
    x_next = np.roll(x, -1)
    y_next = np.roll(y, -1)
    area_deg2 = abs(float(np.sum(x * y_next - x_next * y))) / 2.0

    avg_lat = float(y.mean())
    m_per_deg_lon = METERS_PER_DEGREE_LAT * np.cos(np.radians(avg_lat))
    return float(area_deg2 * METERS_PER_DEGREE_LAT * m_per_deg_lon)


def square_meters_to_square_feet(m2: float) -> float:
    return m2 * SQ_FT_PER_SQ_M


def square_meters_to_hectares(m2: float) -> float:
    return m2 / SQ_M_PER_HECTARE


def square_meters_to_acres(m2: float) -> float:
    return m2 * ACRES_PER_SQ_M


@dataclass(frozen=True)
class AreaReport:
    square_meters: float
    square_feet: float
    hectares: float
    acres: float

    @classmethod
    def from_square_meters(cls, m2: float) -> AreaReport:
        return cls(
            square_meters=m2,
            square_feet=square_meters_to_square_feet(m2),
            hectares=square_meters_to_hectares(m2),
            acres=square_meters_to_acres(m2),
        )

    @classmethod
    def of_ring(cls, ring: Ring) -> AreaReport:
        return cls.from_square_meters(planar_area(ring))

    def lines(self) -> list[str]:
        return [
            f'{self.square_meters:.2f} m²',
            f'{self.square_feet:.2f} ft²',
            f'{self.hectares:.4f} ha',
            f'{self.acres:.4f} acres',
        ]


def segment_lengths_m(points: Ring) -> list[float]:
    """Длины звеньев ломаной по большому кругу."""
    arr = _as_array(points)
    return [
        great_circle_distance_m(lat1, lon1, lat2, lon2)
        for (lon1, lat1), (lon2, lat2) in zip(arr[:-1], arr[1:])
    ]


def path_length_m(points: Ring) -> float:
    """Полная длина ломаной; для менее чем двух точек 0."""
    if len(points) < MIN_PATH_POINTS:
        return 0.0
    return float(sum(segment_lengths_m(points)))


@dataclass(frozen=True)
class DistanceReport:
    meters: float
    kilometers: float
    feet: float
    miles: float

    @classmethod
    def from_meters(cls, m: float) -> DistanceReport:
        return cls(
            meters=m,
            kilometers=m / M_PER_KM,
            feet=m * FT_PER_M,
            miles=m * MILES_PER_M,
        )

    @classmethod
    def of_path(cls, points: Ring) -> DistanceReport:
        return cls.from_meters(path_length_m(points))

    def lines(self) -> list[str]:
        return [
            f'{self.meters:.2f} m',
            f'{self.kilometers:.3f} km',
            f'{self.feet:.2f} ft',
            f'{self.miles:.3f} miles',
        ]
