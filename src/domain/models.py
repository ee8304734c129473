from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from shared.constants import (
    HIRES_DEFAULT_ZOOM,
    HIRES_MAX_ZOOM,
    WORLD_LAT_MAX_DEG,
    WORLD_LNG_HALF_SPAN_DEG,
    WORLD_LNG_SPAN_DEG,
    MapStyle,
    resolve_map_style,
)


class GeoPoint(NamedTuple):
    """Точка WGS84 в порядке (долгота, широта), как в GeoJSON."""

    lon: float
    lat: float


def _check_lat(v: float) -> float:
    v = float(v)
    if not (-WORLD_LAT_MAX_DEG < v < WORLD_LAT_MAX_DEG):
        msg = 'Широта должна быть в интервале (-90, 90)'
        raise ValueError(msg)
    return v


def _check_lng(v: float) -> float:
    v = float(v)
    if not (-WORLD_LNG_HALF_SPAN_DEG <= v <= WORLD_LNG_HALF_SPAN_DEG):
        msg = 'Долгота должна быть в диапазоне [-180, 180]'
        raise ValueError(msg)
    return v


class BoundingBox(BaseModel):
    """
    Прямоугольник в градусах.

    west > east означает область, пересекающую антимеридиан.
    """

    model_config = ConfigDict(frozen=True)

    north: float
    south: float
    east: float
    west: float

    @field_validator('north', 'south')
    @classmethod
    def validate_lat(cls, v: float) -> float:
        return _check_lat(v)

    @field_validator('east', 'west')
    @classmethod
    def validate_lng(cls, v: float) -> float:
        return _check_lng(v)

    @model_validator(mode='after')
    def validate_order(self) -> 'BoundingBox':
        if self.north < self.south:
            msg = 'north должен быть не меньше south'
            raise ValueError(msg)
        return self

    @property
    def crosses_antimeridian(self) -> bool:
        return self.west > self.east

    @property
    def lng_span(self) -> float:
        if self.crosses_antimeridian:
            return self.east - self.west + WORLD_LNG_SPAN_DEG
        return self.east - self.west

    @property
    def lat_span(self) -> float:
        return self.north - self.south

    @property
    def center(self) -> GeoPoint:
        lon = self.west + self.lng_span / 2.0
        if lon > WORLD_LNG_HALF_SPAN_DEG:
            lon -= WORLD_LNG_SPAN_DEG
        return GeoPoint(lon, (self.north + self.south) / 2.0)

    def to_ring(self) -> list[GeoPoint]:
        """Кольцо из четырёх углов по часовой стрелке начиная с северо-запада."""
        return [
            GeoPoint(self.west, self.north),
            GeoPoint(self.east, self.north),
            GeoPoint(self.east, self.south),
            GeoPoint(self.west, self.south),
        ]


class HiresExportRequest(BaseModel):
    """Тело POST /api/export-hires."""

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    bounds: BoundingBox
    max_zoom: int | None = Field(default=None, alias='maxZoom')
    map_type: MapStyle = Field(default=MapStyle.ROAD, alias='mapType')

    @field_validator('map_type', mode='before')
    @classmethod
    def validate_map_type(cls, v: object) -> MapStyle:
        return resolve_map_style(v if isinstance(v, (str, MapStyle)) else None)

    @property
    def zoom(self) -> int:
        """min(maxZoom или 18, 20), не ниже нуля."""
        requested = self.max_zoom or HIRES_DEFAULT_ZOOM
        return max(0, min(requested, HIRES_MAX_ZOOM))


class StaticExportRequest(BaseModel):
    """Тело POST /api/export: центр [lng, lat], zoom, тип карты."""

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    center: tuple[float, float]
    zoom: int = Field(ge=0, le=HIRES_MAX_ZOOM)
    map_type: MapStyle = Field(default=MapStyle.ROAD, alias='mapType')

    @field_validator('center')
    @classmethod
    def validate_center(cls, v: tuple[float, float]) -> tuple[float, float]:
        lng, lat = v
        return _check_lng(lng), _check_lat(lat)

    @field_validator('map_type', mode='before')
    @classmethod
    def validate_map_type(cls, v: object) -> MapStyle:
        return resolve_map_style(v if isinstance(v, (str, MapStyle)) else None)
