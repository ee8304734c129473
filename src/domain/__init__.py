"""Domain models and errors."""
from domain.errors import (
    ConfigurationError,
    EmptyRegionError,
    ExportError,
    ExportInProgressError,
    NetworkError,
    NoShapeSelectedError,
    TileFetchError,
    TooManyTilesError,
)
from domain.models import (
    BoundingBox,
    GeoPoint,
    HiresExportRequest,
    StaticExportRequest,
)

__all__ = [
    'BoundingBox',
    'ConfigurationError',
    'EmptyRegionError',
    'ExportError',
    'ExportInProgressError',
    'GeoPoint',
    'HiresExportRequest',
    'NetworkError',
    'NoShapeSelectedError',
    'StaticExportRequest',
    'TileFetchError',
    'TooManyTilesError',
]
