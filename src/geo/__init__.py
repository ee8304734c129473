from geo.polygon import (
    AreaReport,
    DistanceReport,
    bounding_box_of,
    path_length_m,
    planar_area,
)
from geo.projection import (
    TileCoordinate,
    great_circle_distance_m,
    meters_per_pixel,
    point_to_pixel,
    point_to_tile,
)

__all__ = [
    'AreaReport',
    'DistanceReport',
    'TileCoordinate',
    'bounding_box_of',
    'great_circle_distance_m',
    'meters_per_pixel',
    'path_length_m',
    'planar_area',
    'point_to_pixel',
    'point_to_tile',
]
