"""Tests for style resolution and fixed constants."""

import pytest

from shared.constants import (
    MAX_EXPORT_TILES,
    MapStyle,
    azure_style_name,
    map_style_to_tileset_id,
    resolve_map_style,
)


@pytest.mark.parametrize(
    ('value', 'expected'),
    [
        ('satellite', MapStyle.SATELLITE),
        ('Satellite ', MapStyle.SATELLITE),
        ('road', MapStyle.ROAD),
        ('hybrid', MapStyle.ROAD),
        ('', MapStyle.ROAD),
        (None, MapStyle.ROAD),
        (MapStyle.SATELLITE, MapStyle.SATELLITE),
    ],
)
def test_resolve_map_style(value, expected):
    assert resolve_map_style(value) is expected


def test_tileset_ids():
    assert map_style_to_tileset_id('satellite') == 'microsoft.base.satellite_road_labels'
    assert map_style_to_tileset_id(MapStyle.ROAD) == 'microsoft.base.road'
    assert azure_style_name('anything') == 'road'


def test_tile_budget():
    assert MAX_EXPORT_TILES == 50
