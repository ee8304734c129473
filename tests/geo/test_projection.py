"""Tests for Web Mercator projection helpers."""

import math

import pytest

from geo.projection import (
    TileCoordinate,
    great_circle_distance_m,
    meters_per_pixel,
    pixel_to_point,
    point_to_pixel,
    point_to_tile,
)


class TestPointToTile:
    def test_origin_at_zoom_zero(self):
        assert point_to_tile(0.0, 0.0, 0) == TileCoordinate(0, 0, 0)

    def test_equator_greenwich_at_zoom_one(self):
        # Точка (0, 0) лежит на углу четырёх тайлов; floor даёт юго-восточный
        assert point_to_tile(0.0, 0.0, 1) == TileCoordinate(1, 1, 1)

    def test_north_west_quadrant(self):
        assert point_to_tile(45.0, -90.0, 1) == TileCoordinate(0, 0, 1)

    def test_longitude_180_clamped_to_last_column(self):
        tile = point_to_tile(0.0, 180.0, 3)
        assert tile.x == 7

    def test_beyond_mercator_limit_clamped(self):
        assert point_to_tile(89.0, 0.0, 4).y == 0
        assert point_to_tile(-89.0, 0.0, 4).y == 15

    @pytest.mark.parametrize('lat', [90.0, -90.0, 120.0])
    def test_pole_rejected(self, lat):
        with pytest.raises(ValueError):
            point_to_tile(lat, 0.0, 5)

    def test_indices_always_in_range(self):
        for zoom in (0, 5, 12, 20):
            n = 2**zoom
            for lat, lng in [(85.0, -180.0), (-85.0, 179.999), (13.0, 77.6)]:
                t = point_to_tile(lat, lng, zoom)
                assert 0 <= t.x < n
                assert 0 <= t.y < n


class TestPointToPixel:
    @pytest.mark.parametrize('tile_size', [256, 512])
    def test_pixel_consistent_with_tile(self, tile_size):
        for zoom in (3, 10, 16, 18):
            for lat, lng in [(13.005, 77.605), (-33.86, 151.2), (51.5, -0.12)]:
                px, py = point_to_pixel(lat, lng, zoom, tile_size)
                tile = point_to_tile(lat, lng, zoom)
                assert math.floor(px / tile_size) == tile.x
                assert math.floor(py / tile_size) == tile.y

    def test_world_center(self):
        px, py = point_to_pixel(0.0, 0.0, 2, 256)
        assert px == pytest.approx(512.0)
        assert py == pytest.approx(512.0)

    def test_round_trip(self):
        px, py = point_to_pixel(48.8566, 2.3522, 15, 512)
        lat, lng = pixel_to_point(px, py, 15, 512)
        assert lat == pytest.approx(48.8566, abs=1e-9)
        assert lng == pytest.approx(2.3522, abs=1e-9)


class TestResolution:
    def test_meters_per_pixel_equator(self):
        assert meters_per_pixel(0.0, 0) == pytest.approx(156543.03392)

    def test_meters_per_pixel_halves_per_zoom(self):
        assert meters_per_pixel(40.0, 11) == pytest.approx(meters_per_pixel(40.0, 10) / 2)

    def test_great_circle_one_degree_on_equator(self):
        dist = great_circle_distance_m(0.0, 0.0, 0.0, 1.0)
        assert dist == pytest.approx(111195.0, rel=1e-3)

    def test_great_circle_zero(self):
        assert great_circle_distance_m(10.0, 20.0, 10.0, 20.0) == pytest.approx(0.0, abs=1e-6)
