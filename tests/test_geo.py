import pytest

from photo_route.geo import haversine_m, path_length_km
from photo_route.types import Coordinate


def c(lat, lon):
    return Coordinate(latitude=lat, longitude=lon)


def test_same_point_is_zero():
    assert haversine_m(c(37.5, 127.0), c(37.5, 127.0)) == 0.0


def test_one_degree_of_latitude():
    assert haversine_m(c(0.0, 0.0), c(1.0, 0.0)) == pytest.approx(111195, rel=1e-3)


def test_path_length_needs_two_points():
    assert path_length_km([]) == 0.0
    assert path_length_km([c(37.5, 127.0)]) == 0.0


def test_path_length_sums_segments():
    a, b, d = c(37.0, 127.0), c(37.1, 127.0), c(37.2, 127.0)
    assert path_length_km([a, b, d]) == pytest.approx(
        (haversine_m(a, b) + haversine_m(b, d)) / 1000.0
    )
