"""Tests for geo math and coordinate resolution."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from geo import haversine, offset_point, order_lng_lat, resolve_coordinates, to_float


def test_offset_moves_east():
    lat, lon = 13.819918, 100.514497
    new_lat, new_lon = offset_point(lat, lon, 200, 0)
    assert abs(new_lat - lat) < 1e-6
    assert new_lon > lon


def test_haversine_zero_distance():
    assert haversine(13.82, 100.51, 13.82, 100.51) == 0.0


def test_haversine_known_distance():
    lat1, lon1 = 13.819918, 100.514497
    lat2, lon2 = offset_point(lat1, lon1, 0, 500)
    d = haversine(lat1, lon1, lat2, lon2)
    assert 495 < d < 505, f"Expected ~500m, got {d}"


def test_to_float_coerces_numeric_strings():
    assert to_float("2500") == 2500.0
    assert to_float(" 12.5 ") == 12.5
    assert to_float("abc") is None
    assert to_float("") is None
    assert to_float(float("nan")) is None
    assert to_float(True) is None


def test_lng_lat_kept_when_plausible():
    assert order_lng_lat([100.5, 13.82]) == (100.5, 13.82)


def test_swapped_pair_is_corrected():
    # [lat, lng] mistake: 100.5 cannot be a latitude
    assert order_lng_lat([13.82, 100.5]) == (100.5, 13.82)


def test_implausible_pair_rejected():
    assert order_lng_lat([200.0, 95.0]) is None
    assert order_lng_lat([1.0]) is None
    assert order_lng_lat("100.5,13.82") is None


def test_resolve_coordinates_returns_lat_lng():
    record = {"location": {"type": "Point", "coordinates": [100.5, 13.82]}}
    assert resolve_coordinates(record) == (13.82, 100.5)


def test_resolve_coordinates_recovers_swapped_input():
    record = {"location": {"coordinates": [13.82, 100.5]}}
    assert resolve_coordinates(record) == (13.82, 100.5)


def test_resolve_coordinates_accepts_string_numbers_and_flat_fields():
    assert resolve_coordinates({"location": {"coordinates": ["100.5", "13.82"]}}) == (13.82, 100.5)
    assert resolve_coordinates({"lat": 13.82, "lng": 100.5}) == (13.82, 100.5)


def test_resolve_coordinates_missing():
    assert resolve_coordinates({"name": "No location"}) is None
    assert resolve_coordinates({"location": {"coordinates": ["x", "y"]}}) is None
    assert resolve_coordinates(None) is None


def test_haversine_uses_mean_earth_radius():
    # One degree of latitude on a 6,371 km sphere.
    assert abs(haversine(0.0, 100.0, 1.0, 100.0) - 111194.93) < 0.01
