"""Geo math: great-circle distance and coordinate resolution."""

import math
from typing import Any

R = 6_371_000.0  # mean Earth radius in meters, as Leaflet distanceTo


def offset_point(lat: float, lon: float, dx: float, dy: float) -> tuple[float, float]:
    """Compute new lat/lon by shifting dx meters east and dy meters north."""
    new_lat = lat + (dy / R) * (180.0 / math.pi)
    new_lon = lon + (dx / (R * math.cos(math.radians(lat)))) * (180.0 / math.pi)
    return new_lat, new_lon


def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in meters between two lat/lon points (haversine formula)."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    return 2 * R * math.asin(math.sqrt(a))


def to_float(value: Any) -> float | None:
    """Coerce numbers and numeric strings; anything else (or NaN/inf) is None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def order_lng_lat(pair: Any) -> tuple[float, float] | None:
    """Return a plausible (lng, lat) from a pair given in nominal (lng, lat) order.

    Upstream data sometimes stores [lat, lng]; a second value with magnitude
    above 90 cannot be a latitude, so such pairs are swapped.
    """
    if not isinstance(pair, (list, tuple)) or len(pair) < 2:
        return None
    lng, lat = to_float(pair[0]), to_float(pair[1])
    if lng is None or lat is None:
        return None
    if abs(lat) > 90 and abs(lng) <= 90:
        lng, lat = lat, lng
    if abs(lat) > 90 or abs(lng) > 180:
        return None
    return lng, lat


def _raw_coordinate_pair(record: dict) -> Any:
    location = record.get("location")
    if isinstance(location, dict) and location.get("coordinates") is not None:
        return location["coordinates"]
    if isinstance(location, (list, tuple)):
        return location
    if record.get("coordinates") is not None:
        return record["coordinates"]
    lat = record.get("lat", record.get("latitude"))
    lng = record.get("lng", record.get("lon", record.get("longitude")))
    if lat is not None and lng is not None:
        return [lng, lat]
    return None


def resolve_coordinates(record: Any) -> tuple[float, float] | None:
    """(lat, lng) for display, or None when the record has no usable position."""
    if not isinstance(record, dict):
        return None
    ordered = order_lng_lat(_raw_coordinate_pair(record))
    if ordered is None:
        return None
    lng, lat = ordered
    return lat, lng
