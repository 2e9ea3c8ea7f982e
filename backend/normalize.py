"""Normalizer: turn loosely-typed backend records into Place models.

Every function here is total. Malformed input produces None or an empty
result, never an exception, so a single bad record cannot take down the map.
"""

import logging
import math
import re
from typing import Any, Iterable
from urllib.parse import urlparse

import config
from geo import haversine, resolve_coordinates, to_float
from models import Place, PriceProfile, PriceRange

logger = logging.getLogger(__name__)

RawRecord = dict[str, Any]

# Conversion factors to meters. Unknown units fall through as meters.
DISTANCE_UNITS: dict[str, float] = {
    "": 1.0,
    "m": 1.0,
    "meter": 1.0,
    "meters": 1.0,
    "metre": 1.0,
    "metres": 1.0,
    "km": 1000.0,
    "kilometer": 1000.0,
    "kilometers": 1000.0,
    "kilometre": 1000.0,
    "kilometres": 1000.0,
    "mi": 1609.34,
    "mile": 1609.34,
    "miles": 1609.34,
    "ft": 0.3048,
    "foot": 0.3048,
    "feet": 0.3048,
    "yd": 0.9144,
    "yard": 0.9144,
    "yards": 0.9144,
}

_DISTANCE_TEXT = re.compile(r"^([0-9]+(?:\.[0-9]+)?)\s*([a-zA-Z]+)")

IMAGE_FIELDS = ["imageUrl", "imageUrls", "images", "gallery", "photos", "image"]

THB_LABEL = "บาท"


def _first_present(entry: dict, *keys: str) -> Any:
    for key in keys:
        if entry.get(key) is not None:
            return entry[key]
    return None


def _clean_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    text = value.strip()
    return text or None


# ---------- Price ----------

def normalize_price_range(record: Any) -> PriceRange | None:
    price = record.get("price") if isinstance(record, dict) else None
    if not isinstance(price, dict):
        return None
    low = to_float(price.get("min"))
    high = to_float(price.get("max"))
    if low is None and high is None:
        return None
    currency = _clean_text(price.get("currency")) or config.DEFAULT_CURRENCY
    return PriceRange(min=low, max=high, currency=currency)


def build_price_profile(price_range: PriceRange | None) -> PriceProfile:
    """Low/high view of a range; dual means two distinct room prices."""
    if price_range is None:
        return PriceProfile()
    values = sorted(v for v in (price_range.min, price_range.max) if v is not None)
    if not values:
        return PriceProfile()
    if len(values) == 2 and values[0] != values[1]:
        return PriceProfile(kind="dual", low=values[0], high=values[1])
    return PriceProfile(kind="single", low=values[0], high=values[0])


def format_number(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.3f}".rstrip("0").rstrip(".")


def format_range_text(price_range: PriceRange | None, include_period: bool = True) -> str:
    """Human label for a price range, e.g. "3,000-5,000 บาท/เดือน"."""
    if price_range is None:
        return "N/A"
    currency = (price_range.currency or "").strip()
    is_thb = currency.upper() == "THB" or currency == "฿"
    display_currency = THB_LABEL if is_thb else currency
    suffix = ""
    if include_period:
        suffix = "/เดือน" if is_thb else "/month"
    unit_text = f" {display_currency}" if display_currency else ""

    low, high = price_range.min, price_range.max
    if low is not None and high is not None and low != high:
        return f"{format_number(low)}-{format_number(high)}{unit_text}{suffix}"
    single = low if low is not None else high
    if single is not None:
        return f"{format_number(single)}{unit_text}{suffix}"
    return "N/A"


def format_diff_text(value: float | None, currency: str) -> str | None:
    if value is None:
        return None
    prefix = "+" if value > 0 else "-" if value < 0 else ""
    return f"{prefix}{format_number(abs(value))} {currency}"


# ---------- Distance ----------

def to_meters(value: float, unit: str | None) -> float:
    key = unit.strip().lower() if isinstance(unit, str) else ""
    return value * DISTANCE_UNITS.get(key, 1.0)


def _value_and_unit(value: Any, unit_hint: Any) -> tuple[float, str | None] | None:
    hint = unit_hint.strip().lower() if isinstance(unit_hint, str) else None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return (float(value), hint) if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return None
        match = _DISTANCE_TEXT.match(text)
        if match:
            return float(match.group(1)), match.group(2).lower()
        number = to_float(text)
        if number is not None:
            return number, hint
    return None


def _distance_entry(entry: Any, default_unit: str | None = None) -> float | None:
    if entry is None:
        return None
    parsed = _value_and_unit(entry, default_unit)
    if parsed is not None:
        return to_meters(*parsed)
    if isinstance(entry, dict):
        fallback_unit = default_unit
        for key in ("unit", "units", "measure", "metric"):
            if isinstance(entry.get(key), str):
                fallback_unit = entry[key]
                break
        candidates = [
            (_first_present(entry, "meters", "m"), "m"),
            (_first_present(entry, "kilometers", "km"), "km"),
            (entry.get("value"), fallback_unit),
            (entry.get("distance"), fallback_unit),
            (entry.get("amount"), fallback_unit),
            (entry.get("length"), fallback_unit),
        ]
        for value, unit in candidates:
            if value is None:
                continue
            meters = _distance_entry(value, unit)
            if meters is not None:
                return meters
    return None


def _distance_sources(record: RawRecord) -> list[Any]:
    nested = record.get("distance")
    sources = []
    if isinstance(nested, dict):
        sources += [nested.get("toUniversity"), nested.get("university"), nested.get("campus")]
    sources += [
        nested,
        record.get("distanceToUniversity"),
        record.get("distance_to_university"),
        record.get("distanceMeters"),
        record.get("distance_meters"),
        record.get("distanceInMeters"),
    ]
    return sources


def normalize_distance(
    record: Any,
    reference_point: tuple[float, float] = (config.ANCHOR_LAT, config.ANCHOR_LNG),
) -> float | None:
    """Distance in meters from the record to reference_point (lat, lng).

    Stored metadata wins; coordinates are only used when no field parses.
    """
    if not isinstance(record, dict):
        return None
    for source in _distance_sources(record):
        meters = _distance_entry(source)
        if meters is not None and math.isfinite(meters):
            return meters
    lat_lng = resolve_coordinates(record)
    if lat_lng is None:
        return None
    meters = haversine(lat_lng[0], lat_lng[1], reference_point[0], reference_point[1])
    return meters if math.isfinite(meters) else None


# ---------- Images ----------

def normalize_image_url(url: Any) -> str | None:
    """Rewrite GitHub blob permalinks so they can be used as <img> sources."""
    text = _clean_text(url)
    if text is None:
        return None
    if "raw.githubusercontent.com" in text:
        return text
    if "github.com/" in text and "/blob/" in text:
        try:
            parts = [p for p in urlparse(text).path.split("/") if p]
        except ValueError:
            return text
        if "blob" in parts:
            blob_idx = parts.index("blob")
            if 1 < blob_idx < len(parts) - 1:
                owner, repo, branch = parts[0], parts[1], parts[blob_idx + 1]
                rest = "/".join(parts[blob_idx + 2:])
                return f"https://raw.githubusercontent.com/{owner}/{repo}/{branch}/{rest}"
        return text if "?raw=1" in text else f"{text}?raw=1"
    return text


def _walk_urls(value: Any) -> Iterable[str]:
    if isinstance(value, (list, tuple)):
        for item in value:
            yield from _walk_urls(item)
    elif isinstance(value, str):
        url = normalize_image_url(value)
        if url:
            yield url


def normalize_image_urls(record: Any) -> list[str]:
    if not isinstance(record, dict):
        return []
    seen: set[str] = set()
    urls: list[str] = []
    for field in IMAGE_FIELDS:
        for url in _walk_urls(record.get(field)):
            if url not in seen:
                seen.add(url)
                urls.append(url)
    return urls


# ---------- Amenities ----------

def normalize_token_list(values: Any) -> list[str]:
    if not isinstance(values, (list, tuple)):
        return []
    tokens: list[str] = []
    for item in values:
        if not isinstance(item, str):
            continue
        token = item.strip().lower()
        if token and token not in tokens:
            tokens.append(token)
    return tokens


def normalize_amenities(record: Any) -> list[str]:
    if not isinstance(record, dict):
        return []
    return normalize_token_list(record.get("amenities"))


# ---------- Records ----------

def _record_id(record: RawRecord) -> str | None:
    raw_id = _first_present(record, "_id", "id")
    if isinstance(raw_id, dict):
        raw_id = raw_id.get("$oid")
    if isinstance(raw_id, bool) or not isinstance(raw_id, (str, int)):
        return None
    text = str(raw_id).strip()
    return text or None


def normalize_place(
    record: Any,
    kind: str,
    reference_point: tuple[float, float] = (config.ANCHOR_LAT, config.ANCHOR_LNG),
) -> Place | None:
    """Strict Place from one raw record; None only when record is not a mapping."""
    if not isinstance(record, dict):
        return None
    if kind == "dorm":
        category = (_clean_text(record.get("type")) or config.DORM_CATEGORY).lower()
    else:
        category = (_clean_text(record.get("category")) or "").lower() or None
    return Place(
        id=_record_id(record),
        name=_clean_text(record.get("name")) or "",
        kind=kind,
        category=category,
        coordinates=_lng_lat(record),
        amenities=tuple(normalize_amenities(record)),
        price_range=normalize_price_range(record),
        distance_meters=normalize_distance(record, reference_point),
        images=tuple(normalize_image_urls(record)),
        description=_clean_text(record.get("description")),
        address=_clean_text(record.get("address")),
        tags=tuple(normalize_token_list(record.get("tags"))),
    )


def _lng_lat(record: RawRecord) -> tuple[float, float] | None:
    lat_lng = resolve_coordinates(record)
    if lat_lng is None:
        return None
    return lat_lng[1], lat_lng[0]


def normalize_places(records: Any, kind: str) -> list[Place]:
    if not isinstance(records, list):
        logger.warning("Expected a list of %s records, got %s", kind, type(records).__name__)
        return []
    places = []
    for record in records:
        place = normalize_place(record, kind)
        if place is not None:
            places.append(place)
    skipped = len(records) - len(places)
    if skipped:
        logger.warning("Skipped %d malformed %s records", skipped, kind)
    return places
