"""Read-only access to the dorm backend.

DormApiClient talks to the REST API (GET /api/dorms, GET /api/pois).
MockDataSource serves bundled demo records with the same query semantics so
the map works offline.
"""

import logging
import re
from typing import Any, Iterable, Protocol

import httpx

import config
from geo import offset_point, resolve_coordinates

logger = logging.getLogger(__name__)

Params = dict[str, Any]

BOUND_KEYS = ("north", "south", "east", "west")


class PlaceSource(Protocol):
    async def list_dorms(self, params: Params) -> list[dict]: ...

    async def list_points_of_interest(self, params: Params) -> list[dict]: ...


def build_query_params(params: Params | None) -> list[tuple[str, str]]:
    """Flatten params for the query string.

    None and blank values are dropped; lists and sets become repeated keys.
    """
    pairs: list[tuple[str, str]] = []
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, (list, tuple, set, frozenset)):
            items = sorted(value) if isinstance(value, (set, frozenset)) else value
            for item in items:
                if isinstance(item, str):
                    item = item.strip()
                if item is None or item == "":
                    continue
                pairs.append((key, str(item)))
            continue
        if value == "":
            continue
        pairs.append((key, str(value)))
    return pairs


class DormApiClient:
    def __init__(
        self,
        base_url: str = config.DORM_API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    async def _get_list(self, path: str, params: Params) -> list[dict]:
        async with httpx.AsyncClient(base_url=self.base_url, transport=self._transport) as client:
            resp = await client.get(path, params=build_query_params(params), timeout=config.HTTP_TIMEOUT_S)
        if resp.status_code != 200:
            logger.error("GET %s -> HTTP %d", path, resp.status_code)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, list):
            logger.warning("GET %s returned %s, expected a list", path, type(data).__name__)
            return []
        return data

    async def list_dorms(self, params: Params) -> list[dict]:
        return await self._get_list("/api/dorms", params)

    async def list_points_of_interest(self, params: Params) -> list[dict]:
        return await self._get_list("/api/pois", params)


# --- Mock data ---

def _in_bounds(record: dict, params: Params) -> bool:
    bounds = [params.get(k) for k in BOUND_KEYS]
    if any(b is None for b in bounds):
        return True
    try:
        north, south, east, west = (float(b) for b in bounds)
    except (TypeError, ValueError):
        return True
    lat_lng = resolve_coordinates(record)
    if lat_lng is None:
        return False
    lat, lng = lat_lng
    return south <= lat <= north and west <= lng <= east


def _name_matches(record: dict, q: Any) -> bool:
    term = str(q).strip() if q is not None else ""
    if not term:
        return True
    name = record.get("name")
    return isinstance(name, str) and re.search(re.escape(term), name, re.IGNORECASE) is not None


def _categories(value: Any) -> list[str]:
    raw: Iterable[Any] = value if isinstance(value, (list, tuple, set)) else [value]
    tokens = []
    for item in raw:
        if item is None:
            continue
        for token in str(item).split(","):
            token = token.strip().lower()
            if token in config.POI_CATEGORIES and token not in tokens:
                tokens.append(token)
    return tokens


class MockDataSource:
    """In-memory stand-in for the REST backend (name search, category, bounds)."""

    def __init__(self, dorms: list[dict] | None = None, pois: list[dict] | None = None):
        if dorms is None and pois is None:
            dorms, pois = load_mock_records()
        self.dorms = list(dorms or [])
        self.pois = list(pois or [])

    async def list_dorms(self, params: Params) -> list[dict]:
        limit = params.get("limit")
        found = [d for d in self.dorms if _name_matches(d, params.get("q")) and _in_bounds(d, params)]
        return found[: min(int(limit), 1000)] if limit else found[:1000]

    async def list_points_of_interest(self, params: Params) -> list[dict]:
        wanted = _categories(params.get("category"))
        return [
            p for p in self.pois
            if _name_matches(p, params.get("q"))
            and _in_bounds(p, params)
            and (not wanted or str(p.get("category", "")).lower() in wanted)
        ]


def load_mock_records() -> tuple[list[dict], list[dict]]:
    """Demo dorms and POIs around the campus anchor, in backend record shape."""
    mock_dorms = [
        # name, dx, dy, price min, price max, amenities, distance metadata
        ("Ace Dorm", 150, 250, 2000, 2000, ["WiFi", "Air"], None),
        ("Baan Suan Mansion", -300, 120, 3000, 5000, ["wifi", "parking", "laundry"], None),
        ("Campus View Residence", 420, -80, 3500, 5200, ["Wi-Fi", "Fitness", "Air conditioning"], {"toUniversity": {"value": 0.5, "unit": "km"}}),
        ("Green Place Apartment", -120, -450, 4500, None, ["air", "parking"], None),
        ("Kasem Condo", 700, 600, None, 8000, ["wifi", "fitness", "parking"], "1.2 km"),
        ("Pracharat Dorm", 60, 900, "2800", "3200", [], None),
    ]
    mock_pois = [
        # category, name, dx, dy
        ("seven", "7-Eleven Pracharat 1", 80, 200),
        ("seven", "7-Eleven Back Gate", -40, 260),
        ("pharmacy", "Fascino Pharmacy", 210, 150),
        ("food", "Jay Fai Noodles", -180, 320),
        ("food", "Som Tam Corner", 300, 60),
        ("laundry", "Coin Laundry 24h", -260, 90),
        ("bar", "Beer Garden", 520, 410),
        ("bike", "Motorbike Taxi Stand", 20, 180),
        ("printer", "Copy Center", 140, 90),
        ("atm", "KBank ATM", 90, 220),
        ("barber", "Barber Bro", -90, 410),
    ]

    dorms = []
    for idx, (name, dx, dy, low, high, amenities, distance) in enumerate(mock_dorms, start=1):
        lat, lng = offset_point(config.ANCHOR_LAT, config.ANCHOR_LNG, dx, dy)
        record: dict[str, Any] = {
            "_id": f"mock_dorm_{idx}",
            "name": name,
            "type": "dorm",
            "location": {"type": "Point", "coordinates": [lng, lat]},
            "price": {"min": low, "max": high, "currency": "THB"},
            "amenities": amenities,
        }
        if distance is not None:
            record["distance"] = distance
        dorms.append(record)

    pois = []
    for category, name, dx, dy in mock_pois:
        lat, lng = offset_point(config.ANCHOR_LAT, config.ANCHOR_LNG, dx, dy)
        pois.append({
            "_id": f"mock_{name.lower().replace(' ', '_')}",
            "name": name,
            "category": category,
            "location": {"type": "Point", "coordinates": [lng, lat]},
        })

    logger.info("Loaded %d mock dorms and %d mock POIs", len(dorms), len(pois))
    return dorms, pois
