"""Walking-route workflow: single-flight lookups fenced by a generation counter.

request_route() bumps RouteState.generation and hands back a RouteTicket
carrying that number. When the lookup finishes, apply_route_result() or
apply_route_error() only touch the state if the ticket is still the newest;
a slow answer for an earlier dorm is dropped. Nothing is ever aborted on the
wire, the stale response is simply ignored.
"""

import logging
import math
from typing import Any

import httpx

import config
from geo import to_float
from models import Place, RouteResult, RouteState, RouteTicket

logger = logging.getLogger(__name__)

ROUTE_DESTINATION = (config.ROUTE_DEST_LAT, config.ROUTE_DEST_LNG)


class RouteLookupError(Exception):
    """The route service answered, but not with a usable path."""


def route_identifier(place: Place | None) -> str | None:
    if place is None:
        return None
    if place.id:
        return place.id
    if place.coordinates is not None:
        lng, lat = place.coordinates
        return f"{lng},{lat}"
    return None


def clear_route(state: RouteState) -> RouteState:
    # Bumping the generation fences any lookup still in flight.
    return RouteState(generation=state.generation + 1)


def request_route(
    state: RouteState,
    subject: Place | None,
    destination: tuple[float, float] = ROUTE_DESTINATION,
) -> tuple[RouteState, RouteTicket | None]:
    """Start (or toggle off) the route for subject.

    Returns the next state and the ticket to look up, or None when there is
    nothing to fetch.
    """
    subject_id = route_identifier(subject)
    start = subject.lat_lng if subject is not None else None
    if subject_id is None or start is None:
        return state, None
    if state.active and state.subject_id == subject_id:
        return clear_route(state), None

    generation = state.generation + 1
    loading = RouteState(active=True, subject_id=subject_id, loading=True, generation=generation)
    ticket = RouteTicket(
        generation=generation,
        subject_id=subject_id,
        start=start,
        destination=destination,
    )
    return loading, ticket


def is_current(state: RouteState, ticket: RouteTicket) -> bool:
    return state.generation == ticket.generation and state.subject_id == ticket.subject_id


def _finite(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if math.isfinite(value) else None


def display_points(geometry: Any) -> list[tuple[float, float]]:
    """GeoJSON (lng, lat) pairs to (lat, lng); malformed pairs are skipped."""
    if not isinstance(geometry, list):
        return []
    points = []
    for pair in geometry:
        if not isinstance(pair, (list, tuple)) or len(pair) < 2:
            continue
        lng, lat = to_float(pair[0]), to_float(pair[1])
        if lng is None or lat is None:
            continue
        points.append((lat, lng))
    return points


def apply_route_result(state: RouteState, ticket: RouteTicket, result: RouteResult) -> RouteState:
    if not is_current(state, ticket):
        logger.debug("Dropping stale route response #%d for %s", ticket.generation, ticket.subject_id)
        return state
    points = display_points(result.geometry)
    if not points:
        return apply_route_error(state, ticket, config.ROUTE_MSG_NO_PATH)
    return RouteState(
        active=True,
        subject_id=ticket.subject_id,
        points=tuple(points),
        distance_meters=_finite(result.distance),
        duration_seconds=_finite(result.duration),
        generation=state.generation,
    )


def apply_route_error(state: RouteState, ticket: RouteTicket, message: str) -> RouteState:
    if not is_current(state, ticket):
        logger.debug("Dropping stale route failure #%d for %s", ticket.generation, ticket.subject_id)
        return state
    return RouteState(
        active=True,
        subject_id=ticket.subject_id,
        error=message,
        generation=state.generation,
    )


def reset_for_selection(state: RouteState, selected_subject_id: str | None) -> RouteState:
    """A route only lives as long as its dorm stays selected."""
    if not state.active:
        return state
    if selected_subject_id is None or state.subject_id != selected_subject_id:
        return clear_route(state)
    return state


def error_message(exc: Exception) -> str:
    """Inline text for a failed lookup."""
    if isinstance(exc, httpx.TransportError):
        return config.ROUTE_MSG_UNAVAILABLE
    text = str(exc).strip()
    if not text or any(marker in text for marker in config.GENERIC_NETWORK_ERRORS):
        return config.ROUTE_MSG_UNAVAILABLE
    return text


class RouteClient:
    """OSRM-style foot routing service."""

    def __init__(
        self,
        base_url: str = config.ROUTE_SERVICE_URL,
        snap_radius_m: float = config.ROUTE_SNAP_RADIUS_M,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.snap_radius_m = snap_radius_m
        self._transport = transport

    async def lookup(self, start: tuple[float, float], destination: tuple[float, float]) -> RouteResult:
        """Path from start to destination, both (lat, lng).

        Raises RouteLookupError on a non-200 answer and lets httpx transport
        errors propagate.
        """
        coords = f"{start[1]},{start[0]};{destination[1]},{destination[0]}"
        radius = f"{self.snap_radius_m};{self.snap_radius_m}"
        params = {"overview": "full", "geometries": "geojson", "steps": "false", "radiuses": radius}
        async with httpx.AsyncClient(transport=self._transport) as client:
            resp = await client.get(f"{self.base_url}/{coords}", params=params, timeout=config.HTTP_TIMEOUT_S)
        if resp.status_code != 200:
            logger.warning("Route service HTTP %d", resp.status_code)
            raise RouteLookupError(config.ROUTE_MSG_HTTP_STATUS.format(status=resp.status_code))
        try:
            data = resp.json()
        except ValueError as exc:
            raise RouteLookupError(config.ROUTE_MSG_UNAVAILABLE) from exc
        routes = data.get("routes") if isinstance(data, dict) else None
        route = routes[0] if isinstance(routes, list) and routes and isinstance(routes[0], dict) else {}
        geometry = route.get("geometry") if isinstance(route.get("geometry"), dict) else {}
        coordinates = geometry.get("coordinates")
        return RouteResult(
            geometry=coordinates if isinstance(coordinates, list) else None,
            distance=_finite(route.get("distance")),
            duration=_finite(route.get("duration")),
        )
