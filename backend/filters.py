"""Filter engine: compound dorm filters, category browsing and marker visibility.

Dorm-attribute filtering (price, distance, amenities) and place-category
browsing are exclusive modes. While any dorm filter is active the POI layer
is hidden and category toggles are ignored.
"""

from dataclasses import dataclass
from typing import Any, Iterable

import config
from geo import to_float
from models import FilterSpec, Place, RouteState


@dataclass
class Visibility:
    show_dorms: bool
    show_pois: bool


def parse_filter_inputs(
    price_min: Any = None,
    price_max: Any = None,
    distance: Any = None,
    amenities: Iterable[str] = (),
    categories: Iterable[str] = (),
) -> FilterSpec:
    """Build a FilterSpec from raw sidebar values.

    Blank, negative or non-numeric entries leave that filter inactive. The
    distance slider is clamped to MAX_DISTANCE_FILTER_M.
    """

    def non_negative(value: Any) -> float | None:
        number = to_float(value)
        return number if number is not None and number >= 0 else None

    distance_m = non_negative(distance)
    if distance_m is not None:
        distance_m = min(distance_m, float(config.MAX_DISTANCE_FILTER_M))

    return FilterSpec(
        price_min=non_negative(price_min),
        price_max=non_negative(price_max),
        distance_max_meters=distance_m,
        amenities=frozenset(_keys(amenities)),
        categories=frozenset(_keys(categories)),
    )


def _keys(values: Iterable[str]) -> list[str]:
    return [v.strip().lower() for v in values if isinstance(v, str) and v.strip()]


def price_bounds(spec: FilterSpec) -> tuple[float | None, float | None]:
    """Query bounds widened by PRICE_TOLERANCE; the lower bound never drops below zero."""
    low = max(0.0, spec.price_min - config.PRICE_TOLERANCE) if spec.price_min is not None else None
    high = spec.price_max + config.PRICE_TOLERANCE if spec.price_max is not None else None
    return low, high


def passes_price(place: Place, spec: FilterSpec) -> bool:
    if not spec.price_active:
        return True
    price_range = place.price_range
    if price_range is None:
        return False
    # A single bound stands in for both ends.
    effective_min = price_range.min if price_range.min is not None else price_range.max
    effective_max = price_range.max if price_range.max is not None else price_range.min
    low, high = price_bounds(spec)
    if low is not None and (effective_max is None or effective_max < low):
        return False
    if high is not None and (effective_min is None or effective_min > high):
        return False
    return True


def passes_distance(place: Place, spec: FilterSpec) -> bool:
    # The slider value is a desired distance, not a ceiling.
    if not spec.distance_active:
        return True
    if place.distance_meters is None:
        return False
    return abs(place.distance_meters - spec.distance_max_meters) < config.DISTANCE_TOLERANCE_M


def passes_amenities(place: Place, spec: FilterSpec) -> bool:
    if not spec.amenities_active:
        return True
    tokens = place.amenities
    if not tokens:
        return False
    return all(any(key in token for token in tokens) for key in spec.amenities)


def passes_category(place: Place, spec: FilterSpec) -> bool:
    if place.kind == "dorm":
        return config.DORM_CATEGORY in spec.categories
    return place.category in spec.categories


def passes_dorm_filters(dorm: Place, spec: FilterSpec) -> bool:
    return passes_price(dorm, spec) and passes_distance(dorm, spec) and passes_amenities(dorm, spec)


def filter_dorms(dorms: list[Place], spec: FilterSpec) -> list[Place]:
    """Dorms matching every active dorm filter, in input order."""
    return [d for d in dorms if passes_dorm_filters(d, spec)]


def visibility(spec: FilterSpec, comparing: bool = False) -> Visibility:
    if comparing:
        return Visibility(show_dorms=True, show_pois=False)
    if spec.dorm_filters_active:
        return Visibility(show_dorms=True, show_pois=False)
    if not spec.place_filters_active:
        return Visibility(show_dorms=True, show_pois=True)
    poi_keys = [k for k in spec.categories if k != config.DORM_CATEGORY]
    return Visibility(
        show_dorms=config.DORM_CATEGORY in spec.categories,
        show_pois=len(poi_keys) > 0,
    )


def selected_poi_categories(spec: FilterSpec) -> list[str]:
    return [k for k in config.POI_CATEGORIES if k in spec.categories]


def filter_pois(pois: list[Place], spec: FilterSpec, comparing: bool = False) -> list[Place]:
    if not visibility(spec, comparing).show_pois:
        return []
    if not spec.place_filters_active:
        return list(pois)
    return [p for p in pois if passes_category(p, spec)]


def apply(places: list[Place], spec: FilterSpec) -> list[Place]:
    """Visible subset of a mixed dorm/POI list, preserving input order."""
    vis = visibility(spec)
    visible = []
    for place in places:
        if place.kind == "dorm":
            keep = vis.show_dorms and passes_dorm_filters(place, spec)
        else:
            keep = vis.show_pois and (not spec.place_filters_active or passes_category(place, spec))
        if keep:
            visible.append(place)
    return visible


def marker_set(
    filtered_dorms: list[Place],
    pois: list[Place],
    spec: FilterSpec,
    route: RouteState,
    route_dorm: Place | None = None,
    comparing: bool = False,
) -> tuple[list[Place], list[Place]]:
    """Dorm and POI markers to draw.

    An active route narrows the dorm layer to the routed dorm and hides POIs.
    """
    vis = visibility(spec, comparing)
    if not vis.show_dorms:
        dorm_markers: list[Place] = []
    elif route.active:
        dorm_markers = [route_dorm] if route_dorm is not None else []
    else:
        dorm_markers = list(filtered_dorms)
    poi_markers = [] if route.active else filter_pois(pois, spec, comparing)
    return dorm_markers, poi_markers
