"""Search box helpers: random recommendations, prefix suggestions, submit-on-enter."""

import random

import config
from models import Place


def _named(places: list[Place]) -> list[Place]:
    return [p for p in places if p.name.strip()]


def recommend(
    places: list[Place],
    rng: random.Random | None = None,
    cap: int = config.RECOMMENDATION_CAP,
) -> list[Place]:
    """Up to cap named places, uniformly sampled by shuffle-and-slice."""
    pool = _named(places)
    if len(pool) <= cap:
        return pool
    rng = rng or random.Random()
    rng.shuffle(pool)
    return pool[:cap]


def prefix_matches(places: list[Place], query: str, cap: int = config.SUGGESTION_CAP) -> list[Place]:
    term = query.strip().lower()
    if not term:
        return []
    seen: set[str] = set()
    matches = []
    for place in places:
        name = place.name.strip()
        if not name:
            continue
        lower_name = name.lower()
        key = place.id or lower_name
        if key in seen:
            continue
        if lower_name.startswith(term):
            seen.add(key)
            matches.append(place)
    return matches[:cap]


def suggest(
    places: list[Place],
    query: str,
    focused: bool,
    recommendations: list[Place],
) -> list[Place]:
    """Dropdown entries under the search box.

    An empty query shows the current recommendations while the box is
    focused; otherwise names starting with the query, in filtered order.
    """
    if not places:
        return []
    if not query.strip():
        return recommendations[:config.RECOMMENDATION_CAP] if focused else []
    return prefix_matches(places, query)


def resolve_submit(places: list[Place], query: str, suggestions: list[Place]) -> Place | None:
    """Place picked when the user presses enter."""
    term = query.strip().lower()
    if not term or not places:
        return None
    if suggestions:
        return suggestions[0]
    for place in places:
        name = place.name.strip().lower()
        if name and name.startswith(term):
            return place
    for place in places:
        name = place.name.strip().lower()
        if name and term in name:
            return place
    return None
