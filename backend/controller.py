"""MapController: the single owner of map page state.

UI events call the methods below; each one runs a pure transition from
filters/comparison/routing/search and then re-checks the cross-component
invariants (a dorm hidden by filters cannot stay selected, compared or
routed).

Two things suspend: the debounced place fetch and the route lookup. Both are
fenced by generation counters, so a slow response for superseded inputs is
dropped instead of overwriting newer state. Methods that trigger a fetch
must be called from a running event loop.
"""

import asyncio
import logging
import random

import httpx

import comparison
import config
import routing
import search
from datasource import PlaceSource
from filters import (
    filter_dorms,
    marker_set,
    parse_filter_inputs,
    selected_poi_categories,
    visibility,
    Visibility,
)
from models import ComparisonFlow, FilterSpec, MapView, Place, RouteState
from normalize import normalize_places
from routing import route_identifier

logger = logging.getLogger(__name__)


async def _no_records() -> list[dict]:
    return []


class MapController:
    def __init__(
        self,
        source: PlaceSource,
        route_client: routing.RouteClient,
        rng: random.Random | None = None,
        debounce_s: float = config.FETCH_DEBOUNCE_SECONDS,
    ):
        self.source = source
        self.route_client = route_client
        self.rng = rng or random.Random()
        self.debounce_s = debounce_s

        self.query = ""
        self.filters = FilterSpec()
        self.dorms: list[Place] = []
        self.pois: list[Place] = []
        self.selected_dorm: Place | None = None
        self.search_focused = False
        self.recommendations: list[Place] = []
        self.comparison = ComparisonFlow()
        self.route = RouteState()

        self.fetch_generation = 0
        self._pending: asyncio.Task | None = None

    # ---------- Derived state ----------

    @property
    def comparing(self) -> bool:
        return self.comparison.phase in ("selecting_base", "selecting_target")

    @property
    def filtered_dorms(self) -> list[Place]:
        return filter_dorms(self.dorms, self.filters)

    def visibility(self) -> Visibility:
        return visibility(self.filters, self.comparing)

    def _find_visible(self, dorm_id: str | None) -> Place | None:
        if not dorm_id:
            return None
        return next((d for d in self.filtered_dorms if route_identifier(d) == dorm_id), None)

    def _route_dorm(self) -> Place | None:
        if not self.route.active:
            return None
        subject_id = self.route.subject_id
        candidates = self.filtered_dorms + ([self.selected_dorm] if self.selected_dorm else []) + self.dorms
        return next((d for d in candidates if route_identifier(d) == subject_id), None)

    def suggestions(self) -> list[Place]:
        return search.suggest(self.filtered_dorms, self.query, self.search_focused, self.recommendations)

    def view(self) -> MapView:
        vis = self.visibility()
        dorm_markers, poi_markers = marker_set(
            self.filtered_dorms,
            self.pois,
            self.filters,
            self.route,
            route_dorm=self._route_dorm(),
            comparing=self.comparing,
        )
        return MapView(
            query=self.query,
            filters=self.filters,
            show_dorms=vis.show_dorms,
            show_pois=vis.show_pois,
            dorms=dorm_markers,
            pois=poi_markers,
            selected_dorm_id=route_identifier(self.selected_dorm),
            suggestions=self.suggestions(),
            comparison=self.comparison,
            compare_options=comparison.compare_options(self.comparison, self.filtered_dorms),
            route=self.route,
        )

    # ---------- Place fetch ----------

    def schedule_refresh(self) -> asyncio.Task:
        """Fetch after the debounce window; any newer change supersedes this one."""
        self.fetch_generation += 1
        self._pending = asyncio.create_task(self._debounced_fetch(self.fetch_generation))
        return self._pending

    async def _debounced_fetch(self, generation: int) -> bool:
        await asyncio.sleep(self.debounce_s)
        if generation != self.fetch_generation:
            return False
        return await self._fetch(generation)

    async def refresh(self) -> bool:
        """Fetch right away, superseding any pending debounced fetch."""
        self.fetch_generation += 1
        return await self._fetch(self.fetch_generation)

    async def _fetch(self, generation: int) -> bool:
        vis = self.visibility()
        params = {"q": self.query}
        poi_params = dict(params)
        categories = selected_poi_categories(self.filters)
        if self.filters.place_filters_active and vis.show_pois and categories:
            poi_params["category"] = ",".join(categories)

        try:
            dorm_records, poi_records = await asyncio.gather(
                self.source.list_dorms(params) if vis.show_dorms else _no_records(),
                self.source.list_points_of_interest(poi_params) if vis.show_pois else _no_records(),
            )
        except (httpx.HTTPError, ValueError) as exc:
            if generation == self.fetch_generation:
                logger.error("Place fetch #%d failed: %s", generation, exc)
            return False

        if generation != self.fetch_generation:
            logger.debug("Discarding stale place fetch #%d (current #%d)", generation, self.fetch_generation)
            return False

        self.dorms = normalize_places(dorm_records, "dorm")
        self.pois = normalize_places(poi_records, "poi")
        logger.info("Fetched %d dorms and %d POIs (q=%r)", len(self.dorms), len(self.pois), self.query)
        self._reconcile()
        return True

    # ---------- Query & filters ----------

    def set_query(self, q: str) -> None:
        self.query = q
        self._refresh_recommendations()
        self.schedule_refresh()

    def set_filters(self, spec: FilterSpec) -> None:
        self.filters = spec
        self._reconcile()
        self.schedule_refresh()

    def update_filters(self, **inputs) -> None:
        self.set_filters(parse_filter_inputs(**inputs))

    def toggle_category(self, key: str) -> None:
        categories = set(self.filters.categories)
        categories ^= {key}
        self.set_filters(self.filters.model_copy(update={"categories": frozenset(categories)}))

    def toggle_amenity(self, key: str) -> None:
        amenities = set(self.filters.amenities)
        amenities ^= {key}
        self.set_filters(self.filters.model_copy(update={"amenities": frozenset(amenities)}))

    def reset_filters(self) -> None:
        self.set_filters(FilterSpec())

    # ---------- Search ----------

    def focus_search(self, focused: bool) -> None:
        self.search_focused = focused
        self._refresh_recommendations()

    def _refresh_recommendations(self) -> None:
        if self.search_focused and not self.query.strip():
            self.recommendations = search.recommend(self.filtered_dorms, self.rng)
        else:
            self.recommendations = []

    def choose_suggestion(self, dorm: Place) -> None:
        if dorm.name:
            self.query = dorm.name
        self.select_dorm(route_identifier(dorm))
        self.search_focused = False
        self.recommendations = []

    def submit_search(self) -> Place | None:
        target = search.resolve_submit(self.filtered_dorms, self.query, self.suggestions())
        if target is not None:
            self.choose_suggestion(target)
        return target

    # ---------- Selection ----------

    def select_dorm(self, dorm_id: str | None) -> Place | None:
        """Open a dorm's details. Leaves any comparison."""
        dorm = self._find_visible(dorm_id)
        if dorm is None:
            return None
        self.comparison = comparison.IDLE
        self.selected_dorm = dorm
        self.route = routing.reset_for_selection(self.route, route_identifier(dorm))
        return dorm

    def clear_selection(self) -> None:
        self.selected_dorm = None
        self.comparison = comparison.IDLE
        self.route = routing.reset_for_selection(self.route, None)

    # ---------- Comparison ----------

    def begin_comparison(self) -> ComparisonFlow:
        self.comparison = comparison.begin_selection(self.comparison)
        return self.comparison

    def start_comparison(self, dorm_id: str | None) -> ComparisonFlow:
        base = self._find_visible(dorm_id)
        flow = comparison.start_comparison(self.comparison, base)
        if flow is not self.comparison:
            self.comparison = flow
            self.selected_dorm = base
            self.route = routing.reset_for_selection(self.route, route_identifier(base))
        return self.comparison

    def pick_compare_target(self, target_id: str | None) -> ComparisonFlow:
        self.comparison = comparison.pick_target(self.comparison, target_id, self.filtered_dorms)
        return self.comparison

    def confirm_compare_target(self, target_id: str | None = None) -> ComparisonFlow:
        flow = comparison.confirm_target(self.comparison, target_id, self.filtered_dorms)
        if flow is not self.comparison:
            self.comparison = flow
            self.selected_dorm = flow.base
        return self.comparison

    def cancel_comparison(self) -> ComparisonFlow:
        base = self.comparison.base
        self.comparison = comparison.cancel(self.comparison)
        if base is not None and self._find_visible(base.id) is not None:
            self.selected_dorm = base
        return self.comparison

    # ---------- Route ----------

    async def request_route(self, dorm_id: str | None = None) -> RouteState:
        """Show (or toggle off) the walking route for a dorm, selecting it first."""
        if dorm_id and dorm_id != route_identifier(self.selected_dorm):
            if self.select_dorm(dorm_id) is None:
                return self.route
        subject = self.selected_dorm
        self.route, ticket = routing.request_route(self.route, subject)
        if ticket is None:
            return self.route

        try:
            result = await self.route_client.lookup(ticket.start, ticket.destination)
        except Exception as exc:
            logger.warning("Route lookup #%d for %s failed: %s", ticket.generation, ticket.subject_id, exc)
            self.route = routing.apply_route_error(self.route, ticket, routing.error_message(exc))
        else:
            self.route = routing.apply_route_result(self.route, ticket, result)
        return self.route

    def clear_route(self) -> RouteState:
        self.route = routing.clear_route(self.route)
        return self.route

    # ---------- Invariants ----------

    def _reconcile(self) -> None:
        vis = self.visibility()
        visible = self.filtered_dorms
        if self.selected_dorm is not None:
            selected_id = route_identifier(self.selected_dorm)
            fresh = next((d for d in visible if route_identifier(d) == selected_id), None)
            self.selected_dorm = fresh if vis.show_dorms else None
        self.comparison = comparison.reconcile(self.comparison, visible)
        self.route = routing.reset_for_selection(self.route, route_identifier(self.selected_dorm))
        self._refresh_recommendations()
