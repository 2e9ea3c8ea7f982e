"""Tests for MapController: fencing of concurrent fetches and cross-component invariants."""

import asyncio
import sys
from pathlib import Path

import httpx

sys.path.insert(0, str(Path(__file__).parent.parent))

from controller import MapController
from datasource import DormApiClient, MockDataSource
from models import FilterSpec, RouteResult


class GatedRouteClient:
    """Route lookups that finish only when the test releases them."""

    def __init__(self):
        self.gates: dict[tuple[float, float], asyncio.Event] = {}
        self.calls = []

    def gate(self, start):
        return self.gates.setdefault(start, asyncio.Event())

    async def lookup(self, start, destination):
        self.calls.append(start)
        await self.gate(start).wait()
        lat, lng = start
        return RouteResult(geometry=[[lng, lat], [destination[1], destination[0]]], distance=300.0, duration=240.0)


class InstantRouteClient:
    async def lookup(self, start, destination):
        lat, lng = start
        return RouteResult(geometry=[[lng, lat], [destination[1], destination[0]]], distance=300.0, duration=240.0)


class FailingRouteClient:
    async def lookup(self, start, destination):
        raise httpx.ConnectError("All connection attempts failed")


class SlowSource(MockDataSource):
    """Mock source whose dorm listing waits on a per-query event."""

    def __init__(self):
        super().__init__()
        self.gates: dict[str, asyncio.Event] = {}

    async def list_dorms(self, params):
        await self.gates.setdefault(params.get("q", ""), asyncio.Event()).wait()
        return await super().list_dorms(params)


def make_controller(route_client=None, source=None):
    return MapController(source or MockDataSource(), route_client or InstantRouteClient(), debounce_s=0)


def test_refresh_loads_normalized_places():
    async def scenario():
        ctl = make_controller()
        assert await ctl.refresh()
        view = ctl.view()
        assert len(view.dorms) == 6
        assert len(view.pois) == 11
        assert view.show_dorms and view.show_pois
    asyncio.run(scenario())


def test_route_fencing_latest_request_wins_either_order():
    for release_first_request_first in (True, False):
        async def scenario():
            client = GatedRouteClient()
            ctl = make_controller(client)
            await ctl.refresh()
            a = ctl.filtered_dorms[0]
            b = ctl.filtered_dorms[1]

            task_a = asyncio.create_task(ctl.request_route(a.id))
            await asyncio.sleep(0)
            task_b = asyncio.create_task(ctl.request_route(b.id))
            await asyncio.sleep(0)
            assert ctl.route.subject_id == b.id and ctl.route.loading

            order = [a, b] if release_first_request_first else [b, a]
            for dorm in order:
                client.gate(dorm.lat_lng).set()
                await asyncio.sleep(0)
            await asyncio.gather(task_a, task_b)

            assert ctl.route.subject_id == b.id
            assert ctl.route.status == "ready"
            assert ctl.route.points[0] == b.lat_lng
            assert ctl.selected_dorm.id == b.id
        asyncio.run(scenario())


def test_route_toggles_off_for_same_dorm():
    async def scenario():
        ctl = make_controller()
        await ctl.refresh()
        dorm_id = ctl.filtered_dorms[0].id
        route = await ctl.request_route(dorm_id)
        assert route.status == "ready"
        assert ctl.view().dorms == [ctl.selected_dorm]
        assert ctl.view().pois == []
        route = await ctl.request_route(dorm_id)
        assert route.status == "idle"
    asyncio.run(scenario())


def test_route_failure_shows_inline_message():
    async def scenario():
        ctl = make_controller(FailingRouteClient())
        await ctl.refresh()
        route = await ctl.request_route(ctl.filtered_dorms[0].id)
        assert route.status == "errored"
        assert route.error == "ไม่สามารถคำนวณเส้นทางได้ในขณะนี้"
    asyncio.run(scenario())


def test_stale_fetch_does_not_overwrite_newer_results():
    async def scenario():
        source = SlowSource()
        ctl = make_controller(source=source)

        ctl.query = "ace"
        old = asyncio.create_task(ctl.refresh())
        await asyncio.sleep(0)
        ctl.query = "kasem"
        new = asyncio.create_task(ctl.refresh())
        await asyncio.sleep(0)

        source.gates.setdefault("kasem", asyncio.Event()).set()
        assert await new
        source.gates.setdefault("ace", asyncio.Event()).set()
        assert not await old

        assert [d.name for d in ctl.dorms] == ["Kasem Condo"]
    asyncio.run(scenario())


def test_debounced_fetch_is_superseded_by_newer_change():
    async def scenario():
        ctl = MapController(MockDataSource(), InstantRouteClient(), debounce_s=0.01)
        ctl.set_query("ace")
        first = ctl._pending
        ctl.set_query("kasem")
        second = ctl._pending
        assert not await first
        assert await second
        assert [d.name for d in ctl.dorms] == ["Kasem Condo"]
    asyncio.run(scenario())


def test_filtering_out_selection_clears_route_and_comparison():
    async def scenario():
        ctl = make_controller()
        await ctl.refresh()
        ace = next(d for d in ctl.dorms if d.name == "Ace Dorm")
        other = next(d for d in ctl.dorms if d.name == "Baan Suan Mansion")

        await ctl.request_route(ace.id)
        ctl.start_comparison(ace.id)
        ctl.confirm_compare_target(other.id)
        assert ctl.comparison.phase == "resolved"

        # Ace Dorm costs 2,000; a 10,000 floor leaves it behind.
        ctl.filters = FilterSpec(price_min=10000)
        ctl._reconcile()
        assert ctl.selected_dorm is None
        assert ctl.route.status == "idle"
        assert ctl.comparison.phase == "idle"
    asyncio.run(scenario())


def test_comparison_through_controller():
    async def scenario():
        ctl = make_controller()
        await ctl.refresh()
        by_name = {d.name: d for d in ctl.dorms}
        base = by_name["Baan Suan Mansion"]
        target = by_name["Campus View Residence"]

        ctl.start_comparison(base.id)
        assert ctl.comparing
        assert not ctl.view().show_pois
        assert base.id not in [d.id for d in ctl.view().compare_options]

        ctl.pick_compare_target(target.id)
        flow = ctl.confirm_compare_target()
        assert flow.result.diff_mode == "dual"
        assert (flow.result.diff_low, flow.result.diff_high) == (500, 200)
        assert ctl.selected_dorm.id == base.id
    asyncio.run(scenario())


def test_selecting_another_dorm_leaves_comparison():
    async def scenario():
        ctl = make_controller()
        await ctl.refresh()
        first, second = ctl.filtered_dorms[:2]
        ctl.start_comparison(first.id)
        ctl.select_dorm(second.id)
        assert ctl.comparison.phase == "idle"
        assert ctl.selected_dorm.id == second.id
        assert ctl.select_dorm("missing") is None
    asyncio.run(scenario())


def test_submit_search_selects_match():
    async def scenario():
        ctl = make_controller()
        await ctl.refresh()
        ctl.query = "kas"
        picked = ctl.submit_search()
        assert picked.name == "Kasem Condo"
        assert ctl.query == "Kasem Condo"
        assert ctl.selected_dorm.id == picked.id
    asyncio.run(scenario())


def test_focus_with_empty_query_shows_recommendations():
    async def scenario():
        ctl = make_controller()
        await ctl.refresh()
        ctl.focus_search(True)
        suggestions = ctl.view().suggestions
        assert len(suggestions) == 4
        ctl.focus_search(False)
        assert ctl.view().suggestions == []
    asyncio.run(scenario())


def test_begin_comparison_hides_pois_until_cancelled():
    async def scenario():
        ctl = make_controller()
        await ctl.refresh()
        assert ctl.begin_comparison().phase == "selecting_base"
        assert not ctl.view().show_pois
        ctl.cancel_comparison()
        assert ctl.view().show_pois
    asyncio.run(scenario())


def test_hiding_compared_base_resets_comparison():
    async def scenario():
        ctl = make_controller()
        await ctl.refresh()
        by_name = {d.name: d for d in ctl.dorms}
        ctl.start_comparison(by_name["Ace Dorm"].id)
        ctl.confirm_compare_target(by_name["Baan Suan Mansion"].id)
        assert ctl.comparison.phase == "resolved"

        # Baan Suan (3,000-5,000) stays visible, Ace Dorm (2,000) does not.
        ctl.filters = FilterSpec(price_min=4000)
        ctl._reconcile()
        assert ctl.selected_dorm is None
        assert ctl.comparison.phase == "idle"
        assert ctl.comparison.result is None
    asyncio.run(scenario())


def test_clear_selection_ends_resolved_comparison():
    async def scenario():
        ctl = make_controller()
        await ctl.refresh()
        first, second = ctl.filtered_dorms[:2]
        ctl.start_comparison(first.id)
        ctl.confirm_compare_target(second.id)
        assert ctl.comparison.phase == "resolved"

        ctl.clear_selection()
        assert ctl.selected_dorm is None
        assert ctl.comparison.phase == "idle"
    asyncio.run(scenario())


def test_non_json_response_keeps_previous_places():
    healthy = {"value": True}

    def handler(request: httpx.Request) -> httpx.Response:
        if healthy["value"]:
            return httpx.Response(200, json=[{"_id": "1", "name": "Ace Dorm", "location": {"coordinates": [100.5, 13.82]}}])
        return httpx.Response(200, text="<html>maintenance</html>")

    async def scenario():
        source = DormApiClient(base_url="http://api.test", transport=httpx.MockTransport(handler))
        ctl = make_controller(source=source)
        assert await ctl.refresh()
        assert [d.name for d in ctl.dorms] == ["Ace Dorm"]

        healthy["value"] = False
        assert not await ctl.refresh()
        assert [d.name for d in ctl.dorms] == ["Ace Dorm"]
    asyncio.run(scenario())
