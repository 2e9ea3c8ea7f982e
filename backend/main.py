"""FastAPI application exposing the dorm finder map state."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

import config
from controller import MapController
from datasource import DormApiClient, MockDataSource
from models import DormRef, FilterInputs, FocusBody, MapView, QueryBody, RouteState
from normalize import format_diff_text, format_range_text
from routing import RouteClient

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


def build_controller() -> MapController:
    source = MockDataSource() if config.USE_MOCK_DATA else DormApiClient()
    return MapController(source, RouteClient())


@asynccontextmanager
async def lifespan(app: FastAPI):
    if getattr(app.state, "controller", None) is None:
        app.state.controller = build_controller()
    logger.info("Map controller ready (mock data: %s)", config.USE_MOCK_DATA)
    yield


app = FastAPI(title="Dorm Finder", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_controller(request: Request) -> MapController:
    return request.app.state.controller


# ---------- Health check ----------

@app.get("/health")
async def health():
    return {"status": "ok"}


# ---------- Config (read-only) ----------

@app.get("/config")
async def get_config():
    return {
        "anchor": {"lat": config.ANCHOR_LAT, "lng": config.ANCHOR_LNG},
        "route_destination": {"lat": config.ROUTE_DEST_LAT, "lng": config.ROUTE_DEST_LNG},
        "route_snap_radius_m": config.ROUTE_SNAP_RADIUS_M,
        "price_tolerance": config.PRICE_TOLERANCE,
        "distance_tolerance_m": config.DISTANCE_TOLERANCE_M,
        "max_distance_filter_m": config.MAX_DISTANCE_FILTER_M,
        "categories": config.CATEGORY_LABELS,
        "dorm_types": config.DORM_TYPES,
        "amenities": config.AMENITY_OPTIONS,
    }


# ---------- View ----------

@app.get("/view", response_model=MapView)
async def get_view(request: Request):
    return get_controller(request).view()


@app.post("/refresh", response_model=MapView)
async def refresh(request: Request):
    """Fetch places now instead of waiting for the debounce window."""
    controller = get_controller(request)
    await controller.refresh()
    return controller.view()


# ---------- Query & filters ----------

@app.put("/query", response_model=MapView)
async def set_query(body: QueryBody, request: Request):
    controller = get_controller(request)
    controller.set_query(body.q)
    return controller.view()


@app.put("/filters", response_model=MapView)
async def set_filters(body: FilterInputs, request: Request):
    controller = get_controller(request)
    controller.update_filters(**body.model_dump())
    return controller.view()


@app.post("/filters/reset", response_model=MapView)
async def reset_filters(request: Request):
    controller = get_controller(request)
    controller.reset_filters()
    return controller.view()


@app.post("/filters/categories/{key}", response_model=MapView)
async def toggle_category(key: str, request: Request):
    if key not in config.CATEGORY_LABELS:
        raise HTTPException(400, f"Unknown category {key!r}")
    controller = get_controller(request)
    controller.toggle_category(key)
    return controller.view()


@app.post("/filters/amenities/{key}", response_model=MapView)
async def toggle_amenity(key: str, request: Request):
    controller = get_controller(request)
    controller.toggle_amenity(key.strip().lower())
    return controller.view()


# ---------- Search ----------

@app.post("/search/focus", response_model=MapView)
async def focus_search(body: FocusBody, request: Request):
    controller = get_controller(request)
    controller.focus_search(body.focused)
    return controller.view()


@app.post("/search/submit", response_model=MapView)
async def submit_search(request: Request):
    controller = get_controller(request)
    controller.submit_search()
    return controller.view()


# ---------- Selection ----------

@app.post("/dorms/{dorm_id}/select")
async def select_dorm(dorm_id: str, request: Request):
    controller = get_controller(request)
    dorm = controller.select_dorm(dorm_id)
    if dorm is None:
        raise HTTPException(404, f"Dorm {dorm_id} is not among the visible dorms")
    return {
        "dorm": dorm,
        "price_text": format_range_text(dorm.price_range),
    }


@app.delete("/selection", response_model=MapView)
async def clear_selection(request: Request):
    controller = get_controller(request)
    controller.clear_selection()
    return controller.view()


# ---------- Comparison ----------

@app.post("/compare/begin", response_model=MapView)
async def begin_comparison(request: Request):
    """Enter compare mode before a base dorm is picked."""
    controller = get_controller(request)
    controller.begin_comparison()
    return controller.view()


@app.post("/compare/start", response_model=MapView)
async def start_comparison(body: DormRef, request: Request):
    controller = get_controller(request)
    controller.start_comparison(body.dorm_id)
    return controller.view()


@app.post("/compare/pick", response_model=MapView)
async def pick_compare_target(body: DormRef, request: Request):
    controller = get_controller(request)
    controller.pick_compare_target(body.dorm_id)
    return controller.view()


@app.post("/compare/confirm")
async def confirm_compare_target(request: Request, body: DormRef | None = None):
    controller = get_controller(request)
    flow = controller.confirm_compare_target(body.dorm_id if body else None)
    result = flow.result
    summary = None
    if result is not None:
        currency = result.base_range.currency if result.base_range else config.DEFAULT_CURRENCY
        summary = {
            "base_text": format_range_text(result.base_range),
            "target_text": format_range_text(result.target_range),
            "diff_low_text": format_diff_text(result.diff_low, currency),
            "diff_high_text": format_diff_text(result.diff_high, currency),
        }
    return {"comparison": flow, "summary": summary}


@app.post("/compare/cancel", response_model=MapView)
async def cancel_comparison(request: Request):
    controller = get_controller(request)
    controller.cancel_comparison()
    return controller.view()


# ---------- Route ----------

@app.post("/route", response_model=RouteState)
async def request_route(body: DormRef, request: Request):
    return await get_controller(request).request_route(body.dorm_id)


@app.delete("/route", response_model=RouteState)
async def clear_route(request: Request):
    return get_controller(request).clear_route()
