"""Pydantic models for places, filter/comparison/route state and API payloads."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

import config


class PriceRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: float | None = None
    max: float | None = None
    currency: str = config.DEFAULT_CURRENCY

    @property
    def average(self) -> float | None:
        if self.min is not None and self.max is not None:
            return (self.min + self.max) / 2
        return self.min if self.min is not None else self.max


class Place(BaseModel):
    """A dorm or point of interest after normalization.

    coordinates are (longitude, latitude); use lat_lng for map display.
    """

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    name: str = ""
    kind: Literal["dorm", "poi"]
    category: str | None = None
    coordinates: tuple[float, float] | None = None
    amenities: tuple[str, ...] = ()
    price_range: PriceRange | None = None
    distance_meters: float | None = None
    images: tuple[str, ...] = ()
    description: str | None = None
    address: str | None = None
    tags: tuple[str, ...] = ()

    @property
    def lat_lng(self) -> tuple[float, float] | None:
        if self.coordinates is None:
            return None
        lng, lat = self.coordinates
        return lat, lng


class FilterSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    price_min: float | None = None
    price_max: float | None = None
    distance_max_meters: float | None = None
    amenities: frozenset[str] = frozenset()
    categories: frozenset[str] = frozenset()

    @property
    def price_active(self) -> bool:
        return self.price_min is not None or self.price_max is not None

    @property
    def distance_active(self) -> bool:
        return self.distance_max_meters is not None

    @property
    def amenities_active(self) -> bool:
        return len(self.amenities) > 0

    @property
    def dorm_filters_active(self) -> bool:
        return self.price_active or self.distance_active or self.amenities_active

    @property
    def place_filters_active(self) -> bool:
        return len(self.categories) > 0


class PriceProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["none", "single", "dual"] = "none"
    low: float | None = None
    high: float | None = None


class ComparisonState(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_id: str
    target_id: str
    base_range: PriceRange | None = None
    target_range: PriceRange | None = None
    base_profile: PriceProfile = PriceProfile()
    target_profile: PriceProfile = PriceProfile()
    same_currency: bool = False
    incomplete: bool = False
    diff_mode: Literal["single", "dual"] | None = None
    diff_low: float | None = None
    diff_high: float | None = None


ComparisonPhase = Literal["idle", "selecting_base", "selecting_target", "resolved"]


class ComparisonFlow(BaseModel):
    model_config = ConfigDict(frozen=True)

    phase: ComparisonPhase = "idle"
    base: Place | None = None
    pending_target_id: str | None = None
    result: ComparisonState | None = None


class RouteState(BaseModel):
    model_config = ConfigDict(frozen=True)

    active: bool = False
    subject_id: str | None = None
    points: tuple[tuple[float, float], ...] = ()  # (lat, lng)
    distance_meters: float | None = None
    duration_seconds: float | None = None
    loading: bool = False
    error: str | None = None
    generation: int = 0

    @property
    def status(self) -> Literal["idle", "loading", "ready", "errored"]:
        if not self.active:
            return "idle"
        if self.loading:
            return "loading"
        if self.error is not None:
            return "errored"
        return "ready"


class RouteTicket(BaseModel):
    """The lookup to issue for one route request; generation fences its response."""

    model_config = ConfigDict(frozen=True)

    generation: int
    subject_id: str
    start: tuple[float, float]        # (lat, lng)
    destination: tuple[float, float]  # (lat, lng)


class RouteResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    geometry: list[Any] | None = None  # (lng, lat) pairs as returned upstream
    distance: float | None = None
    duration: float | None = None


# ---------- API payloads ----------

class FilterInputs(BaseModel):
    """Raw sidebar values; blanks and junk mean "inactive"."""

    price_min: float | str | None = None
    price_max: float | str | None = None
    distance: float | str | None = None
    amenities: list[str] = []
    categories: list[str] = []


class QueryBody(BaseModel):
    q: str = ""


class FocusBody(BaseModel):
    focused: bool


class DormRef(BaseModel):
    dorm_id: str


class MapView(BaseModel):
    query: str
    filters: FilterSpec
    show_dorms: bool
    show_pois: bool
    dorms: list[Place]
    pois: list[Place]
    selected_dorm_id: str | None
    suggestions: list[Place]
    comparison: ComparisonFlow
    compare_options: list[Place]
    route: RouteState
