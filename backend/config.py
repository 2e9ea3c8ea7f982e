import os
from dotenv import load_dotenv

load_dotenv()

# --- Upstream services ---
DORM_API_URL = os.getenv("DORM_API_URL", "http://localhost:4000")
ROUTE_SERVICE_URL = os.getenv("ROUTE_SERVICE_URL", "https://router.project-osrm.org/route/v1/foot")
HTTP_TIMEOUT_S = float(os.getenv("HTTP_TIMEOUT_S", "15"))

# Serve the bundled demo records instead of calling DORM_API_URL
USE_MOCK_DATA = os.getenv("USE_MOCK_DATA", "").lower() in {"1", "true", "yes"}

CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:5174").split(",")

# --- Anchor points (KMUTNB campus) ---
# Origin for the distance fallback when a dorm carries no distance metadata.
ANCHOR_LAT = 13.819918
ANCHOR_LNG = 100.514497

# Walking routes end at the rear gate on the campus side.
ROUTE_DEST_LAT = 13.82185
ROUTE_DEST_LNG = 100.51433
ROUTE_SNAP_RADIUS_M = 120

# --- Filters ---
PRICE_TOLERANCE = 500           # currency units added on both sides of the price query
DISTANCE_TOLERANCE_M = 100      # |distance - slider| must stay strictly below this
MAX_DISTANCE_FILTER_M = 4000

# --- Search ---
RECOMMENDATION_CAP = 4
SUGGESTION_CAP = 8

# Debounce window for the data fetch triggered by query/filter changes
FETCH_DEBOUNCE_SECONDS = 0.25

DEFAULT_CURRENCY = "THB"

# --- Categories ---
DORM_CATEGORY = "dorm"
DORM_TYPES = ["dorm", "apartment", "condo"]

POI_CATEGORIES = [
    "seven",
    "pharmacy",
    "food",
    "laundry",
    "bar",
    "bike",
    "barber",
    "printer",
    "atm",
]

CATEGORY_LABELS: dict[str, str] = {
    "dorm": "หอพัก",
    "seven": "7-11",
    "pharmacy": "ร้านขายยา",
    "food": "ร้านอาหาร",
    "laundry": "ร้านซักผ้า",
    "bar": "ร้านเหล้า",
    "bike": "วินมอเตอร์ไซค์",
    "printer": "ร้านถ่ายเอกสาร",
    "atm": "ตู้ ATM",
    "barber": "ร้านตัดผม",
}

AMENITY_OPTIONS = ["wifi", "air", "laundry", "fitness", "parking"]

# --- Route messages (shown inline under the route panel) ---
ROUTE_MSG_UNAVAILABLE = "ไม่สามารถคำนวณเส้นทางได้ในขณะนี้"
ROUTE_MSG_HTTP_STATUS = "ไม่สามารถคำนวณเส้นทางได้ (รหัส {status})"
ROUTE_MSG_NO_PATH = "ไม่พบเส้นทางเดินที่เหมาะสม"

# Error strings that mean "the network call never completed"
GENERIC_NETWORK_ERRORS = [
    "Failed to fetch",
    "All connection attempts failed",
    "Connection refused",
    "Network is unreachable",
]
