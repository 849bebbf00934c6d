"""SmartSentry — Configuration & Constants"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env from project root (one level up from smartsentry/)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path)

# ── Client ──
API_BASE_URL = os.environ.get("SMARTSENTRY_API_BASE_URL", "http://localhost:5000/api")
DATA_DIR = Path(os.environ.get("SMARTSENTRY_DATA_DIR", Path.home() / ".smartsentry"))
CLIENT_STORE_PATH = DATA_DIR / "client_store.db"

# Per-attempt hard timeouts (seconds)
DEFAULT_TIMEOUT = 15.0
SOS_TIMEOUT = 5.0
CHAT_TIMEOUT = 10.0

# Retry policy for transport failures: 1s, 2s, 4s, ...
DEFAULT_MAX_ATTEMPTS = 2
BACKOFF_BASE_SECONDS = 1.0
BACKOFF_FACTOR = 2.0

# ── Local cache ──
CACHE_TTL_SECONDS = 86400          # 24 hours
HISTORY_CACHE_KEY = "cache:emergency_history"
HISTORY_CACHE_CAP = 100
HISTORY_PAGE_SIZE = 50

TOKEN_KEY = "token"

# ── Backend ──
JWT_SECRET = os.environ.get("JWT_SECRET", "smartsentry-development-secret-change-me")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_DAYS = int(os.environ.get("JWT_EXPIRE_DAYS", "7"))
DB_PATH = Path(os.environ.get("SMARTSENTRY_DB_PATH", DATA_DIR / "smartsentry.db"))
PORT = int(os.environ.get("PORT", "5000"))
GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")
GEMINI_MODEL = "gemini-2.0-flash"

# ── Offline maps ──
OFFLINE_TILE_KEY = "@smartsentry_offline_tiles"
SATELLITE_CACHE_KEY = "@smartsentry_satellite_cache"
TILE_CACHE_MAX_ENTRIES = 500

TILE_URLS = {
    "satellite": "https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}",
    "light": "https://cartodb-basemaps-b.global.ssl.fastly.net/light_all/{z}/{x}/{y}.png",
    "offline_gray": (
        "data:image/svg+xml;base64,PHN2ZyB3aWR0aD0iMjU2IiBoZWlnaHQ9IjI1NiIgeG1sbnM9Imh0dHA6Ly93d3cudzMub3JnLzIw"
        "MDAvc3ZnIj48cmVjdCB3aWR0aD0iMjU2IiBoZWlnaHQ9IjI1NiIgZmlsbD0iIzQwNDQzOCIvPjwvc3ZnPg=="
    ),
}

CITY_CENTERS = {
    "bengaluru": {"lat": 12.9716, "lng": 77.5946},
    "delhi": {"lat": 28.7041, "lng": 77.1025},
    "mumbai": {"lat": 19.0760, "lng": 72.8777},
    "hyderabad": {"lat": 17.3850, "lng": 78.4867},
}
DEFAULT_CITY = "bengaluru"

# ── Chat ──
# Order matters: the first matching category wins.
OFFLINE_REPLY_KEYWORDS = [
    ("help", ("help", "danger")),
    ("emergency", ("emergency",)),
    ("sos", ("sos",)),
    ("location", ("location", "gps")),
    ("contacts", ("contact", "family")),
]

OFFLINE_REPLIES = {
    "help": (
        "If you're in immediate danger, please use the SOS feature by long-pressing any emergency "
        "card on the home screen. Stay calm and find a safe location if possible."
    ),
    "emergency": (
        "For emergencies: 1) Stay calm 2) Find a safe spot 3) Use the SOS feature "
        "4) Your trusted contacts will be notified automatically."
    ),
    "sos": (
        "To send an SOS, long-press an emergency card on the home screen. Your location is shared "
        "with your trusted contacts and the alert is saved to your emergency history."
    ),
    "location": (
        "Your location is shared only during active SOS alerts. You can toggle location sharing "
        "in your Profile settings."
    ),
    "contacts": (
        "You can add trusted contacts from the Trusted Contacts section. They will be notified "
        "during emergencies."
    ),
    "default": (
        "I'm here to help with safety guidance. You can ask about emergency procedures, location "
        "sharing, or trusted contacts."
    ),
}
