import os
from dotenv import load_dotenv

load_dotenv()

# --- Turso Database ---
TURSO_DATABASE_URL = os.getenv("TURSO_DATABASE_URL", "")
TURSO_AUTH_TOKEN = os.getenv("TURSO_AUTH_TOKEN", "")
DB_PATH = os.getenv("DB_PATH", "map.db")

# --- HTTP ---
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:8080,http://localhost:5173").split(",")
HTTP_TIMEOUT_S = float(os.getenv("HTTP_TIMEOUT_S", "15"))

# --- Cache refresh (remote auth + rebuild RPC; empty = presence check + local rebuild) ---
AUTH_USER_URL = os.getenv("AUTH_USER_URL", "")
REFRESH_RPC_URL = os.getenv("REFRESH_RPC_URL", "")
SERVICE_API_KEY = os.getenv("SERVICE_API_KEY", "")

# --- Site ---
SITE_ORIGIN = os.getenv("SITE_ORIGIN", "https://humpahadihaii.in").rstrip("/")
SITE_NAME = os.getenv("SITE_NAME", "Hum Pahadi Haii")
TWITTER_SITE = os.getenv("TWITTER_SITE", "@humpahadihaii")
LOCALE = os.getenv("LOCALE", "en_IN")

# Literal fallbacks when even the site-wide share row is missing
FALLBACK_DESCRIPTION = "Discover Uttarakhand's rich culture, traditions, and natural beauty."
FALLBACK_OG_TYPE = "website"
FALLBACK_TWITTER_CARD = "summary_large_image"

# Titles containing one of these are not suffixed with the site name
BRAND_KEYWORDS = ["Hum Pahadi", "Uttarakhand"]

TITLE_MAX_LEN = 70
DESCRIPTION_MAX_LEN = 160

# --- POI types ---
DEFAULT_POI_TYPES = ["village", "provider", "listing", "package", "place", "event"]
ENTITY_TYPES = DEFAULT_POI_TYPES + ["district"]

# --- Query limits ---
DEFAULT_LIMIT = 200
MAX_LIMIT = 500
SEARCH_DEFAULT_LIMIT = 10
SEARCH_MAX_LIMIT = 50
SEARCH_MIN_CHARS = 2

# --- Clustering ---
CLUSTER_MAX_ZOOM = 10      # clustering only below this zoom
CLUSTER_BASE_EXPONENT = 8  # grid size = 2 ** (8 - min(zoom, 8)) degrees
MAX_ZOOM = 20

# --- Cache-Control windows (seconds) ---
POI_CACHE_SECONDS = 300
HIGHLIGHTS_CACHE_SECONDS = 600
DISTRICTS_CACHE_SECONDS = 3600
META_CACHE_SECONDS = 300
META_STALE_SECONDS = 600

# --- Tables ---
POI_CACHE_TABLE = "map_poi_cache"
POI_FALLBACK_TABLE = "map_poi_snapshot"

# --- Crawlers (case-insensitive substring match on User-Agent) ---
SOCIAL_CRAWLERS = [
    "facebookexternalhit",
    "Facebot",
    "Twitterbot",
    "LinkedInBot",
    "WhatsApp",
    "TelegramBot",
    "Slackbot",
    "Discordbot",
    "Googlebot",
    "bingbot",
    "Pinterest",
    "vkShare",
    "Viber",
    "Line",
    "Snapchat",
]

# --- Share channels ---
SHARE_CHANNELS = ["whatsapp", "facebook", "twitter", "linkedin", "email"]
