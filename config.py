"""
Central configuration — reads from .env file.

Every module reads config.X at call time, so tests (and an operator poking
at a running process) can override a value by assigning the attribute.
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("true", "1", "yes")


# ── AI Vision providers ────────────────────────────────────────────────────────
# Add keys for whichever providers you have access to.
GOOGLE_API_KEY: str | None    = os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY")
OPENAI_API_KEY: str | None    = os.getenv("OPENAI_API_KEY")
ANTHROPIC_API_KEY: str | None = os.getenv("ANTHROPIC_API_KEY")

# auto      → first provider with a key, in order gemini → openai → anthropic
# gemini | openai | anthropic → force that provider
VISION_PROVIDER: str = os.getenv("VISION_PROVIDER", "auto")
# Blank → each provider's default model
VISION_MODEL: str | None = os.getenv("VISION_MODEL", "").strip() or None

# ── Product catalog ────────────────────────────────────────────────────────────
# shopify → Shopify catalog (default)
# amazon  → Amazon via RapidAPI "Real-Time Amazon Data"
# all     → both, limit split evenly between them
PRODUCT_SOURCE: str = os.getenv("PRODUCT_SOURCE", "shopify")

# Serve demo products instead of calling any catalog
CATALOG_USE_MOCK: bool = _flag("CATALOG_USE_MOCK")
# Serve demo products when the Shopify API call fails
CATALOG_FALLBACK_TO_MOCK: bool = _flag("CATALOG_FALLBACK_TO_MOCK")

SHOPIFY_CLIENT_ID: str | None     = os.getenv("SHOPIFY_CLIENT_ID")
SHOPIFY_CLIENT_SECRET: str | None = os.getenv("SHOPIFY_CLIENT_SECRET")
SHOPIFY_CATALOG_URL: str = os.getenv(
    "SHOPIFY_CATALOG_URL", "https://discover.shopifyapps.com/global/v2/search"
)
SHOPIFY_TOKEN_URL: str = os.getenv(
    "SHOPIFY_TOKEN_URL", "https://api.shopify.com/auth/access_token"
)

RAPIDAPI_KEY: str | None = os.getenv("RAPIDAPI_KEY")

# ── Analytics ─────────────────────────────────────────────────────────────────
# Leave blank to disable Amplitude forwarding (click/impression boosts still work)
AMPLITUDE_API_KEY: str | None = os.getenv("AMPLITUDE_API_KEY")
APP_ENV: str = os.getenv("APP_ENV", "development")

# ── Pipeline behaviour ────────────────────────────────────────────────────────
CACHE_MAX_AGE_HOURS: float  = float(os.getenv("CACHE_MAX_AGE_HOURS", "24"))
BOOST_LOOKBACK_DAYS: float  = float(os.getenv("BOOST_LOOKBACK_DAYS", "30"))
BOOST_MIN_IMPRESSIONS: int  = int(os.getenv("BOOST_MIN_IMPRESSIONS", "5"))
DEFAULT_RESULT_LIMIT: int   = int(os.getenv("DEFAULT_RESULT_LIMIT", "3"))
MAX_DETECTED_ITEMS: int     = max(1, min(8, int(os.getenv("MAX_DETECTED_ITEMS", "8"))))
VISION_TIMEOUT_SECS: float  = float(os.getenv("VISION_TIMEOUT_SECS", "30"))
SEARCH_TIMEOUT_SECS: float  = float(os.getenv("SEARCH_TIMEOUT_SECS", "15"))

# ── HTTP server ───────────────────────────────────────────────────────────────
SERVER_PORT: int      = int(os.getenv("PORT", os.getenv("SERVER_PORT", "3000")))
MAX_UPLOAD_BYTES: int = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
