"""
Central configuration — reads from .env file.

Every value is read once at import time from the environment (after
load_dotenv), so tests can monkeypatch the module attributes directly.
Missing credentials never raise here: the component that needs a key
treats its absence as "not configured" and main.py refuses to start only
when the one mandatory key (OPENAI_API_KEY) is absent.
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _csv(raw: str) -> list[str]:
    return [x.strip() for x in raw.split(",") if x.strip()]


# ── OpenAI (second opinion + intent classification) ───────────────────────────
OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL: str          = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

# ── Google Cloud Vision ───────────────────────────────────────────────────────
# Credential lookup order (see vision/google_vision.py):
#   1. GOOGLE_APPLICATION_CREDENTIALS → path to a service-account key file
#   2. GOOGLE_CREDENTIALS             → the same JSON pasted inline
#   3. GOOGLE_API_KEY                 → plain API key
#   4. application default credentials
GOOGLE_APPLICATION_CREDENTIALS: str | None = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
GOOGLE_CREDENTIALS: str | None             = os.getenv("GOOGLE_CREDENTIALS")
GOOGLE_API_KEY: str | None                 = os.getenv("GOOGLE_API_KEY")

# Language hints sent with every OCR request
VISION_LANGUAGE_HINTS: list[str] = _csv(os.getenv("VISION_LANGUAGE_HINTS", "en,fr,de,es,it,nl,pl"))

# ── Image preprocessing ───────────────────────────────────────────────────────
MAX_IMAGE_WIDTH: int = int(os.getenv("MAX_IMAGE_WIDTH", "1600"))

# ── eBay Browse API (OAuth2 client credentials) ──────────────────────────────
EBAY_CLIENT_ID: str | None     = os.getenv("EBAY_CLIENT_ID")
EBAY_CLIENT_SECRET: str | None = os.getenv("EBAY_CLIENT_SECRET")
EBAY_BROWSE_MARKETPLACE: str   = os.getenv("EBAY_BROWSE_MARKETPLACE", "EBAY_GB")

# ── eBay Finding API (legacy, app id only) ────────────────────────────────────
EBAY_APP_ID: str | None         = os.getenv("EBAY_APP_ID")
# Tried in this order; the first region that answers wins
EBAY_FINDING_REGIONS: list[str] = _csv(os.getenv("EBAY_FINDING_REGIONS", "EBAY-IE,EBAY-GB,EBAY-US"))

# ── Aggregation ───────────────────────────────────────────────────────────────
# Finding fallback runs when Browse is unavailable or returns fewer than this.
# Tunable heuristic, not an invariant.
FALLBACK_MIN_RESULTS: int = int(os.getenv("FALLBACK_MIN_RESULTS", "4"))
PROVIDER_TIMEOUT: float   = float(os.getenv("PROVIDER_TIMEOUT", "10"))
SCRAPER_TIMEOUT: float    = float(os.getenv("SCRAPER_TIMEOUT", "9"))
REGION_NOTE: str          = os.getenv("REGION_NOTE", "Irish & British marketplaces")

# ── Web server ────────────────────────────────────────────────────────────────
PORT: int        = int(os.getenv("PORT", "3000"))
MAX_BODY_MB: int = int(os.getenv("MAX_BODY_MB", "25"))
LOG_LEVEL: str   = os.getenv("LOG_LEVEL", "INFO").upper()
