"""
Hope & Failure Band Site - Configuration
All settings loaded from environment variables with sensible defaults.

The site runs as a single container.  Content lives in a local SQLite file;
payments are handled by Stripe Checkout and order notifications go out via
the EmailJS REST API.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
_ = load_dotenv()

# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------
APP_HOST = os.getenv("APP_HOST", "0.0.0.0")
APP_PORT = int(os.getenv("APP_PORT", "3000"))
APP_ENV = os.getenv("APP_ENV", "development")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")

if APP_ENV == "production" and SECRET_KEY == "change-me-in-production":
    raise RuntimeError(
        "SECRET_KEY must be changed from the default value in production. "
        "Set the SECRET_KEY environment variable to a random secret."
    )

BAND_NAME = os.getenv("BAND_NAME", "Hope & Failure")
CONTACT_EMAIL = os.getenv("CONTACT_EMAIL", "hope.failure.pdx@gmail.com")

# ---------------------------------------------------------------------------
# Admin gate
#
# ADMIN_PASSWORD_HASH (bcrypt, see scripts/generate_admin_hash.py) wins over
# the plaintext ADMIN_PASSWORD.  With neither set the admin panel is locked.
# ---------------------------------------------------------------------------
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "")
ADMIN_PASSWORD_HASH = os.getenv("ADMIN_PASSWORD_HASH", "")
SESSION_COOKIE_NAME = "hf_admin"
# Admin sessions expire after 12 hours by default
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", str(60 * 60 * 12)))
CART_COOKIE_NAME = "hf_cart"
CART_MAX_AGE = int(os.getenv("CART_MAX_AGE", str(60 * 60 * 24 * 7)))

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = BASE_DIR.parent

DB_PATH = Path(os.getenv("DB_PATH", str(PROJECT_ROOT / "data" / "bandsite.db")))

TEMPLATES_DIR = BASE_DIR / "templates"
STATIC_DIR = BASE_DIR / "static"

# ---------------------------------------------------------------------------
# Logging: stdout only
# ---------------------------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ---------------------------------------------------------------------------
# HTTP hardening
# ---------------------------------------------------------------------------
CLIENT_URL = os.getenv("CLIENT_URL", f"http://localhost:{APP_PORT}").rstrip("/")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS", f"{CLIENT_URL},http://localhost:3001"
    ).split(",")
    if origin.strip()
]

RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
RATE_LIMIT_WINDOW = int(os.getenv("RATE_LIMIT_WINDOW", str(15 * 60)))
RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "100"))
ADMIN_MAX_FAILED_ATTEMPTS = int(os.getenv("ADMIN_MAX_FAILED_ATTEMPTS", "5"))

# Reverse proxies whose X-Forwarded-For header is believed (empty = none)
TRUSTED_PROXIES = {
    p.strip() for p in os.getenv("TRUSTED_PROXIES", "").split(",") if p.strip()
}

# ---------------------------------------------------------------------------
# Stripe
# ---------------------------------------------------------------------------
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")
STRIPE_CURRENCY = os.getenv("STRIPE_CURRENCY", "usd")
SHIPPING_COUNTRIES = [
    c.strip().upper()
    for c in os.getenv("SHIPPING_COUNTRIES", "US,CA").split(",")
    if c.strip()
]
SHIPPING_MIN_DAYS = 5
SHIPPING_MAX_DAYS = 10

# Static product/price map used when building checkout sessions.  Prices are
# in dollars; Stripe receives cents.
PRODUCTS = {
    "judith-shirt": {
        "title": "Judith T-Shirt",
        "price": float(os.getenv("PRICE_JUDITH_SHIRT", "0.5")),
    },
    "judith-tote": {
        "title": "Judith Tote Bag",
        "price": float(os.getenv("PRICE_JUDITH_TOTE", "0.5")),
    },
}

# Inventory key used for goods that come in a single size
ONE_SIZE = "one-size"

# ---------------------------------------------------------------------------
# EmailJS (admin order notifications)
# ---------------------------------------------------------------------------
EMAILJS_API_URL = os.getenv(
    "EMAILJS_API_URL", "https://api.emailjs.com/api/v1.0/email/send"
)
EMAILJS_SERVICE_ID = os.getenv("EMAILJS_SERVICE_ID", "")
EMAILJS_TEMPLATE_ID = os.getenv("EMAILJS_TEMPLATE_ID", "")
EMAILJS_PUBLIC_KEY = os.getenv("EMAILJS_PUBLIC_KEY", "")
EMAILJS_PRIVATE_KEY = os.getenv("EMAILJS_PRIVATE_KEY", "")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", CONTACT_EMAIL)


def ensure_directories() -> None:
    """Create the directory holding the SQLite database."""
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
