"""
Hope & Failure Band Site - Main Application

Single-container FastAPI application that serves:
- The public site (bio, music, videos, lyrics, shows, merch shop) via Jinja2
- Static files (CSS, images, audio)
- The JSON REST API for the content resources
- Stripe checkout endpoints and webhook
- The password-gated admin panel
- Health check endpoint

Content lives in a local SQLite file that is created and seeded with the
default content on first start.
"""

import sys
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import (
    http_exception_handler,
    request_validation_exception_handler,
)
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from bandsite.auth import admin_configured, admin_page_required
from bandsite.config import (
    APP_ENV,
    APP_HOST,
    APP_PORT,
    APP_VERSION,
    BAND_NAME,
    CORS_ORIGINS,
    DEBUG,
    LOG_LEVEL,
    RATE_LIMIT_ENABLED,
    RATE_LIMIT_MAX_REQUESTS,
    RATE_LIMIT_WINDOW,
    SECRET_KEY,
    STATIC_DIR,
    STRIPE_WEBHOOK_SECRET,
    TEMPLATES_DIR,
    ensure_directories,
)
from bandsite.database import init_db
from bandsite.ratelimit import LOCAL_ADDRESSES, RateLimiter, client_key
from bandsite.routes.admin import router as admin_router
from bandsite.routes.api import router as api_router
from bandsite.routes.checkout import router as checkout_router
from bandsite.routes.pages import router as pages_router
from bandsite.seed import seed_database
from bandsite.services.checkout import stripe_configured
from bandsite.services.notifications import email_configured

# ---------------------------------------------------------------------------
# Logging setup - stdout only (no file logging for containers)
# ---------------------------------------------------------------------------
logger.remove()

logger.add(
    sys.stdout,
    level="DEBUG" if DEBUG else LOG_LEVEL,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    colorize=True,
)

# Requests per client across all /api endpoints
api_limiter = RateLimiter(
    max_requests=RATE_LIMIT_MAX_REQUESTS,
    window=RATE_LIMIT_WINDOW,
    enabled=RATE_LIMIT_ENABLED,
)

# Stripe retries webhooks on its own schedule; never throttle it
RATE_LIMIT_EXEMPT_PATHS = {"/api/health", "/api/webhook"}

CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "script-src 'self' https://js.stripe.com; "
    "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com; "
    "font-src 'self' https://fonts.gstatic.com; "
    "img-src 'self' data: https://i.ytimg.com; "
    "media-src 'self'; "
    "frame-src https://www.youtube.com https://www.youtube-nocookie.com https://js.stripe.com https://checkout.stripe.com; "
    "connect-src 'self' https://api.stripe.com; "
    "form-action 'self' https://checkout.stripe.com"
)


def _is_api(request: Request) -> bool:
    return request.url.path.startswith("/api/") or request.url.path == "/api"


def _error_message(detail) -> str:
    if isinstance(detail, str):
        return detail
    return str(detail)


def _config_warnings() -> None:
    if not admin_configured():
        logger.warning("🔓 No ADMIN_PASSWORD or ADMIN_PASSWORD_HASH set; admin panel is locked")
    elif SECRET_KEY == "change-me-in-production":
        logger.warning("⚠️  SECRET_KEY is the default value; set it before going live")

    if not stripe_configured():
        logger.warning("💳 STRIPE_SECRET_KEY not set; checkout is disabled")
    elif not STRIPE_WEBHOOK_SECRET:
        logger.warning("💳 STRIPE_WEBHOOK_SECRET not set; webhooks are not verified")

    if not email_configured():
        logger.warning("📧 EmailJS not configured; order emails will not be sent")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    On startup:
        1. Create the database directory
        2. Initialize / migrate the SQLite database
        3. Seed empty tables with the default content
        4. Warn about missing configuration
    """
    # --- Startup ---
    logger.info("🚀 Starting {} site v{}", BAND_NAME, APP_VERSION)
    logger.info("📋 Environment: {} | Debug: {}", APP_ENV, DEBUG)

    # Step 1: Ensure the data directory exists
    ensure_directories()
    logger.info("📁 Data directory initialized")

    # Step 2: Initialize database (creates tables / runs migrations)
    try:
        init_db()
    except Exception as e:
        logger.critical("❌ Database initialization failed: {}", e)
        raise

    # Step 3: Seed default content into empty tables
    seeded = seed_database()
    if any(seeded.values()):
        logger.info("🌱 Seeded default content: {}", seeded)

    # Step 4: Configuration warnings
    _config_warnings()

    logger.success("✅ Application ready, listening on {}:{}", APP_HOST, APP_PORT)

    yield

    # --- Shutdown ---
    logger.info("👋 Shutdown complete")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------
def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title=f"{BAND_NAME} Band Site",
        description=(
            "Band promotion site with shows, videos, lyrics, a merch shop "
            "with Stripe checkout and a password-gated admin panel."
        ),
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if DEBUG else None,
        redoc_url="/redoc" if DEBUG else None,
    )

    # ------------------------------------------------------------------
    # Jinja2 templates
    # ------------------------------------------------------------------
    templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
    app.state.templates = templates

    # ------------------------------------------------------------------
    # Static files
    # ------------------------------------------------------------------
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    # ------------------------------------------------------------------
    # CORS
    # ------------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Stripe-Signature"],
    )

    # ------------------------------------------------------------------
    # Security headers middleware
    # ------------------------------------------------------------------
    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        if not _is_api(request):
            response.headers.setdefault("Content-Security-Policy", CONTENT_SECURITY_POLICY)
        if APP_ENV == "production":
            response.headers.setdefault(
                "Strict-Transport-Security", "max-age=31536000; includeSubDomains"
            )
        return response

    # ------------------------------------------------------------------
    # API rate limit middleware
    # ------------------------------------------------------------------
    @app.middleware("http")
    async def api_rate_limit(request: Request, call_next):
        """Fixed-window limit on /api traffic per client address."""
        path = request.url.path
        if not _is_api(request) or path in RATE_LIMIT_EXEMPT_PATHS:
            return await call_next(request)

        key = client_key(request)
        if APP_ENV == "development" and key in LOCAL_ADDRESSES:
            return await call_next(request)

        if not api_limiter.hit(key):
            logger.warning("🚦 Rate limit exceeded for {} on {}", key, path)
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": "Too many requests from this IP, please try again later.",
                },
                headers={"Retry-After": str(api_limiter.retry_after(key))},
            )
        return await call_next(request)

    # ------------------------------------------------------------------
    # Admin gate middleware
    # ------------------------------------------------------------------
    @app.middleware("http")
    async def admin_middleware(request: Request, call_next):
        """Redirect anonymous visitors of admin pages to the login form."""
        if admin_page_required(request):
            return RedirectResponse(url="/admin/login", status_code=302)
        return await call_next(request)

    # ------------------------------------------------------------------
    # Request logging middleware
    # ------------------------------------------------------------------
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log every incoming HTTP request with timing information."""
        start = time.time()
        try:
            response = await call_next(request)
        except Exception as exc:
            duration = round(time.time() - start, 3)
            logger.error(
                "❌ {method} {path} - unhandled error after {duration}s: {exc}",
                method=request.method,
                path=request.url.path,
                duration=duration,
                exc=exc,
            )
            raise

        duration = round(time.time() - start, 3)
        status = response.status_code

        if status >= 500:
            log = logger.error
        elif status >= 400:
            log = logger.warning
        elif request.url.path.startswith("/static"):
            return response
        else:
            log = logger.info

        log(
            "📤 {method} {path} - {status} [{duration}s]",
            method=request.method,
            path=request.url.path,
            status=status,
            duration=duration,
        )
        return response

    # ------------------------------------------------------------------
    # Exception handlers
    # ------------------------------------------------------------------
    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if _is_api(request):
            error = _error_message(exc.detail)
            if exc.status_code == 404 and error == "Not Found":
                error = "API endpoint not found"
            return JSONResponse(
                status_code=exc.status_code,
                content={"success": False, "error": error},
                headers=getattr(exc, "headers", None),
            )
        if exc.status_code == 404:
            return templates.TemplateResponse(
                request,
                "error.html",
                {
                    "page_title": "Not Found",
                    "band_name": BAND_NAME,
                    "cart_count": 0,
                    "status_code": 404,
                    "message": "That page does not exist.",
                },
                status_code=404,
            )
        return await http_exception_handler(request, exc)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        if _is_api(request):
            errors = exc.errors()
            first = errors[0] if errors else {}
            field = ".".join(str(p) for p in first.get("loc", ())[1:])
            message = first.get("msg", "Invalid request")
            return JSONResponse(
                status_code=400,
                content={
                    "success": False,
                    "error": f"{field}: {message}" if field else message,
                },
            )
        return await request_validation_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("❌ Unhandled error on {} {}", request.method, request.url.path)
        content = {"success": False, "error": "Internal server error"}
        if DEBUG:
            content["message"] = str(exc)
        return JSONResponse(status_code=500, content=content)

    # ------------------------------------------------------------------
    # Register routers
    # ------------------------------------------------------------------
    app.include_router(api_router)  # /api/*   - JSON endpoints
    app.include_router(checkout_router)  # /api/*   - Stripe checkout
    app.include_router(admin_router)  # /admin/* - admin panel
    app.include_router(pages_router)  # /*       - public pages (must be last)

    return app


# ---------------------------------------------------------------------------
# Create the app instance (used by Uvicorn)
# ---------------------------------------------------------------------------
app = create_app()


# ---------------------------------------------------------------------------
# Direct execution (development)
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "bandsite.main:app",
        host=APP_HOST,
        port=APP_PORT,
        reload=DEBUG,
        log_level="debug" if DEBUG else "info",
    )
