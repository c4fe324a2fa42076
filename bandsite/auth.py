"""
Hope & Failure Band Site - Admin Gate

Single-password admin access.  The password is checked against
``ADMIN_PASSWORD_HASH`` (bcrypt) when configured, otherwise against the
plaintext ``ADMIN_PASSWORD``.  A successful login sets a signed session
cookie so the admin panel does not ask again until it expires.

Usage:
    - ``admin_page_required(request)`` drives the middleware that redirects
      anonymous visitors of ``/admin/*`` pages to the login form.
    - ``require_admin`` is a FastAPI dependency for the JSON admin
      endpoints; it accepts the session cookie or a ``password`` field in
      the request body.
"""

import hashlib
import hmac
import html
import json
import time
from typing import Any

import bcrypt
from fastapi import HTTPException, Request, Response
from fastapi.responses import HTMLResponse
from loguru import logger

from bandsite.config import (
    ADMIN_MAX_FAILED_ATTEMPTS,
    ADMIN_PASSWORD,
    ADMIN_PASSWORD_HASH,
    BAND_NAME,
    RATE_LIMIT_ENABLED,
    RATE_LIMIT_WINDOW,
    SECRET_KEY,
    SESSION_COOKIE_NAME,
    SESSION_MAX_AGE,
)
from bandsite.ratelimit import RateLimiter, client_key

# Failed admin password attempts per client
admin_limiter = RateLimiter(
    max_requests=ADMIN_MAX_FAILED_ATTEMPTS,
    window=RATE_LIMIT_WINDOW,
    enabled=RATE_LIMIT_ENABLED,
)

# ---------------------------------------------------------------------------
# Signed cookie helpers (shared with the cart cookie)
# ---------------------------------------------------------------------------


def _sign(payload: str) -> str:
    """Create an HMAC-SHA256 signature for a payload string."""
    return hmac.new(
        SECRET_KEY.encode("utf-8"),
        payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def sign_value(data: Any) -> str:
    """Serialize *data* to JSON and append its signature."""
    payload = json.dumps(data, separators=(",", ":"))
    return f"{payload}|{_sign(payload)}"


def unsign_value(cookie_value: str) -> Any | None:
    """Verify and decode a value produced by :func:`sign_value`."""
    if not cookie_value or "|" not in cookie_value:
        return None

    try:
        data_part, sig_part = cookie_value.rsplit("|", 1)
        if not hmac.compare_digest(sig_part, _sign(data_part)):
            return None
        return json.loads(data_part)
    except (ValueError, TypeError):
        return None


def _create_session_cookie() -> str:
    """Create a signed admin session cookie value."""
    return sign_value({"role": "admin", "ts": int(time.time())})


def _parse_session_cookie(cookie_value: str) -> dict[str, Any] | None:
    """Parse and verify a session cookie.  Returns the session dict or None."""
    session = unsign_value(cookie_value)
    if not isinstance(session, dict) or session.get("role") != "admin":
        return None

    created = session.get("ts", 0)
    if not isinstance(created, (int, float)) or time.time() - created > SESSION_MAX_AGE:
        return None

    return session


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def admin_configured() -> bool:
    return bool(ADMIN_PASSWORD_HASH or ADMIN_PASSWORD)


def verify_admin_password(password: str | None) -> bool:
    """Check a password against the configured hash or plaintext value."""
    if not isinstance(password, str) or not password:
        return False

    if ADMIN_PASSWORD_HASH:
        try:
            return bcrypt.checkpw(
                password.encode("utf-8"), ADMIN_PASSWORD_HASH.encode("utf-8")
            )
        except ValueError:
            logger.error("❌ ADMIN_PASSWORD_HASH is not a valid bcrypt hash")
            return False

    if ADMIN_PASSWORD:
        return hmac.compare_digest(password.encode("utf-8"), ADMIN_PASSWORD.encode("utf-8"))

    return False


def is_admin(request: Request) -> bool:
    """Check whether the current request carries a valid admin session."""
    cookie = request.cookies.get(SESSION_COOKIE_NAME, "")
    return _parse_session_cookie(cookie) is not None


def set_session_cookie(response: Response) -> None:
    """Set the signed admin session cookie on a response."""
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=_create_session_cookie(),
        max_age=SESSION_MAX_AGE,
        httponly=True,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    """Remove the admin session cookie."""
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        path="/",
    )


def check_login_attempt(request: Request, password: str | None) -> bool:
    """
    Verify a password on behalf of *request*, counting failures.

    Raises a 429 HTTPException once the client has used up its failed
    attempts for the current window.
    """
    key = client_key(request)
    if admin_limiter.is_blocked(key):
        raise HTTPException(
            status_code=429,
            detail="Too many admin attempts. Please try again later.",
            headers={"Retry-After": str(admin_limiter.retry_after(key))},
        )

    if verify_admin_password(password):
        return True

    admin_limiter.hit(key)
    logger.warning("🔒 Failed admin password attempt from {}", key)
    return False


# ---------------------------------------------------------------------------
# Admin page gate (used by the middleware)
# ---------------------------------------------------------------------------

# Admin paths that don't require a session
PUBLIC_ADMIN_PATHS = {"/admin/login"}


def admin_page_required(request: Request) -> bool:
    """
    Return True if this request targets an admin page and the visitor is
    NOT logged in (i.e. the request should be redirected to the login form).
    """
    path = request.url.path
    if not (path == "/admin" or path.startswith("/admin/")):
        return False

    if path in PUBLIC_ADMIN_PATHS:
        return False

    return not is_admin(request)


async def require_admin(request: Request) -> None:
    """
    FastAPI dependency guarding the JSON admin endpoints.

    Accepts a valid session cookie, or a ``password`` field in the JSON
    body.  Raises 401 otherwise.
    """
    if is_admin(request):
        return

    password = None
    try:
        body = await request.json()
        if isinstance(body, dict):
            password = body.get("password")
    except (ValueError, UnicodeDecodeError):
        password = None

    if not check_login_attempt(request, password):
        raise HTTPException(
            status_code=401, detail="Unauthorized - Invalid admin password"
        )


# ---------------------------------------------------------------------------
# Login page HTML
# ---------------------------------------------------------------------------

LOGIN_PAGE_HTML = """\
<!doctype html>
<html lang="en">
<head>
    <meta charset="UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>Admin Login | %(band_name)s</title>
    <link rel="stylesheet" href="/static/css/site.css" />
</head>
<body class="login-body">
    <div class="login-card">
        <div class="login-header">
            <h1>%(band_name)s</h1>
            <p>Admin panel</p>
        </div>

        %(error_html)s

        <form method="POST" action="/admin/login">
            <div class="form-group">
                <label for="password">Password</label>
                <input
                    type="password"
                    id="password"
                    name="password"
                    placeholder="Enter the admin password"
                    autocomplete="current-password"
                    required
                    autofocus
                />
            </div>

            <button type="submit" class="btn btn-primary login-btn">Sign In</button>
        </form>

        <p class="footer-note"><a href="/">Back to the site</a></p>
    </div>
</body>
</html>
"""


def render_login_page(error: str = "", status_code: int = 200) -> HTMLResponse:
    """Render the admin login page with an optional error message."""
    error_html = ""
    if error:
        error_html = f'<div class="error-msg">{html.escape(error)}</div>'

    page = LOGIN_PAGE_HTML % {
        "error_html": error_html,
        "band_name": html.escape(BAND_NAME),
    }
    return HTMLResponse(content=page, status_code=status_code)
