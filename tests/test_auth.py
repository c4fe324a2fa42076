"""
Hope & Failure Band Site - Admin Gate Tests

Tests for the bandsite/auth.py module. Validates:
- Signed value helpers (round trip, tamper detection)
- Session cookie creation, parsing and expiry
- Password verification against plaintext and bcrypt hash
- Behaviour when no admin credential is configured
- admin_page_required middleware logic
- Failed-attempt limiting (429 once exhausted)
- Login page rendering
"""

import json
import time
from unittest.mock import MagicMock, patch

import bcrypt
import pytest
from fastapi import HTTPException

from bandsite import auth
from bandsite.auth import (
    _create_session_cookie,
    _parse_session_cookie,
    _sign,
    admin_page_required,
    check_login_attempt,
    clear_session_cookie,
    is_admin,
    render_login_page,
    set_session_cookie,
    sign_value,
    unsign_value,
    verify_admin_password,
)
from bandsite.config import SESSION_COOKIE_NAME, SESSION_MAX_AGE

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_request(
    cookies: dict | None = None, path: str = "/", host: str = "10.0.0.1"
) -> MagicMock:
    """Create a mock FastAPI Request with cookies, URL path and client host."""
    request = MagicMock()
    request.cookies = cookies or {}
    request.headers = {}
    url_mock = MagicMock()
    url_mock.path = path
    request.url = url_mock
    request.client.host = host
    return request


def _make_response() -> MagicMock:
    response = MagicMock()
    response._cookies = {}

    def fake_set_cookie(**kwargs):
        response._cookies[kwargs.get("key", "")] = kwargs

    def fake_delete_cookie(**kwargs):
        response._cookies.pop(kwargs.get("key", ""), None)

    response.set_cookie = MagicMock(side_effect=fake_set_cookie)
    response.delete_cookie = MagicMock(side_effect=fake_delete_cookie)
    return response


# ===========================================================================
# Signed values
# ===========================================================================


class TestSignedValues:
    def test_sign_is_hex_sha256(self):
        assert len(_sign("payload")) == 64

    def test_round_trip(self):
        data = [{"id": "judith-tote", "quantity": 2}]
        assert unsign_value(sign_value(data)) == data

    def test_tampered_payload_rejected(self):
        value = sign_value({"role": "admin"})
        payload, sig = value.rsplit("|", 1)
        forged = payload.replace("admin", "owner") + "|" + sig
        assert unsign_value(forged) is None

    def test_missing_separator(self):
        assert unsign_value("no-signature-here") is None

    def test_empty_value(self):
        assert unsign_value("") is None

    def test_valid_signature_invalid_json(self):
        payload = "{not json"
        assert unsign_value(f"{payload}|{_sign(payload)}") is None


# ===========================================================================
# Session cookie
# ===========================================================================


class TestSessionCookie:
    def test_create_and_parse(self):
        session = _parse_session_cookie(_create_session_cookie())
        assert session is not None
        assert session["role"] == "admin"

    def test_expired_session_rejected(self):
        old = sign_value({"role": "admin", "ts": int(time.time()) - SESSION_MAX_AGE - 10})
        assert _parse_session_cookie(old) is None

    def test_wrong_role_rejected(self):
        value = sign_value({"role": "fan", "ts": int(time.time())})
        assert _parse_session_cookie(value) is None

    def test_non_dict_payload_rejected(self):
        assert _parse_session_cookie(sign_value(["admin"])) is None

    def test_is_admin_with_cookie(self):
        request = _make_request(cookies={SESSION_COOKIE_NAME: _create_session_cookie()})
        assert is_admin(request) is True

    def test_is_admin_without_cookie(self):
        assert is_admin(_make_request()) is False

    def test_set_session_cookie(self):
        response = _make_response()
        set_session_cookie(response)
        cookie = response._cookies[SESSION_COOKIE_NAME]
        assert cookie["httponly"] is True
        assert cookie["max_age"] == SESSION_MAX_AGE
        assert _parse_session_cookie(cookie["value"]) is not None

    def test_clear_session_cookie(self):
        response = _make_response()
        set_session_cookie(response)
        clear_session_cookie(response)
        assert SESSION_COOKIE_NAME not in response._cookies


# ===========================================================================
# Password verification
# ===========================================================================


class TestVerifyAdminPassword:
    def test_plaintext_match(self):
        with patch.object(auth, "ADMIN_PASSWORD_HASH", ""), patch.object(
            auth, "ADMIN_PASSWORD", "letmein"
        ):
            assert verify_admin_password("letmein") is True
            assert verify_admin_password("nope") is False

    def test_bcrypt_hash_wins_over_plaintext(self):
        hashed = bcrypt.hashpw(b"hashed-pw", bcrypt.gensalt(4)).decode()
        with patch.object(auth, "ADMIN_PASSWORD_HASH", hashed), patch.object(
            auth, "ADMIN_PASSWORD", "plain-pw"
        ):
            assert verify_admin_password("hashed-pw") is True
            assert verify_admin_password("plain-pw") is False

    def test_invalid_hash_refuses(self):
        with patch.object(auth, "ADMIN_PASSWORD_HASH", "not-a-bcrypt-hash"):
            assert verify_admin_password("anything") is False

    def test_nothing_configured_refuses(self):
        with patch.object(auth, "ADMIN_PASSWORD_HASH", ""), patch.object(
            auth, "ADMIN_PASSWORD", ""
        ):
            assert verify_admin_password("") is False
            assert verify_admin_password("admin123") is False

    @pytest.mark.parametrize("value", [None, "", 123, ["pw"]])
    def test_non_string_or_empty(self, value):
        assert verify_admin_password(value) is False


# ===========================================================================
# Admin page gate
# ===========================================================================


class TestAdminPageRequired:
    def test_public_page_not_gated(self):
        assert admin_page_required(_make_request(path="/shop")) is False

    def test_admin_page_requires_session(self):
        assert admin_page_required(_make_request(path="/admin/events")) is True

    def test_admin_root_requires_session(self):
        assert admin_page_required(_make_request(path="/admin")) is True

    def test_login_page_is_public(self):
        assert admin_page_required(_make_request(path="/admin/login")) is False

    def test_similar_prefix_not_gated(self):
        assert admin_page_required(_make_request(path="/administrator")) is False

    def test_logged_in_passes(self):
        request = _make_request(
            path="/admin/bio", cookies={SESSION_COOKIE_NAME: _create_session_cookie()}
        )
        assert admin_page_required(request) is False


# ===========================================================================
# Failed attempt limiting
# ===========================================================================


class TestCheckLoginAttempt:
    def test_success_does_not_count(self):
        with patch.object(auth.admin_limiter, "enabled", True):
            for _ in range(10):
                assert check_login_attempt(_make_request(), "test-admin-pw") is True

    def test_blocks_after_max_failures(self):
        request = _make_request(host="10.9.9.9")
        with patch.object(auth.admin_limiter, "enabled", True):
            for _ in range(auth.admin_limiter.max_requests):
                assert check_login_attempt(request, "wrong") is False
            with pytest.raises(HTTPException) as exc_info:
                check_login_attempt(request, "test-admin-pw")
        assert exc_info.value.status_code == 429
        assert "Retry-After" in exc_info.value.headers

    def test_other_clients_unaffected(self):
        with patch.object(auth.admin_limiter, "enabled", True):
            for _ in range(auth.admin_limiter.max_requests):
                check_login_attempt(_make_request(host="10.1.1.1"), "wrong")
            assert check_login_attempt(_make_request(host="10.2.2.2"), "test-admin-pw")


# ===========================================================================
# Login page
# ===========================================================================


class TestRenderLoginPage:
    def test_plain_page(self):
        resp = render_login_page()
        body = resp.body.decode()
        assert resp.status_code == 200
        assert 'action="/admin/login"' in body
        assert "error-msg" not in body

    def test_error_is_escaped(self):
        resp = render_login_page(error="<b>bad</b>", status_code=401)
        body = resp.body.decode()
        assert resp.status_code == 401
        assert "&lt;b&gt;bad&lt;/b&gt;" in body
        assert "<b>bad</b>" not in body


# ===========================================================================
# require_admin dependency (through the app)
# ===========================================================================


class TestRequireAdmin:
    def test_body_password_accepted(self, client):
        resp = client.post("/api/admin/verify", json={"password": "test-admin-pw"})
        assert resp.status_code == 200
        assert resp.json() == {"success": True}

    def test_wrong_password_401(self, client):
        resp = client.post("/api/admin/verify", json={"password": "wrong"})
        assert resp.status_code == 401
        assert resp.json() == {
            "success": False,
            "error": "Unauthorized - Invalid admin password",
        }

    def test_missing_body_401(self, client):
        resp = client.post("/api/admin/verify")
        assert resp.status_code == 401

    def test_session_cookie_accepted(self, admin_client):
        resp = admin_client.post("/api/admin/verify", json={})
        assert resp.status_code == 200

    def test_cookie_payload_is_json(self):
        value = _create_session_cookie()
        payload = value.rsplit("|", 1)[0]
        assert json.loads(payload)["role"] == "admin"
