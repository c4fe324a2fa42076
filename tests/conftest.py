"""
Hope & Failure Band Site - Pytest Configuration & Shared Fixtures

Provides reusable fixtures for:
- A fresh SQLite database per test (empty or seeded with default content)
- A FastAPI TestClient bound to that database
- An admin-authenticated client
- Sample Stripe checkout session payloads

Environment variables are set before any ``bandsite`` module is imported
because the configuration is read at import time.
"""

import os
import tempfile
from pathlib import Path
from typing import Any, Dict

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("ADMIN_PASSWORD", "test-admin-pw")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("CLIENT_URL", "http://testserver")
os.environ.setdefault(
    "DB_PATH", str(Path(tempfile.gettempdir()) / "bandsite-tests" / "bandsite.db")
)

import pytest
from fastapi.testclient import TestClient

from bandsite import auth, database
from bandsite.seed import seed_database

ADMIN_PASSWORD = os.environ["ADMIN_PASSWORD"]

# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db_path(tmp_path: Path, monkeypatch) -> Path:
    """Point the database layer at an empty, initialized temp database."""
    path = tmp_path / "test.db"
    monkeypatch.setattr(database, "DB_PATH", path)
    database.init_db()
    return path


@pytest.fixture
def seeded_db(db_path: Path) -> Path:
    """A temp database populated with the default site content."""
    seed_database()
    return db_path


@pytest.fixture(autouse=True)
def reset_limiters():
    """Failed-login counters are module state; start every test clean."""
    auth.admin_limiter.reset()
    yield
    auth.admin_limiter.reset()


# ---------------------------------------------------------------------------
# HTTP client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def client(seeded_db: Path):
    """TestClient running the full app (lifespan included) on the temp DB."""
    from bandsite.main import create_app

    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture
def admin_client(client: TestClient) -> TestClient:
    """A client that has logged in through the admin form."""
    resp = client.post(
        "/admin/login", data={"password": ADMIN_PASSWORD}, follow_redirects=False
    )
    assert resp.status_code == 303
    return client


# ---------------------------------------------------------------------------
# Stripe payload fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def paid_session() -> Dict[str, Any]:
    """A paid checkout session as returned by stripe.checkout.Session.retrieve."""
    return {
        "id": "cs_test_123",
        "created": 1735689600,
        "payment_status": "paid",
        "customer_email": "fan@example.com",
        "customer_details": {"name": "Jamie Fan", "email": "fan@example.com"},
        "amount_subtotal": 150,
        "amount_total": 150,
        "total_details": {"amount_shipping": 0},
        "shipping_details": {
            "address": {
                "line1": "1 Main St",
                "line2": None,
                "city": "Portland",
                "state": "OR",
                "postal_code": "97202",
                "country": "US",
            }
        },
        "metadata": {
            "items": '[{"id":"judith-shirt","quantity":2,"size":"M"},'
            '{"id":"judith-tote","quantity":1}]'
        },
    }
