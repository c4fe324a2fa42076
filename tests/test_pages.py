"""
Hope & Failure Band Site - Public Page Tests

Renders every public page through the TestClient and walks the shop flow:
cart cookie add / update / remove, checkout validation, the hand-off to
Stripe (patched) and the success / cancel pages.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from bandsite import database
from bandsite.config import CART_COOKIE_NAME, CONTACT_EMAIL
from bandsite.services import checkout

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _add(client, product_id="judith-shirt", size="M", quantity=1):
    return client.post(
        "/cart/add",
        data={"product_id": product_id, "size": size, "quantity": str(quantity)},
        follow_redirects=False,
    )


# ===========================================================================
# Content pages
# ===========================================================================


class TestContentPages:
    @pytest.mark.parametrize(
        "path", ["/", "/shows", "/bio", "/music", "/videos", "/lyrics", "/contact", "/shop", "/cart"]
    )
    def test_page_renders(self, client, path):
        resp = client.get(path)
        assert resp.status_code == 200
        assert "text/html" in resp.headers["content-type"]
        assert "Content-Security-Policy" in resp.headers

    def test_home_without_upcoming_shows(self, client):
        body = client.get("/").text
        assert "No upcoming shows right now" in body
        assert "youtube-nocookie.com/embed/-1Z3-77cvVQ" in body

    def test_home_lists_upcoming_show(self, client):
        asyncio.run(
            database.add_event(
                {"title": "Future Gig", "date": "2099-01-01", "venue": "Azoth", "location": "Portland, OR"}
            )
        )
        body = client.get("/").text
        assert "Future Gig" in body
        assert "No upcoming shows" not in body

    def test_shows_page_has_past_shows(self, client):
        body = client.get("/shows").text
        assert "Past Shows" in body
        assert "Red Hawk Avalon" in body

    def test_lyrics_marks_instrumental(self, client):
        body = client.get("/lyrics").text
        assert "Mirror Altar" in body
        assert "Instrumental" in body

    def test_bio_page(self, client):
        body = client.get("/bio").text
        assert "Past Members" in body
        assert "https://instagram.com/sarahnelson.design" in body

    def test_music_page(self, client):
        assert "Mirror Altar - Live Acoustic Set" in client.get("/music").text

    def test_videos_page(self, client):
        assert "embed/rZVkmhlMXno" in client.get("/videos").text

    def test_contact_page(self, client):
        assert f"mailto:{CONTACT_EMAIL}" in client.get("/contact").text

    def test_load_error_is_inline(self, client):
        with patch.object(database, "get_events", AsyncMock(side_effect=RuntimeError("locked"))):
            resp = client.get("/shows")
        assert resp.status_code == 200
        assert "Failed to load events" in resp.text

    def test_not_found_page(self, client):
        resp = client.get("/no-such-page")
        assert resp.status_code == 404
        assert "That page does not exist." in resp.text

    def test_shop_marks_sold_out_sizes(self, client):
        body = client.get("/shop").text
        assert "(sold out)" in body
        assert 'action="/cart/add"' in body

    def test_shop_message(self, client):
        assert "Not enough stock" in client.get("/shop?msg=Not+enough+stock").text


# ===========================================================================
# Cart
# ===========================================================================


class TestCart:
    def test_add_redirects_to_cart(self, client):
        resp = _add(client, quantity=2)
        assert resp.status_code == 303
        assert resp.headers["location"] == "/cart"
        body = client.get("/cart").text
        assert "Judith T-Shirt (M)" in body
        assert "$1.00" in body
        assert "Cart (2)" in body

    def test_add_requires_size(self, client):
        resp = _add(client, size="")
        assert resp.headers["location"] == "/shop?msg=Please+choose+a+size"

    def test_add_unknown_product(self, client):
        resp = _add(client, product_id="poster", size="")
        assert resp.headers["location"] == "/shop?msg=Product+not+found"

    def test_add_sold_out(self, client):
        resp = _add(client, size="XS")
        assert resp.headers["location"] == "/shop?msg=Not+enough+stock"
        assert CART_COOKIE_NAME not in client.cookies

    def test_add_capped_at_stock(self, client):
        _add(client, size="S", quantity=50)
        assert "Cart (5)" in client.get("/cart").text

    def test_one_size_item(self, client):
        _add(client, product_id="judith-tote", size="")
        assert "Judith Tote Bag" in client.get("/cart").text

    def test_update_limited_to_stock(self, client):
        _add(client, size="S")
        resp = client.post(
            "/cart/update",
            data={"product_id": "judith-shirt", "size": "S", "quantity": "9"},
            follow_redirects=False,
        )
        assert resp.headers["location"] == "/cart?msg=Quantity+limited+to+available+stock"
        assert "Cart (5)" in client.get("/cart").text

    def test_update_to_zero_removes(self, client):
        _add(client)
        client.post("/cart/update", data={"product_id": "judith-shirt", "size": "M", "quantity": "0"})
        assert "Your cart is empty." in client.get("/cart").text

    def test_remove(self, client):
        _add(client)
        _add(client, product_id="judith-tote", size="")
        client.post("/cart/remove", data={"product_id": "judith-shirt", "size": "M"})
        body = client.get("/cart").text
        assert "Judith T-Shirt" not in body
        assert "Judith Tote Bag" in body

    def test_clear(self, client):
        _add(client)
        client.post("/cart/clear")
        assert "Your cart is empty." in client.get("/cart").text


# ===========================================================================
# Checkout
# ===========================================================================


class TestCheckoutPages:
    def test_empty_cart_redirects(self, client):
        resp = client.get("/checkout", follow_redirects=False)
        assert resp.status_code == 303
        assert resp.headers["location"] == "/cart"

    def test_checkout_page(self, client):
        _add(client)
        body = client.get("/checkout").text
        assert "Pay with Stripe" in body
        assert "Judith T-Shirt (M)" in body

    def test_invalid_email(self, client):
        _add(client)
        resp = client.post("/checkout", data={"email": "not-an-email"})
        assert resp.status_code == 400
        assert "Please enter a valid email address" in resp.text

    def test_redirects_to_stripe(self, client):
        _add(client, quantity=2)
        fake = AsyncMock(return_value={"url": "https://checkout.stripe.com/c/pay/cs_1", "sessionId": "cs_1"})
        with patch.object(checkout, "create_checkout_session", fake):
            resp = client.post("/checkout", data={"email": "fan@example.com"}, follow_redirects=False)
        assert resp.status_code == 303
        assert resp.headers["location"] == "https://checkout.stripe.com/c/pay/cs_1"
        fake.assert_awaited_once_with(
            [{"id": "judith-shirt", "quantity": 2, "size": "M"}], "fan@example.com"
        )

    def test_stock_dropped_since_adding(self, client):
        _add(client, product_id="judith-tote", size="", quantity=5)
        asyncio.run(database.update_inventory("judith-tote", "one-size", 2))
        resp = client.post("/checkout", data={"email": "fan@example.com"})
        assert resp.status_code == 400
        assert "Only 2 of Judith Tote Bag available" in resp.text
        assert "Cart (2)" in client.get("/cart").text

    def test_payments_not_configured(self, client):
        _add(client)
        with patch.object(checkout, "STRIPE_SECRET_KEY", ""):
            resp = client.post("/checkout", data={"email": "fan@example.com"})
        assert resp.status_code == 503
        assert "Payments are not configured" in resp.text

    def test_success_clears_cart(self, client):
        _add(client, quantity=2)
        result = {
            "order": {
                "orderId": "cs_1",
                "customerEmail": "fan@example.com",
                "items": [{"title": "Judith T-Shirt", "size": "M", "quantity": 2}],
                "shipping": 0,
                "total": 1.0,
            },
            "emailSent": True,
            "alreadyProcessed": False,
            "inventory": [],
        }
        process = AsyncMock(return_value=result)
        with patch.object(checkout, "process_order", process):
            resp = client.get("/checkout/success?session_id=cs_1")
        assert resp.status_code == 200
        assert "Thank You!" in resp.text
        assert "Order cs_1" in resp.text
        process.assert_awaited_once_with("cs_1")
        assert CART_COOKIE_NAME not in client.cookies

    def test_success_without_session(self, client):
        assert "No order session found." in client.get("/checkout/success").text

    def test_success_unpaid_keeps_cart(self, client):
        _add(client)
        fake = AsyncMock(side_effect=checkout.PaymentNotCompleted("Payment not completed"))
        with patch.object(checkout, "process_order", fake):
            body = client.get("/checkout/success?session_id=cs_1").text
        assert "Your payment has not been completed yet." in body
        assert CART_COOKIE_NAME in client.cookies

    def test_success_stripe_failure(self, client):
        fake = AsyncMock(side_effect=checkout.CheckoutError("boom"))
        with patch.object(checkout, "process_order", fake):
            body = client.get("/checkout/success?session_id=cs_1").text
        assert "We could not confirm your order." in body

    def test_cancel(self, client):
        assert "No payment was taken." in client.get("/checkout/cancel").text
