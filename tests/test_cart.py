"""
Hope & Failure Band Site - Cart Tests

Tests for bandsite/services/cart.py:
- Adding, updating and removing lines
- Stock caps and the line limit
- Signed cookie persistence
- Validation against live inventory
"""

from unittest.mock import MagicMock

import pytest

from bandsite.auth import sign_value
from bandsite.config import CART_COOKIE_NAME
from bandsite.services.cart import (
    MAX_CART_LINES,
    Cart,
    CartLine,
    _parse_lines,
    available_stock,
    describe_cart,
    load_cart,
    save_cart,
    validate_cart,
)
from bandsite.seed import DEFAULT_INVENTORY

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def inventory():
    return {item["id"]: dict(item, inventory=dict(item["inventory"])) for item in DEFAULT_INVENTORY}


def _request_with_cookie(value=None) -> MagicMock:
    request = MagicMock()
    request.cookies = {CART_COOKIE_NAME: value} if value is not None else {}
    return request


# ===========================================================================
# Cart mutations
# ===========================================================================


class TestCartMutations:
    def test_add_new_line(self):
        cart = Cart()
        assert cart.add_item("judith-shirt", "M", 2) is True
        assert cart.lines == [CartLine(id="judith-shirt", size="M", quantity=2)]

    def test_add_same_line_merges(self):
        cart = Cart()
        cart.add_item("judith-shirt", "M", 1)
        cart.add_item("judith-shirt", "M", 2)
        assert len(cart.lines) == 1
        assert cart.lines[0].quantity == 3

    def test_sizes_are_separate_lines(self):
        cart = Cart()
        cart.add_item("judith-shirt", "M", 1)
        cart.add_item("judith-shirt", "L", 1)
        assert len(cart.lines) == 2

    def test_add_capped_at_available(self):
        cart = Cart()
        assert cart.add_item("judith-tote", None, 5, available=3) is True
        assert cart.lines[0].quantity == 3
        assert cart.add_item("judith-tote", None, 1, available=3) is False

    def test_add_out_of_stock(self):
        cart = Cart()
        assert cart.add_item("judith-shirt", "XS", 1, available=0) is False
        assert cart.is_empty()

    def test_add_non_positive_quantity(self):
        assert Cart().add_item("judith-tote", None, 0) is False

    def test_line_limit(self):
        cart = Cart(lines=[CartLine(id=f"p{i}", quantity=1) for i in range(MAX_CART_LINES)])
        assert cart.add_item("judith-tote", None, 1) is False

    def test_update_quantity(self):
        cart = Cart()
        cart.add_item("judith-shirt", "M", 1)
        assert cart.update_quantity("judith-shirt", "M", 4) is True
        assert cart.total_items() == 4

    def test_update_to_zero_removes(self):
        cart = Cart()
        cart.add_item("judith-shirt", "M", 1)
        cart.update_quantity("judith-shirt", "M", 0)
        assert cart.is_empty()

    def test_update_missing_line(self):
        assert Cart().update_quantity("judith-shirt", "M", 2) is False

    def test_remove_only_matching_size(self):
        cart = Cart()
        cart.add_item("judith-shirt", "M", 1)
        cart.add_item("judith-shirt", "L", 1)
        assert cart.remove_item("judith-shirt", "M") is True
        assert [l.size for l in cart.lines] == ["L"]

    def test_empty_size_matches_none(self):
        cart = Cart()
        cart.add_item("judith-tote", "", 1)
        assert cart.find("judith-tote", None) is not None

    def test_clear(self):
        cart = Cart()
        cart.add_item("judith-tote", None, 1)
        cart.clear()
        assert cart.is_empty()


class TestCartTotals:
    def test_subtotal_uses_server_prices(self):
        cart = Cart()
        cart.add_item("judith-shirt", "M", 2)
        cart.add_item("judith-tote", None, 1)
        assert cart.subtotal() == 1.5
        assert cart.total_items() == 3

    def test_unknown_products_cost_nothing(self):
        cart = Cart(lines=[CartLine(id="mystery", quantity=3)])
        assert cart.subtotal() == 0

    def test_checkout_items_omit_empty_size(self):
        cart = Cart()
        cart.add_item("judith-shirt", "M", 2)
        cart.add_item("judith-tote", None, 1)
        assert cart.to_checkout_items() == [
            {"id": "judith-shirt", "quantity": 2, "size": "M"},
            {"id": "judith-tote", "quantity": 1},
        ]


# ===========================================================================
# Cookie persistence
# ===========================================================================


class TestCartCookie:
    def test_load_missing_cookie(self):
        assert load_cart(_request_with_cookie()).is_empty()

    def test_load_signed_cookie(self):
        value = sign_value([{"id": "judith-tote", "size": None, "quantity": 2}])
        cart = load_cart(_request_with_cookie(value))
        assert cart.lines == [CartLine(id="judith-tote", quantity=2)]

    def test_tampered_cookie_is_ignored(self):
        value = sign_value([{"id": "judith-tote", "quantity": 2}])
        forged = value.replace('"quantity":2', '"quantity":200')
        assert load_cart(_request_with_cookie(forged)).is_empty()

    def test_parse_skips_bad_entries(self):
        lines = _parse_lines(
            [
                "nope",
                {"id": "", "quantity": 1},
                {"id": "judith-tote", "quantity": "x"},
                {"id": "judith-tote", "quantity": -1},
                {"id": "judith-shirt", "size": "M", "quantity": "2"},
            ]
        )
        assert lines == [CartLine(id="judith-shirt", size="M", quantity=2)]

    def test_parse_non_list(self):
        assert _parse_lines({"id": "judith-tote"}) == []

    def test_save_sets_cookie(self):
        response = MagicMock()
        cart = Cart()
        cart.add_item("judith-tote", None, 1)
        save_cart(response, cart)
        kwargs = response.set_cookie.call_args.kwargs
        assert kwargs["key"] == CART_COOKIE_NAME
        assert kwargs["httponly"] is True
        assert load_cart(_request_with_cookie(kwargs["value"])).total_items() == 1

    def test_save_empty_cart_deletes_cookie(self):
        response = MagicMock()
        save_cart(response, Cart())
        response.delete_cookie.assert_called_once_with(key=CART_COOKIE_NAME, path="/")
        response.set_cookie.assert_not_called()


# ===========================================================================
# Validation
# ===========================================================================


class TestValidateCart:
    def test_valid_cart(self, inventory):
        cart = Cart()
        cart.add_item("judith-shirt", "M", 2)
        result = validate_cart(cart, inventory)
        assert result["valid"] is True
        assert result["errors"] == []
        assert result["items"] == [{"id": "judith-shirt", "size": "M", "quantity": 2}]

    def test_unknown_product_dropped(self, inventory):
        cart = Cart(lines=[CartLine(id="mystery", quantity=1)])
        result = validate_cart(cart, inventory)
        assert result["errors"] == ["Product mystery not found"]
        assert result["cart"].is_empty()

    def test_missing_size(self, inventory):
        cart = Cart(lines=[CartLine(id="judith-shirt", quantity=1)])
        result = validate_cart(cart, inventory)
        assert result["errors"] == ["Invalid size none for Judith T-Shirt"]

    def test_size_on_unsized_product(self, inventory):
        cart = Cart(lines=[CartLine(id="judith-tote", size="M", quantity=1)])
        result = validate_cart(cart, inventory)
        assert result["errors"] == ["Judith Tote Bag does not come in sizes"]

    def test_out_of_stock(self, inventory):
        cart = Cart(lines=[CartLine(id="judith-shirt", size="XS", quantity=1)])
        result = validate_cart(cart, inventory)
        assert result["errors"] == ["Judith T-Shirt is out of stock"]
        assert result["valid"] is False

    def test_quantity_capped(self, inventory):
        cart = Cart(lines=[CartLine(id="judith-shirt", size="S", quantity=9)])
        result = validate_cart(cart, inventory)
        assert result["errors"] == ["Only 5 of Judith T-Shirt available"]
        assert result["cart"].lines[0].quantity == 5


class TestDescribeCart:
    def test_rows(self, inventory):
        cart = Cart()
        cart.add_item("judith-shirt", "L", 3)
        (row,) = describe_cart(cart, inventory)
        assert row["title"] == "Judith T-Shirt"
        assert row["line_total"] == 1.5
        assert row["available"] == 20

    def test_available_stock(self, inventory):
        assert available_stock(inventory, "judith-tote", None) == 10
        assert available_stock(inventory, "judith-shirt", "XXXL") == 0
        assert available_stock(inventory, "mystery", None) == 0
