"""
Hope & Failure Band Site - Stripe Checkout Service

Creates Stripe Checkout Sessions from the server-side product map, turns a
paid session into an order (inventory decrement + admin email), and handles
the Stripe webhook.

The stripe library is synchronous, so every API call runs in a worker
thread via ``asyncio.to_thread`` to keep the event loop free.

Order processing is idempotent: the first call for a session records it in
the ``orders`` table, later calls (the success page being reloaded, or the
webhook arriving after the redirect) return the recorded order without
touching stock again.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import stripe
from loguru import logger

from bandsite import database
from bandsite.config import (
    BAND_NAME,
    CLIENT_URL,
    ONE_SIZE,
    PRODUCTS,
    SHIPPING_COUNTRIES,
    SHIPPING_MAX_DAYS,
    SHIPPING_MIN_DAYS,
    STRIPE_CURRENCY,
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
)
from bandsite.models import OrderData
from bandsite.services.notifications import send_admin_email
from bandsite.utils import to_cents

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class CheckoutError(Exception):
    """Stripe is not configured or a Stripe API call failed."""


class PaymentNotCompleted(CheckoutError):
    """The checkout session exists but has not been paid."""


class InvalidCart(CheckoutError):
    """The submitted items cannot be sold (unknown, bad size, no stock)."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


class InvalidWebhook(CheckoutError):
    """The webhook payload or its signature could not be verified."""


# ---------------------------------------------------------------------------
# Product helpers
# ---------------------------------------------------------------------------


def get_item_title(product_id: str) -> str:
    product = PRODUCTS.get(product_id)
    return product["title"] if product else f"Unknown Item ({product_id})"


def get_item_price(product_id: str) -> float:
    product = PRODUCTS.get(product_id)
    return product["price"] if product else 0


def stripe_configured() -> bool:
    return bool(STRIPE_SECRET_KEY)


def _require_stripe() -> None:
    if not stripe_configured():
        raise CheckoutError("Payments are not configured")
    stripe.api_key = STRIPE_SECRET_KEY


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from a Stripe object or a plain dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        value = obj.get(name, default)
    else:
        value = getattr(obj, name, default)
    return default if value is None else value


def _as_dict(obj: Any) -> Optional[Dict[str, Any]]:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return dict(obj)
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return None


def normalize_items(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Reduce client items to ``{id, size?, quantity}`` lines."""
    normalized = []
    for item in items:
        line: Dict[str, Any] = {
            "id": str(item.get("id", "")),
            "quantity": int(item.get("quantity", 0) or 0),
        }
        if item.get("size"):
            line["size"] = str(item["size"])
        normalized.append(line)
    return normalized


def build_line_items(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Build Stripe line items; prices always come from the product map."""
    line_items = []
    for item in items:
        title = get_item_title(item["id"])
        name = f"{title} ({item['size']})" if item.get("size") else title
        line_items.append(
            {
                "price_data": {
                    "currency": STRIPE_CURRENCY,
                    "product_data": {
                        "name": name,
                        "description": f"{BAND_NAME} Merchandise",
                    },
                    "unit_amount": to_cents(get_item_price(item["id"])),
                },
                "quantity": item["quantity"],
            }
        )
    return line_items


def check_stock(
    items: List[Dict[str, Any]], inventory: Dict[str, Dict[str, Any]]
) -> List[str]:
    """
    Basic oversell check before sending the customer to Stripe.

    Quantities of the same product and size are summed so splitting a line
    does not get around the limit.  Returns a list of problems (empty when
    everything can be sold).
    """
    errors: List[str] = []
    wanted: Dict[tuple, int] = {}

    for item in items:
        product_id = item["id"]
        if product_id not in PRODUCTS or product_id not in inventory:
            errors.append(f"Product {product_id} not found")
            continue
        if item["quantity"] <= 0:
            errors.append(f"Invalid quantity for {get_item_title(product_id)}")
            continue
        sizes = inventory[product_id].get("sizes") or []
        size = item.get("size")
        if sizes and size not in sizes:
            errors.append(f"Invalid size {size or 'none'} for {get_item_title(product_id)}")
            continue
        key = (product_id, size or ONE_SIZE)
        wanted[key] = wanted.get(key, 0) + item["quantity"]

    for (product_id, size), quantity in wanted.items():
        stock = int(inventory[product_id].get("inventory", {}).get(size, 0) or 0)
        if quantity > stock:
            label = get_item_title(product_id)
            if size != ONE_SIZE:
                label = f"{label} ({size})"
            if stock <= 0:
                errors.append(f"{label} is out of stock")
            else:
                errors.append(f"Only {stock} of {label} available")

    return errors


# ---------------------------------------------------------------------------
# Checkout session
# ---------------------------------------------------------------------------


async def create_checkout_session(
    items: List[Dict[str, Any]], customer_email: str
) -> Dict[str, str]:
    """
    Create a hosted Stripe Checkout Session for *items*.

    Returns ``{"url", "sessionId"}``.  Raises :class:`InvalidCart` when the
    items fail the stock check and :class:`CheckoutError` when Stripe is
    unavailable.
    """
    _require_stripe()
    items = normalize_items(items)
    if not items:
        raise InvalidCart(["Cart is empty"])

    inventory = await database.get_inventory()
    errors = check_stock(items, inventory)
    if errors:
        raise InvalidCart(errors)

    params = {
        "payment_method_types": ["card"],
        "customer_email": customer_email,
        "line_items": build_line_items(items),
        "mode": "payment",
        "success_url": f"{CLIENT_URL}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{CLIENT_URL}/checkout/cancel",
        "shipping_address_collection": {"allowed_countries": SHIPPING_COUNTRIES},
        "shipping_options": [
            {
                "shipping_rate_data": {
                    "type": "fixed_amount",
                    "fixed_amount": {"amount": 0, "currency": STRIPE_CURRENCY},
                    "display_name": "Free Shipping",
                    "delivery_estimate": {
                        "minimum": {"unit": "business_day", "value": SHIPPING_MIN_DAYS},
                        "maximum": {"unit": "business_day", "value": SHIPPING_MAX_DAYS},
                    },
                }
            }
        ],
        "metadata": {"items": json.dumps(items, separators=(",", ":"))},
    }

    logger.info("🛒 Creating Stripe checkout session ({} line items)", len(items))
    try:
        session = await asyncio.to_thread(stripe.checkout.Session.create, **params)
    except stripe.StripeError as e:
        logger.error("❌ Stripe session creation failed: {}", e)
        raise CheckoutError("Failed to create checkout session") from e

    logger.success("✅ Stripe session created: {}", _field(session, "id"))
    return {"url": _field(session, "url"), "sessionId": _field(session, "id")}


async def get_session_details(session_id: str) -> Any:
    """Retrieve a checkout session and require that it has been paid."""
    _require_stripe()
    logger.info("📋 Retrieving session details: {}", session_id)
    try:
        session = await asyncio.to_thread(stripe.checkout.Session.retrieve, session_id)
    except stripe.StripeError as e:
        logger.error("❌ Failed to retrieve session {}: {}", session_id, e)
        raise CheckoutError("Failed to retrieve checkout session") from e

    if _field(session, "payment_status") != "paid":
        raise PaymentNotCompleted("Payment not completed")
    return session


def _shipping_address(session: Any) -> Optional[Dict[str, Any]]:
    # Newer API versions move shipping details under collected_information
    details = _field(session, "shipping_details") or _field(
        _field(session, "collected_information"), "shipping_details"
    )
    return _as_dict(_field(details, "address"))


def build_order_data(session: Any) -> Dict[str, Any]:
    """Turn a paid checkout session into the order dict (camelCase keys)."""
    metadata = _field(session, "metadata", {})
    try:
        items = json.loads(_field(metadata, "items", "[]"))
    except (TypeError, ValueError):
        logger.warning("⚠️ Session {} has unreadable item metadata", _field(session, "id"))
        items = []

    customer = _field(session, "customer_details")
    total_details = _field(session, "total_details")
    created = _field(session, "created")

    order = OrderData(
        order_id=_field(session, "id"),
        order_date=(
            datetime.fromtimestamp(created, tz=timezone.utc)
            if created
            else datetime.now(timezone.utc)
        ),
        customer_name=_field(customer, "name", "Unknown"),
        customer_email=_field(customer, "email") or _field(session, "customer_email"),
        items=[
            {
                "id": item["id"],
                "size": item.get("size"),
                "quantity": item["quantity"],
                "title": get_item_title(item["id"]),
                "price": get_item_price(item["id"]),
            }
            for item in items
        ],
        subtotal=_field(session, "amount_subtotal", 0) / 100,
        shipping=_field(total_details, "amount_shipping", 0) / 100,
        total=_field(session, "amount_total", 0) / 100,
        shipping_address=_shipping_address(session),
        payment_status=_field(session, "payment_status", ""),
        stripe_session_id=_field(session, "id"),
    )
    return order.to_api()


async def process_order(session_id: str) -> Dict[str, Any]:
    """
    Process a paid checkout session exactly once.

    Returns ``{"order", "emailSent", "alreadyProcessed", "inventory"}``.
    """
    existing = await database.get_order(session_id)
    if existing:
        logger.info("♻️ Order {} already processed", session_id)
        return {"order": existing, "emailSent": False, "alreadyProcessed": True, "inventory": []}

    session = await get_session_details(session_id)
    order = build_order_data(session)

    inventory = await database.fulfil_order(order)
    if inventory is None:
        # Another request recorded the same session in the meantime
        return {
            "order": await database.get_order(session_id) or order,
            "emailSent": False,
            "alreadyProcessed": True,
            "inventory": [],
        }

    email_sent = await send_admin_email(order)

    logger.success(
        "📊 Order processed: {} ({} items, ${:.2f})",
        order["orderId"],
        len(order["items"]),
        order["total"],
    )
    return {"order": order, "emailSent": email_sent, "alreadyProcessed": False, "inventory": inventory}


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------


async def handle_webhook(payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
    """
    Verify and dispatch a Stripe webhook event.

    Without a configured webhook secret the payload is parsed as plain
    JSON, which is only suitable for local development.
    """
    if STRIPE_WEBHOOK_SECRET:
        try:
            event = stripe.Webhook.construct_event(
                payload, signature or "", STRIPE_WEBHOOK_SECRET
            )
        except ValueError as e:
            logger.error("❌ Invalid webhook payload: {}", e)
            raise InvalidWebhook("Invalid payload") from e
        except stripe.SignatureVerificationError as e:
            logger.error("❌ Invalid webhook signature: {}", e)
            raise InvalidWebhook("Invalid signature") from e
    else:
        logger.warning("⚠️ STRIPE_WEBHOOK_SECRET not set; webhook signature not verified")
        try:
            event = json.loads(payload)
        except ValueError as e:
            raise InvalidWebhook("Invalid payload") from e

    event_type = _field(event, "type", "")
    logger.info("🔔 Stripe webhook received: {}", event_type)

    processed = False
    if event_type == "checkout.session.completed":
        session = _field(_field(event, "data"), "object")
        session_id = _field(session, "id")
        if session_id:
            try:
                await process_order(session_id)
                processed = True
            except PaymentNotCompleted:
                logger.info("⏳ Session {} completed but not yet paid", session_id)

    return {"received": True, "type": event_type, "processed": processed}
