"""
Hope & Failure Band Site - Order Notifications

Sends the "new order" email to the band through the EmailJS REST API.

Sending is best-effort: a missing configuration or a failed request is
logged and reported as False, never raised, so a paid order is always
processed even when the email cannot go out.
"""

import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from bandsite.config import (
    ADMIN_EMAIL,
    BAND_NAME,
    EMAILJS_API_URL,
    EMAILJS_PRIVATE_KEY,
    EMAILJS_PUBLIC_KEY,
    EMAILJS_SERVICE_ID,
    EMAILJS_TEMPLATE_ID,
)

_TIMEOUT = 15.0


def email_configured() -> bool:
    return bool(EMAILJS_SERVICE_ID and EMAILJS_TEMPLATE_ID and EMAILJS_PUBLIC_KEY)


def format_items(items: List[Dict[str, Any]]) -> str:
    lines = []
    for item in items:
        size = f" ({item['size']})" if item.get("size") else ""
        total = float(item.get("price", 0)) * int(item.get("quantity", 0))
        lines.append(
            f"• {item.get('title', item.get('id', ''))}{size} - "
            f"Qty: {item.get('quantity', 0)} - ${total:.2f}"
        )
    return "\n".join(lines)


def format_shipping_address(address: Optional[Dict[str, Any]]) -> str:
    if not address:
        return "No shipping address provided"

    line2 = f"{address['line2']}\n" if address.get("line2") else ""
    return (
        f"{address.get('line1', '')}\n{line2}"
        f"{address.get('city', '')}, {address.get('state', '')} "
        f"{address.get('postal_code', '')}\n{address.get('country', '')}"
    )


def _format_order_date(value: Any) -> str:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    if isinstance(value, datetime):
        return value.strftime("%A, %B %d, %Y %I:%M %p")
    return str(value or "")


def build_admin_email_params(order: Dict[str, Any]) -> Dict[str, Any]:
    """Template parameters for the admin notification email."""
    items = order.get("items", [])
    return {
        "email_type": "admin",
        "to_email": ADMIN_EMAIL,
        "reply_to": order.get("customerEmail") or "",
        "subject": f"New Order #{order.get('orderId', '')}",
        "greeting": f"Hello {BAND_NAME} Team,",
        "message_intro": "You have received a new order! Here are the details:",
        "customer_name": order.get("customerName", "Unknown"),
        "customer_email": order.get("customerEmail") or "",
        "order_id": order.get("orderId", ""),
        "order_date": _format_order_date(order.get("orderDate")),
        "order_total": f"{float(order.get('total', 0)):.2f}",
        "order_items": format_items(items),
        "item_count": len(items),
        "shipping_address": format_shipping_address(order.get("shippingAddress")),
        "closing_message": (
            "Please process this order and prepare for shipping. "
            "The customer will receive a separate confirmation email."
        ),
        "sign_off": f"Best regards,<br>{BAND_NAME} Order System",
    }


async def send_admin_email(order: Dict[str, Any]) -> bool:
    """Send the new-order email.  Returns True on success."""
    if not email_configured():
        logger.warning("⚠️ EmailJS not configured; skipping order email")
        return False

    payload = {
        "service_id": EMAILJS_SERVICE_ID,
        "template_id": EMAILJS_TEMPLATE_ID,
        "user_id": EMAILJS_PUBLIC_KEY,
        "template_params": build_admin_email_params(order),
    }
    if EMAILJS_PRIVATE_KEY:
        payload["accessToken"] = EMAILJS_PRIVATE_KEY

    logger.info("📧 Sending admin notification email for {}", order.get("orderId"))
    try:
        async with httpx.AsyncClient(timeout=_TIMEOUT) as client:
            resp = await client.post(EMAILJS_API_URL, json=payload)
            resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.error(
            "❌ EmailJS rejected the order email: {} {}",
            e.response.status_code,
            e.response.text,
        )
        return False
    except httpx.HTTPError as e:
        logger.error("❌ Failed to send admin notification email: {}", e)
        return False

    logger.success("✅ Admin notification email sent")
    return True


def sample_order() -> Dict[str, Any]:
    return {
        "orderId": f"TEST_{int(time.time() * 1000)}",
        "orderDate": datetime.now().isoformat(),
        "customerName": "Test Customer",
        "customerEmail": "test@example.com",
        "subtotal": 1.0,
        "shipping": 0,
        "total": 1.0,
        "items": [
            {"id": "judith-shirt", "title": "Judith T-Shirt", "size": "M", "quantity": 1, "price": 0.5},
            {"id": "judith-tote", "title": "Judith Tote Bag", "quantity": 1, "price": 0.5},
        ],
        "shippingAddress": {
            "line1": "123 Test St",
            "city": "Portland",
            "state": "OR",
            "postal_code": "97202",
            "country": "US",
        },
    }


async def send_test_email() -> Dict[str, Any]:
    logger.info("🧪 Testing email service...")
    sent = await send_admin_email(sample_order())
    return {"success": True, "adminEmail": sent}
