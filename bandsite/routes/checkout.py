"""
Hope & Failure Band Site - Checkout API Routes

JSON endpoints wrapping the Stripe checkout service:
- POST /api/create-checkout-session
- POST /api/process-order
- POST /api/webhook (Stripe)
- POST /api/test-emails (admin)
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from loguru import logger

from bandsite.auth import require_admin
from bandsite.models import CheckoutRequest, ProcessOrderRequest
from bandsite.services import checkout
from bandsite.services.notifications import send_test_email
from bandsite.utils import is_valid_email

router = APIRouter(prefix="/api", tags=["Checkout"])


@router.post("/create-checkout-session")
async def api_create_checkout_session(body: CheckoutRequest):
    if not body.items:
        raise HTTPException(
            status_code=400, detail="Items are required and must be a non-empty array"
        )
    if not is_valid_email(body.customer_email):
        raise HTTPException(status_code=400, detail="Valid customer email is required")

    items = [item.model_dump(include={"id", "size", "quantity"}) for item in body.items]
    try:
        result = await checkout.create_checkout_session(items, body.customer_email)
    except checkout.InvalidCart as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except checkout.CheckoutError as e:
        status = 503 if not checkout.stripe_configured() else 500
        raise HTTPException(status_code=status, detail=str(e)) from e

    return result


@router.post("/process-order")
async def api_process_order(body: ProcessOrderRequest):
    if not body.session_id.strip():
        raise HTTPException(status_code=400, detail="Session ID is required")

    try:
        result = await checkout.process_order(body.session_id.strip())
    except checkout.PaymentNotCompleted as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except checkout.CheckoutError as e:
        status = 503 if not checkout.stripe_configured() else 500
        raise HTTPException(status_code=status, detail=str(e)) from e

    return {
        "success": True,
        "order": result["order"],
        "emailSent": result["emailSent"],
        "alreadyProcessed": result["alreadyProcessed"],
    }


@router.post("/webhook")
async def api_stripe_webhook(request: Request):
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    try:
        result = await checkout.handle_webhook(payload, signature)
    except checkout.InvalidWebhook as e:
        raise HTTPException(status_code=400, detail=f"Webhook Error: {e}") from e
    except checkout.CheckoutError as e:
        logger.error("❌ Webhook processing failed: {}", e)
        raise HTTPException(status_code=500, detail="Webhook processing failed") from e
    return {"received": result["received"]}


@router.post("/test-emails", dependencies=[Depends(require_admin)])
async def api_test_emails():
    return await send_test_email()
