"""
Hope & Failure Band Site - Page Routes

Serves the public site with Jinja2 templates: home, bio, music, videos,
lyrics, the merch shop with its cookie cart, the checkout hand-off to
Stripe and the contact page.

Each page pulls its data through the content loaders, so a database error
renders an inline message rather than failing the whole request.
"""

from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Form, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from loguru import logger

from bandsite import database
from bandsite.auth import is_admin
from bandsite.config import APP_VERSION, BAND_NAME, CONTACT_EMAIL
from bandsite.services import checkout
from bandsite.services.cart import (
    available_stock,
    clear_cart_cookie,
    describe_cart,
    load_cart,
    save_cart,
    validate_cart,
)
from bandsite.services.content import (
    load_bio,
    load_events,
    load_inventory,
    load_lyrics,
    load_videos,
    split_events,
)
from bandsite.utils import format_money, is_valid_email

router = APIRouter(tags=["Pages"])

# Number of upcoming shows on the home page
HOME_SHOW_COUNT = 3

MUSIC_TRACKS = [
    {
        "title": "Mirror Altar - Live Acoustic Set - July 2023",
        "duration": "4:45",
        "src": "/static/music/Mirror Altar.wav",
    },
    {
        "title": "Hell and Back - Live Acoustic Set - July 2023",
        "duration": "6:04",
        "src": "/static/music/Hell and Back.wav",
    },
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _context(request: Request, page_title: str, **extra: Any) -> Dict[str, Any]:
    """Base template context shared by every public page."""
    cart = load_cart(request)
    context = {
        "page_title": page_title,
        "band_name": BAND_NAME,
        "contact_email": CONTACT_EMAIL,
        "cart_count": cart.total_items(),
        "is_admin": is_admin(request),
        "version": APP_VERSION,
        "year": date.today().year,
        "format_money": format_money,
    }
    context.update(extra)
    return context


def _render(request: Request, template: str, context: Dict[str, Any], status_code: int = 200):
    return request.app.state.templates.TemplateResponse(
        request, template, context, status_code=status_code
    )


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=303)


# ---------------------------------------------------------------------------
# Content pages
# ---------------------------------------------------------------------------
@router.get("/", response_class=HTMLResponse)
async def home(request: Request):
    """Landing page: next shows and the latest video."""
    events = await load_events()
    videos = await load_videos()
    upcoming, _ = split_events(events.items)

    context = _context(
        request,
        "Home",
        events=events,
        upcoming=upcoming[:HOME_SHOW_COUNT],
        videos=videos,
        latest_video=videos.items[0] if videos.items else None,
    )
    return _render(request, "home.html", context)


@router.get("/shows", response_class=HTMLResponse)
async def shows_page(request: Request):
    events = await load_events()
    upcoming, past = split_events(events.items)
    context = _context(request, "Shows", events=events, upcoming=upcoming, past=past)
    return _render(request, "shows.html", context)


@router.get("/bio", response_class=HTMLResponse)
async def bio_page(request: Request):
    bio = await load_bio()
    context = _context(
        request,
        "Bio",
        bio_state=bio,
        bio=bio.items[0] if bio.items else None,
    )
    return _render(request, "bio.html", context)


@router.get("/music", response_class=HTMLResponse)
async def music_page(request: Request):
    context = _context(request, "Music", tracks=MUSIC_TRACKS)
    return _render(request, "music.html", context)


@router.get("/videos", response_class=HTMLResponse)
async def videos_page(request: Request):
    videos = await load_videos()
    context = _context(request, "Videos", videos=videos)
    return _render(request, "videos.html", context)


@router.get("/lyrics", response_class=HTMLResponse)
async def lyrics_page(request: Request):
    songs = await load_lyrics()
    context = _context(request, "Lyrics", songs=songs)
    return _render(request, "lyrics.html", context)


@router.get("/contact", response_class=HTMLResponse)
async def contact_page(request: Request):
    return _render(request, "contact.html", _context(request, "Contact"))


# ---------------------------------------------------------------------------
# Shop & cart
# ---------------------------------------------------------------------------
@router.get("/shop", response_class=HTMLResponse)
async def shop_page(request: Request, msg: Optional[str] = Query(None)):
    inventory = await load_inventory()
    context = _context(request, "Shop", inventory=inventory, message=msg)
    return _render(request, "shop.html", context)


@router.get("/cart", response_class=HTMLResponse)
async def cart_page(request: Request, msg: Optional[str] = Query(None)):
    cart = load_cart(request)
    inventory = await database.get_inventory()
    context = _context(
        request,
        "Cart",
        rows=describe_cart(cart, inventory),
        subtotal=cart.subtotal(),
        message=msg,
    )
    return _render(request, "cart.html", context)


@router.post("/cart/add")
async def cart_add(
    request: Request,
    product_id: str = Form(...),
    size: str = Form(""),
    quantity: int = Form(1),
):
    inventory = await database.get_inventory()
    item = inventory.get(product_id)
    if not item:
        return _redirect("/shop?msg=Product+not+found")
    if item.get("sizes") and size not in item["sizes"]:
        return _redirect("/shop?msg=Please+choose+a+size")

    cart = load_cart(request)
    stock = available_stock(inventory, product_id, size or None)
    added = cart.add_item(product_id, size or None, quantity, available=stock)

    response = _redirect("/cart" if added else "/shop?msg=Not+enough+stock")
    save_cart(response, cart)
    if added:
        logger.debug(f"🛒 Added {quantity} x {product_id} ({size or 'one-size'}) to cart")
    return response


@router.post("/cart/update")
async def cart_update(
    request: Request,
    product_id: str = Form(...),
    size: str = Form(""),
    quantity: int = Form(...),
):
    inventory = await database.get_inventory()
    cart = load_cart(request)
    stock = available_stock(inventory, product_id, size or None)
    cart.update_quantity(product_id, size or None, min(quantity, stock))

    msg = "" if quantity <= stock else "?msg=Quantity+limited+to+available+stock"
    response = _redirect(f"/cart{msg}")
    save_cart(response, cart)
    return response


@router.post("/cart/remove")
async def cart_remove(
    request: Request,
    product_id: str = Form(...),
    size: str = Form(""),
):
    cart = load_cart(request)
    cart.remove_item(product_id, size or None)
    response = _redirect("/cart")
    save_cart(response, cart)
    return response


@router.post("/cart/clear")
async def cart_clear(request: Request):
    response = _redirect("/cart")
    clear_cart_cookie(response)
    return response


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
@router.get("/checkout", response_class=HTMLResponse)
async def checkout_page(request: Request):
    cart = load_cart(request)
    if cart.is_empty():
        return _redirect("/cart")
    inventory = await database.get_inventory()
    context = _context(
        request,
        "Checkout",
        rows=describe_cart(cart, inventory),
        subtotal=cart.subtotal(),
        errors=[],
        email="",
    )
    return _render(request, "checkout.html", context)


@router.post("/checkout")
async def checkout_submit(request: Request, email: str = Form("")):
    """Validate the cart, create a Stripe session and redirect to it."""
    cart = load_cart(request)
    if cart.is_empty():
        return _redirect("/cart")

    inventory = await database.get_inventory()
    validation = validate_cart(cart, inventory)
    errors = list(validation["errors"])
    if not is_valid_email(email):
        errors.append("Please enter a valid email address")

    if errors:
        fixed = validation["cart"]
        context = _context(
            request,
            "Checkout",
            rows=describe_cart(fixed, inventory),
            subtotal=fixed.subtotal(),
            errors=errors,
            email=email,
        )
        response = _render(request, "checkout.html", context, status_code=400)
        save_cart(response, fixed)
        return response

    try:
        session = await checkout.create_checkout_session(cart.to_checkout_items(), email)
    except checkout.InvalidCart as e:
        errors = e.errors
        status_code = 400
    except checkout.CheckoutError as e:
        errors = [str(e)]
        status_code = 503
    else:
        return _redirect(session["url"])

    context = _context(
        request,
        "Checkout",
        rows=describe_cart(cart, inventory),
        subtotal=cart.subtotal(),
        errors=errors,
        email=email,
    )
    return _render(request, "checkout.html", context, status_code=status_code)


@router.get("/checkout/success", response_class=HTMLResponse)
async def checkout_success(request: Request, session_id: str = Query("")):
    """Process the paid order once and clear the cart."""
    order = None
    error = None
    if not session_id:
        error = "No order session found."
    else:
        try:
            result = await checkout.process_order(session_id)
            order = result["order"]
        except checkout.PaymentNotCompleted:
            error = "Your payment has not been completed yet."
        except checkout.CheckoutError as e:
            logger.error(f"❌ Could not process order {session_id}: {e}")
            error = "We could not confirm your order. Please contact us."

    context = _context(request, "Thank You", order=order, error=error)
    context["cart_count"] = 0 if order else context["cart_count"]
    response = _render(request, "success.html", context)
    if order:
        clear_cart_cookie(response)
    return response


@router.get("/checkout/cancel", response_class=HTMLResponse)
async def checkout_cancel(request: Request):
    return _render(request, "cancel.html", _context(request, "Checkout Cancelled"))
