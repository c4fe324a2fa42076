"""
Hope & Failure Band Site - Admin Panel Routes

Server-rendered admin panel behind the password gate.  The middleware in
main.py redirects anonymous visitors to ``/admin/login``; every handler
here can therefore assume a valid admin session.

Forms post back to these routes, which write through the database layer
and redirect with a short flash message in the ``msg`` query parameter.
"""

from typing import Any, Dict, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Form, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from loguru import logger

from bandsite import database
from bandsite.auth import (
    check_login_attempt,
    clear_session_cookie,
    is_admin,
    render_login_page,
    set_session_cookie,
)
from bandsite.config import APP_VERSION, BAND_NAME, PRODUCTS
from bandsite.services.notifications import email_configured, send_test_email
from bandsite.utils import (
    extract_youtube_id,
    parse_photo_credits,
    sanitize_input,
    split_lines,
    split_paragraphs,
)

router = APIRouter(prefix="/admin", tags=["Admin"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _redirect(path: str, msg: str = "", error: bool = False) -> RedirectResponse:
    url = path
    if msg:
        url += "?" + urlencode({"msg": msg, "level": "error" if error else "ok"})
    return RedirectResponse(url=url, status_code=303)


def _render(request: Request, template: str, page_title: str, **extra: Any):
    context: Dict[str, Any] = {
        "page_title": page_title,
        "band_name": BAND_NAME,
        "version": APP_VERSION,
        "message": request.query_params.get("msg"),
        "message_level": request.query_params.get("level", "ok"),
    }
    context.update(extra)
    return request.app.state.templates.TemplateResponse(request, template, context)


def _clean(value: str) -> str:
    return sanitize_input(value).strip()


def _parse_order(value: str) -> Optional[int]:
    value = (value or "").strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Login / logout
# ---------------------------------------------------------------------------
@router.get("/login")
async def login_page(request: Request):
    if is_admin(request):
        return RedirectResponse(url="/admin", status_code=302)
    return render_login_page()


@router.post("/login")
async def login_post(request: Request, password: str = Form("")):
    try:
        ok = check_login_attempt(request, password)
    except HTTPException as e:
        return render_login_page(error=e.detail, status_code=e.status_code)

    if not ok:
        return render_login_page(error="Invalid password", status_code=401)

    logger.info("🔓 Admin logged in")
    response = RedirectResponse(url="/admin", status_code=303)
    set_session_cookie(response)
    return response


@router.get("/logout")
async def logout(request: Request):
    if is_admin(request):
        logger.info("🔒 Admin logged out")
    response = RedirectResponse(url="/admin/login", status_code=302)
    clear_session_cookie(response)
    return response


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------
@router.get("", response_class=HTMLResponse)
async def dashboard(request: Request):
    counts = {
        table: await database.count_rows(table)
        for table in ("events", "videos", "lyrics", "orders")
    }
    inventory = await database.get_inventory()
    low_stock = [
        {"title": item["title"], "size": size, "stock": stock}
        for item in inventory.values()
        for size, stock in item.get("inventory", {}).items()
        if stock <= 2
    ]
    return _render(
        request,
        "admin/dashboard.html",
        "Dashboard",
        counts=counts,
        low_stock=low_stock,
        email_configured=email_configured(),
    )


@router.post("/test-email")
async def test_email():
    result = await send_test_email()
    if result.get("adminEmail"):
        return _redirect("/admin", "Test email sent")
    return _redirect("/admin", "Test email could not be sent", error=True)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------
@router.get("/events", response_class=HTMLResponse)
async def events_page(request: Request, edit: Optional[str] = Query(None)):
    events = await database.get_events()
    editing = await database.get_event(edit) if edit else None
    return _render(request, "admin/events.html", "Events", events=events, editing=editing)


def _event_fields(title, date, time, venue, location, description, ticket_link) -> Dict[str, str]:
    return {
        "title": _clean(title),
        "date": date.strip(),
        "time": _clean(time),
        "venue": _clean(venue),
        "location": _clean(location),
        "description": _clean(description),
        "ticket_link": ticket_link.strip(),
    }


@router.post("/events")
async def create_event(
    title: str = Form(""),
    date: str = Form(""),
    time: str = Form(""),
    venue: str = Form(""),
    location: str = Form(""),
    description: str = Form(""),
    ticket_link: str = Form(""),
):
    data = _event_fields(title, date, time, venue, location, description, ticket_link)
    if not all(data[k] for k in ("title", "date", "venue", "location")):
        return _redirect("/admin/events", "Title, date, venue and location are required", error=True)
    event = await database.add_event(data)
    return _redirect("/admin/events", f"Event added: {event['title']}")


@router.post("/events/{event_id}")
async def update_event(
    event_id: str,
    title: str = Form(""),
    date: str = Form(""),
    time: str = Form(""),
    venue: str = Form(""),
    location: str = Form(""),
    description: str = Form(""),
    ticket_link: str = Form(""),
):
    data = _event_fields(title, date, time, venue, location, description, ticket_link)
    if not all(data[k] for k in ("title", "date", "venue", "location")):
        return _redirect(
            f"/admin/events?edit={event_id}",
            "Title, date, venue and location are required",
            error=True,
        )
    event = await database.update_event(event_id, **data)
    if not event:
        return _redirect("/admin/events", "Event not found", error=True)
    return _redirect("/admin/events", f"Event updated: {event['title']}")


@router.post("/events/{event_id}/delete")
async def delete_event(event_id: str):
    event = await database.delete_event(event_id)
    if not event:
        return _redirect("/admin/events", "Event not found", error=True)
    return _redirect("/admin/events", f"Event deleted: {event['title']}")


# ---------------------------------------------------------------------------
# Videos
# ---------------------------------------------------------------------------
@router.get("/videos", response_class=HTMLResponse)
async def videos_page(request: Request, edit: Optional[str] = Query(None)):
    videos = await database.get_videos()
    editing = await database.get_video(edit) if edit else None
    return _render(request, "admin/videos.html", "Videos", videos=videos, editing=editing)


@router.post("/videos")
async def create_video(
    youtube_id: str = Form(""),
    title: str = Form(""),
    description: str = Form(""),
    order: str = Form(""),
):
    video_id = extract_youtube_id(youtube_id)
    if not video_id or not _clean(title):
        return _redirect("/admin/videos", "A valid YouTube id and a title are required", error=True)
    video = await database.add_video(
        {
            "youtube_id": video_id,
            "title": _clean(title),
            "description": _clean(description),
            "order": _parse_order(order),
        }
    )
    return _redirect("/admin/videos", f"Video added: {video['title']}")


@router.post("/videos/{video_id}")
async def update_video(
    video_id: str,
    youtube_id: str = Form(""),
    title: str = Form(""),
    description: str = Form(""),
    order: str = Form(""),
):
    yt_id = extract_youtube_id(youtube_id)
    if not yt_id or not _clean(title):
        return _redirect(
            f"/admin/videos?edit={video_id}",
            "A valid YouTube id and a title are required",
            error=True,
        )
    fields: Dict[str, Any] = {
        "youtube_id": yt_id,
        "title": _clean(title),
        "description": _clean(description),
    }
    if _parse_order(order) is not None:
        fields["order"] = _parse_order(order)
    video = await database.update_video(video_id, **fields)
    if not video:
        return _redirect("/admin/videos", "Video not found", error=True)
    return _redirect("/admin/videos", f"Video updated: {video['title']}")


@router.post("/videos/{video_id}/delete")
async def delete_video(video_id: str):
    video = await database.delete_video(video_id)
    if not video:
        return _redirect("/admin/videos", "Video not found", error=True)
    return _redirect("/admin/videos", f"Video deleted: {video['title']}")


# ---------------------------------------------------------------------------
# Lyrics
# ---------------------------------------------------------------------------
@router.get("/lyrics", response_class=HTMLResponse)
async def lyrics_page(request: Request, edit: Optional[str] = Query(None)):
    songs = await database.get_songs()
    editing = await database.get_song(edit) if edit else None
    return _render(request, "admin/lyrics.html", "Lyrics", songs=songs, editing=editing)


@router.post("/lyrics")
async def create_song(
    title: str = Form(""),
    lyrics: str = Form(""),
    order: str = Form(""),
    is_instrumental: bool = Form(False),
):
    if not _clean(title):
        return _redirect("/admin/lyrics", "Title is required", error=True)
    song = await database.add_song(
        {
            "title": _clean(title),
            "lyrics": "" if is_instrumental else lyrics.strip(),
            "order": _parse_order(order),
            "is_instrumental": is_instrumental,
        }
    )
    return _redirect("/admin/lyrics", f"Song added: {song['title']}")


@router.post("/lyrics/{song_id}")
async def update_song(
    song_id: str,
    title: str = Form(""),
    lyrics: str = Form(""),
    order: str = Form(""),
    is_instrumental: bool = Form(False),
):
    if not _clean(title):
        return _redirect(f"/admin/lyrics?edit={song_id}", "Title is required", error=True)
    fields: Dict[str, Any] = {
        "title": _clean(title),
        "lyrics": "" if is_instrumental else lyrics.strip(),
        "is_instrumental": is_instrumental,
    }
    if _parse_order(order) is not None:
        fields["order"] = _parse_order(order)
    song = await database.update_song(song_id, **fields)
    if not song:
        return _redirect("/admin/lyrics", "Song not found", error=True)
    return _redirect("/admin/lyrics", f"Song updated: {song['title']}")


@router.post("/lyrics/{song_id}/delete")
async def delete_song(song_id: str):
    song = await database.delete_song(song_id)
    if not song:
        return _redirect("/admin/lyrics", "Song not found", error=True)
    return _redirect("/admin/lyrics", f"Song deleted: {song['title']}")


# ---------------------------------------------------------------------------
# Bio
# ---------------------------------------------------------------------------
@router.get("/bio", response_class=HTMLResponse)
async def bio_page(request: Request):
    bio = await database.get_bio()
    photo_lines = "\n".join(
        f"{c.get('name', '')} | {c.get('instagram', '')}" for c in bio.get("photography", [])
    )
    return _render(
        request,
        "admin/bio.html",
        "Bio",
        bio=bio,
        main_text="\n\n".join(bio.get("main_text", [])),
        past_members="\n".join(bio.get("past_members", [])),
        photography=photo_lines,
    )


@router.post("/bio")
async def update_bio(
    main_text: str = Form(""),
    band_image: str = Form(""),
    past_members: str = Form(""),
    photography: str = Form(""),
):
    paragraphs = split_paragraphs(sanitize_input(main_text))
    if not paragraphs:
        return _redirect("/admin/bio", "The bio needs at least one paragraph", error=True)
    await database.update_bio(
        main_text=paragraphs,
        band_image=band_image.strip(),
        past_members=split_lines(sanitize_input(past_members)),
        photography=parse_photo_credits(sanitize_input(photography)),
    )
    return _redirect("/admin/bio", "Bio updated")


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------
@router.get("/inventory", response_class=HTMLResponse)
async def inventory_page(request: Request):
    inventory = await database.get_inventory()
    return _render(
        request,
        "admin/inventory.html",
        "Inventory",
        inventory=inventory,
        products=PRODUCTS,
    )


@router.post("/inventory")
async def update_stock(
    product_id: str = Form(...),
    size: str = Form(...),
    quantity: int = Form(...),
):
    if quantity < 0:
        return _redirect("/admin/inventory", "Quantity cannot be negative", error=True)
    if not await database.update_inventory(product_id, size, quantity):
        return _redirect("/admin/inventory", "Product not found", error=True)
    return _redirect("/admin/inventory", f"Stock updated: {product_id} ({size}) = {quantity}")
