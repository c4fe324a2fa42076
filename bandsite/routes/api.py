"""
Hope & Failure Band Site - JSON API Routes

REST endpoints for the five content resources plus the health check:
- Inventory (read, admin stock update, decrement after purchase)
- Events, videos and lyrics CRUD (reads are public, writes are admin)
- Bio (read, admin update)

Every response uses the ``{"success": true, ...}`` envelope; errors raised
as HTTPException are rendered as ``{"success": false, "error": ...}`` by
the handler installed in main.py.
"""

import time
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from loguru import logger

from bandsite import database
from bandsite.auth import require_admin
from bandsite.config import APP_ENV, APP_VERSION, ONE_SIZE
from bandsite.models import (
    Bio,
    BioUpdate,
    DecrementRequest,
    Event,
    EventCreate,
    EventUpdate,
    InventoryItem,
    InventoryUpdate,
    Song,
    SongCreate,
    SongUpdate,
    Video,
    VideoCreate,
    VideoUpdate,
)
from bandsite.services.checkout import stripe_configured

router = APIRouter(prefix="/api", tags=["API"])

# Track startup time for health check
_START_TIME = time.time()


def _inventory_payload(inventory: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    return {pid: InventoryItem(**item).to_api() for pid, item in inventory.items()}


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
@router.get("/health")
async def health_check():
    """Health check endpoint; 503 when the database does not answer."""
    db_ok = await database.ping()
    checks = {
        "database": "ok" if db_ok else "error",
        "stripe": "configured" if stripe_configured() else "not configured",
    }
    body = {
        "success": db_ok,
        "status": "ok" if db_ok else "error",
        "checks": checks,
        "uptimeSeconds": round(time.time() - _START_TIME, 2),
        "version": APP_VERSION,
        "environment": APP_ENV,
    }
    return JSONResponse(body, status_code=200 if db_ok else 503)


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------
@router.get("/inventory")
async def api_get_inventory():
    inventory = await database.get_inventory()
    return {"success": True, "inventory": _inventory_payload(inventory)}


@router.put("/admin/inventory", dependencies=[Depends(require_admin)])
async def api_update_inventory(body: InventoryUpdate):
    """Set the stock level for one size of a product."""
    if not body.product_id or not body.size or body.quantity is None:
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: productId, size, quantity",
        )

    if not await database.update_inventory(body.product_id, body.size, body.quantity):
        raise HTTPException(status_code=404, detail="Product not found")

    inventory = await database.get_inventory()
    return {"success": True, "inventory": _inventory_payload(inventory)}


@router.post("/inventory/decrement")
async def api_decrement_inventory(body: DecrementRequest):
    """Reduce stock after a purchase; unknown products are skipped."""
    if not body.items:
        raise HTTPException(status_code=400, detail="Items array is required")

    updates = []
    for item in body.items:
        result = await database.decrement_inventory(
            item.id, item.size or ONE_SIZE, item.quantity
        )
        if result:
            updates.append(result)
    logger.info(f"📦 Decremented {len(updates)}/{len(body.items)} inventory lines")
    return {"success": True, "updates": updates}


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------
@router.get("/events")
async def api_get_events():
    events = await database.get_events()
    return {"success": True, "events": [Event(**e).to_api() for e in events]}


@router.post("/admin/events", dependencies=[Depends(require_admin)])
async def api_create_event(body: EventCreate):
    missing = body.missing_fields()
    if missing:
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: title, date, venue, location",
        )
    event = await database.add_event(body.fields())
    return {"success": True, "event": Event(**event).to_api()}


@router.put("/admin/events/{event_id}", dependencies=[Depends(require_admin)])
async def api_update_event(event_id: str, body: EventUpdate):
    event = await database.update_event(event_id, **body.fields())
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return {"success": True, "event": Event(**event).to_api()}


@router.delete("/admin/events/{event_id}", dependencies=[Depends(require_admin)])
async def api_delete_event(event_id: str):
    event = await database.delete_event(event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return {"success": True, "deletedEvent": Event(**event).to_api()}


# ---------------------------------------------------------------------------
# Videos
# ---------------------------------------------------------------------------
@router.get("/videos")
async def api_get_videos():
    videos = await database.get_videos()
    return {"success": True, "videos": [Video(**v).to_api() for v in videos]}


@router.post("/admin/videos", dependencies=[Depends(require_admin)])
async def api_create_video(body: VideoCreate):
    if not body.youtube_id.strip() or not body.title.strip():
        raise HTTPException(
            status_code=400, detail="Missing required fields: youtubeId, title"
        )
    video = await database.add_video(body.fields())
    return {"success": True, "video": Video(**video).to_api()}


@router.put("/admin/videos/{video_id}", dependencies=[Depends(require_admin)])
async def api_update_video(video_id: str, body: VideoUpdate):
    video = await database.update_video(video_id, **body.fields())
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")
    return {"success": True, "video": Video(**video).to_api()}


@router.delete("/admin/videos/{video_id}", dependencies=[Depends(require_admin)])
async def api_delete_video(video_id: str):
    video = await database.delete_video(video_id)
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")
    return {"success": True, "deletedVideo": Video(**video).to_api()}


# ---------------------------------------------------------------------------
# Bio
# ---------------------------------------------------------------------------
@router.get("/bio")
async def api_get_bio():
    bio = await database.get_bio()
    return {"success": True, "bio": Bio(**bio).to_api()}


@router.put("/admin/bio", dependencies=[Depends(require_admin)])
async def api_update_bio(body: BioUpdate):
    bio = await database.update_bio(**body.fields())
    return {"success": True, "bio": Bio(**bio).to_api()}


# ---------------------------------------------------------------------------
# Lyrics
# ---------------------------------------------------------------------------
@router.get("/lyrics")
async def api_get_lyrics():
    songs = await database.get_songs()
    return {"success": True, "lyrics": [Song(**s).to_api() for s in songs]}


@router.post("/admin/lyrics", dependencies=[Depends(require_admin)])
async def api_create_song(body: SongCreate):
    if not body.title.strip():
        raise HTTPException(status_code=400, detail="Missing required field: title")
    song = await database.add_song(body.fields())
    return {"success": True, "song": Song(**song).to_api()}


@router.put("/admin/lyrics/{song_id}", dependencies=[Depends(require_admin)])
async def api_update_song(song_id: str, body: SongUpdate):
    song = await database.update_song(song_id, **body.fields())
    if not song:
        raise HTTPException(status_code=404, detail="Song not found")
    return {"success": True, "song": Song(**song).to_api()}


@router.delete("/admin/lyrics/{song_id}", dependencies=[Depends(require_admin)])
async def api_delete_song(song_id: str):
    song = await database.delete_song(song_id)
    if not song:
        raise HTTPException(status_code=404, detail="Song not found")
    return {"success": True, "deletedSong": Song(**song).to_api()}


# ---------------------------------------------------------------------------
# Admin session check
# ---------------------------------------------------------------------------
@router.post("/admin/verify", dependencies=[Depends(require_admin)])
async def api_verify_admin():
    """Lets a client check a password before showing admin controls."""
    return {"success": True}
