"""
Hope & Failure Band Site - Content Loaders

One loader per resource.  Each fetches a single list (or the bio) from the
database and wraps it in a :class:`ResourceState` carrying the loaded and
error flags the page templates render, so a database hiccup shows a
friendly message instead of a 500 page.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from loguru import logger

from bandsite import database


@dataclass
class ResourceState:
    """In-memory snapshot of one resource for a single page render."""

    name: str
    items: List[Dict[str, Any]] = field(default_factory=list)
    loaded: bool = False
    error: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.loaded and not self.items


async def _load(
    name: str, fetch: Callable[[], Awaitable[List[Dict[str, Any]]]]
) -> ResourceState:
    try:
        items = await fetch()
    except Exception as e:
        logger.error("❌ Error loading {}: {}", name, e)
        return ResourceState(name=name, error=f"Failed to load {name}")
    logger.debug("📋 Loaded {} {}", len(items), name)
    return ResourceState(name=name, items=items, loaded=True)


async def load_events() -> ResourceState:
    return await _load("events", database.get_events)


async def load_videos() -> ResourceState:
    return await _load("videos", database.get_videos)


async def load_lyrics() -> ResourceState:
    return await _load("lyrics", database.get_songs)


async def load_inventory() -> ResourceState:
    async def fetch() -> List[Dict[str, Any]]:
        return list((await database.get_inventory()).values())

    return await _load("inventory", fetch)


async def load_bio() -> ResourceState:
    """The bio is a single record, exposed as a one-item list."""

    async def fetch() -> List[Dict[str, Any]]:
        return [await database.get_bio()]

    return await _load("bio", fetch)


def split_events(
    events: List[Dict[str, Any]],
) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """
    Split events into (upcoming, past).

    Upcoming shows are returned soonest first; past shows keep the
    newest-first order the database returns.
    """
    upcoming = [e for e in events if not e.get("is_past")]
    past = [e for e in events if e.get("is_past")]
    upcoming.sort(key=lambda e: (e.get("date", ""), e.get("time", "")))
    return upcoming, past
