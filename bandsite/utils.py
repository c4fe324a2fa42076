"""
Hope & Failure Band Site - Shared Utilities

Common helpers used across multiple modules to avoid duplication.
"""

import json
import re
from datetime import date
from typing import Any, Dict, List, Optional

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
YOUTUBE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{6,20}$")


def parse_json_field(raw: Any, default: Any) -> Any:
    """
    Safely parse a JSON column that may be a string or already decoded.

    Returns *default* when the value is missing or cannot be parsed.
    """
    if raw is None:
        return default
    if isinstance(raw, (dict, list)):
        return raw
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return default
    return default


def is_past_date(value: str, today: Optional[date] = None) -> bool:
    """
    Return True when an ISO ``YYYY-MM-DD`` date lies strictly before today.

    Unparseable dates are treated as upcoming so they stay visible.
    """
    try:
        event_day = date.fromisoformat((value or "").strip()[:10])
    except ValueError:
        return False
    return event_day < (today or date.today())


def is_valid_email(value: str) -> bool:
    return bool(value) and bool(EMAIL_RE.match(value.strip()))


def sanitize_input(value: str) -> str:
    """Strip angle brackets from user supplied text."""
    return (value or "").replace("<", "").replace(">", "")


def split_lines(text: str) -> List[str]:
    """Split a textarea value into non-empty, stripped lines."""
    return [line.strip() for line in (text or "").splitlines() if line.strip()]


def split_paragraphs(text: str) -> List[str]:
    """Split a textarea value into paragraphs separated by blank lines."""
    paragraphs = re.split(r"\n\s*\n", (text or "").replace("\r\n", "\n"))
    return [" ".join(p.split()) for p in paragraphs if p.strip()]


def format_money(amount: float) -> str:
    return f"${amount:,.2f}"


def to_cents(amount: float) -> int:
    return int(round(float(amount) * 100))


def dump_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def parse_photo_credits(text: str) -> List[Dict[str, str]]:
    """
    Parse photography credits from ``Name | instagram`` lines.

    The profile URL is derived from the Instagram handle.
    """
    credits = []
    for line in split_lines(text):
        name, _, handle = line.partition("|")
        handle = handle.strip().lstrip("@")
        credits.append(
            {
                "name": name.strip(),
                "instagram": handle,
                "url": f"https://instagram.com/{handle}" if handle else "",
            }
        )
    return credits


_YOUTUBE_URL_RE = re.compile(
    r"(?:youtube\.com/(?:watch\?(?:.*&)?v=|embed/|shorts/)|youtu\.be/)([A-Za-z0-9_-]{6,20})"
)


def extract_youtube_id(value: str) -> Optional[str]:
    """Accept a bare video id or a YouTube URL; None if neither."""
    value = (value or "").strip()
    if YOUTUBE_ID_RE.match(value):
        return value
    match = _YOUTUBE_URL_RE.search(value)
    return match.group(1) if match else None
