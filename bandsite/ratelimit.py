"""
Hope & Failure Band Site - Rate Limiting

Fixed-window, in-memory request counters keyed by client address.  One
limiter guards all ``/api`` traffic; a stricter one counts failed admin
password attempts.  State is per process, which is all a single-container
site needs.
"""

import threading
import time
from typing import Dict, Optional, Tuple

from bandsite.config import TRUSTED_PROXIES

LOCAL_ADDRESSES = {"127.0.0.1", "::1", "::ffff:127.0.0.1", "localhost"}


class RateLimiter:
    """Allow at most *max_requests* hits per *window* seconds per key."""

    def __init__(self, max_requests: int, window: float, enabled: bool = True):
        self.max_requests = max_requests
        self.window = window
        self.enabled = enabled
        self._hits: Dict[str, Tuple[float, int]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._hits)

    def _cleanup(self, now: float) -> None:
        expired = [k for k, (started, _) in self._hits.items() if now - started >= self.window]
        for key in expired:
            del self._hits[key]

    def _current(self, key: str, now: float) -> Tuple[float, int]:
        started, count = self._hits.get(key, (now, 0))
        if now - started >= self.window:
            return now, 0
        return started, count

    def hit(self, key: str, now: Optional[float] = None) -> bool:
        """Record a hit for *key*; return False once the limit is exceeded."""
        if not self.enabled:
            return True
        now = time.time() if now is None else now
        with self._lock:
            self._cleanup(now)
            started, count = self._current(key, now)
            count += 1
            self._hits[key] = (started, count)
            return count <= self.max_requests

    def is_blocked(self, key: str, now: Optional[float] = None) -> bool:
        """Return True if *key* has used up its allowance without recording."""
        if not self.enabled:
            return False
        now = time.time() if now is None else now
        with self._lock:
            self._cleanup(now)
            _, count = self._current(key, now)
            return count >= self.max_requests

    def retry_after(self, key: str, now: Optional[float] = None) -> int:
        """Seconds until the window for *key* resets."""
        now = time.time() if now is None else now
        with self._lock:
            started, _ = self._current(key, now)
        return max(0, int(self.window - (now - started)))

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)


def client_key(request) -> str:
    """Return the client address used as the limiter key.

    X-Forwarded-For is only read when the direct peer is a trusted proxy.
    The header is walked right to left and the first hop that is not
    itself a trusted proxy is the client.
    """
    peer = request.client.host if request.client else "unknown"
    if peer not in TRUSTED_PROXIES:
        return peer

    forwarded = request.headers.get("x-forwarded-for", "")
    hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
    for hop in reversed(hops):
        if hop not in TRUSTED_PROXIES:
            return hop
    return peer
