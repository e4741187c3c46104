"""In-memory rate limiter guarding the credential endpoints.

Login and code verification are the two places where an attacker can
guess secrets, so both are throttled per client address and path.
"""

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque


class InMemoryRateLimiter:
    """Sliding-window limiter keyed by an arbitrary string."""

    def __init__(self):
        self._hits = defaultdict(deque)
        self._lock = threading.Lock()

    def allow(self, key: str, max_requests: int, window_seconds: int) -> tuple[bool, int]:
        """Record a hit for `key` and say whether it is within the limit.

        Returns `(allowed, retry_after_seconds)`; rejected hits are not
        recorded so the window drains at its natural pace.
        """
        now = time.monotonic()
        with self._lock:
            hits = self._hits[key]
            cutoff = now - window_seconds
            while hits and hits[0] < cutoff:
                hits.popleft()
            if len(hits) >= max_requests:
                return False, max(1, int(window_seconds - (now - hits[0])))
            hits.append(now)
        return True, 0

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)


def client_key(host: str | None, path: str) -> str:
    return f"{host or 'unknown'}:{path}"
