"""Fixed-window request rate limiting keyed by host and client address."""

from __future__ import annotations

import secrets
import string
import threading
import time
from collections.abc import Callable

_MAX_ENTRIES = 10000
_ALPHANUMERIC = string.ascii_letters + string.digits


class RateLimiter:
    """Counts requests per (host, ip) in fixed windows of whole seconds."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._store: dict[tuple[str, str], tuple[int, int]] = {}

    def check(self, host: str, ip: str, limit_reqs: int, window_sec: int) -> bool:
        """Record a request and return whether it is allowed."""
        if limit_reqs == 0:
            return False
        if window_sec == 0:
            return True
        current = int(self._clock()) // window_sec
        with self._lock:
            if len(self._store) > _MAX_ENTRIES:
                floor = max(current - 1, 0)
                self._store = {k: v for k, v in self._store.items() if v[0] >= floor}
            key = (host, ip)
            window, count = self._store.get(key, (current, 0))
            if window != current:
                self._store[key] = (current, 1)
                return True
            if count < limit_reqs:
                self._store[key] = (window, count + 1)
                return True
            self._store[key] = (window, count)
            return False


_limiter: RateLimiter | None = None
_limiter_lock = threading.Lock()


def get_limiter() -> RateLimiter:
    """Return the process-wide limiter, creating it on first use."""
    global _limiter
    with _limiter_lock:
        if _limiter is None:
            _limiter = RateLimiter()
        return _limiter


def random_string(limit: int) -> str:
    """Return a random alphanumeric string of the given length."""
    return "".join(secrets.choice(_ALPHANUMERIC) for _ in range(limit))