from __future__ import annotations

import time
from threading import Lock
from typing import Callable, Protocol

from .errors import RateLimited


class RateLimiter(Protocol):
    def hit(self, key: str) -> None: ...


class NoopRateLimiter:
    def hit(self, key: str) -> None:
        return None


class FixedWindowRateLimiter:
    """At most ``limit`` hits per key in each ``window``-second window.

    Process-local; multi-worker deployments put a shared limiter in front
    instead.
    """

    def __init__(self, limit: int, window: int = 60, clock: Callable[[], float] = time.monotonic) -> None:
        self.limit = limit
        self.window = window
        self.clock = clock
        self._bucket: int | None = None
        self._hits: dict[str, int] = {}
        self._lock = Lock()

    def hit(self, key: str) -> None:
        now = self.clock()
        bucket = int(now // self.window)
        with self._lock:
            if bucket != self._bucket:
                # only the current window is kept
                self._bucket = bucket
                self._hits.clear()
            count = self._hits.get(key, 0)
            if count >= self.limit:
                reset = int((bucket + 1) * self.window - now) + 1
                raise RateLimited(retry_after=reset)
            self._hits[key] = count + 1
