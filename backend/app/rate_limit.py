"""
Rate limiting for auth endpoints.

Uses an in-memory sliding-window counter keyed by client IP.  Keys whose
newest hit has left the window are swept once per window, so the table
only holds clients seen recently.
For production with multiple backend instances, swap to a Redis-backed store.
"""

import math
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict

from fastapi import HTTPException, Request


class RateLimiter:
    """Sliding-window rate limiter, safe to share across worker threads."""

    def __init__(
        self,
        max_requests: int = 10,
        window_secs: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_secs = window_secs
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._next_sweep = 0.0

    def check(self, key: str) -> None:
        """Record a hit for *key*, raising HTTPException 429 once the window is full."""
        now = self._clock()
        cutoff = now - self.window_secs

        with self._lock:
            if now >= self._next_sweep:
                self._sweep(cutoff)
                self._next_sweep = now + self.window_secs

            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()

            if len(hits) >= self.max_requests:
                retry_after = max(1, math.ceil(hits[0] + self.window_secs - now))
                raise HTTPException(
                    status_code=429,
                    detail=f"Too many requests. Limit: {self.max_requests} per {self.window_secs}s.",
                    headers={"Retry-After": str(retry_after)},
                )

            hits.append(now)

    def _sweep(self, cutoff: float) -> None:
        idle = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in idle:
            del self._hits[key]

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._hits)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
            self._next_sweep = 0.0


# ── Pre-configured limiters ──────────────────────────────────────────────────

# Login: 10 attempts per 60 s per IP
login_limiter = RateLimiter(max_requests=10, window_secs=60)

# Signup: 5 accounts per 60 s per IP
signup_limiter = RateLimiter(max_requests=5, window_secs=60)

# Verification: 10 code submissions / resends per 60 s per IP
verify_limiter = RateLimiter(max_requests=10, window_secs=60)


def get_client_ip(request: Request) -> str:
    """Extract client IP, respecting X-Forwarded-For from reverse proxies."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
