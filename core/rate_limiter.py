# core/rate_limiter.py

"""
Sliding-window limits for the unauthenticated and brute-forceable
endpoints (OTP verify/resend, email checks, admin login, registration,
replacement codes). Counters live in process memory.
"""

import time
from collections import deque
from threading import Lock
from typing import Deque, Dict, Optional, Tuple

from fastapi import HTTPException, Request


class SlidingWindowLimiter:
    def __init__(self):
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = Lock()

    def hit(self, key: str, max_requests: int, window_seconds: int) -> Tuple[bool, int]:
        """Record one request for `key`. Returns (allowed, remaining)."""
        now = time.monotonic()
        with self._lock:
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= now - window_seconds:
                hits.popleft()

            if len(hits) >= max_requests:
                return False, 0

            hits.append(now)
            return True, max_requests - len(hits)

    def reset(self):
        with self._lock:
            self._hits.clear()


_limiter = SlidingWindowLimiter()


def check_rate_limit(identifier: str, max_requests: int = 10, window_seconds: int = 60) -> Tuple[bool, int]:
    return _limiter.hit(identifier, max_requests, window_seconds)


def get_rate_limit_identifier(request: Request, user_id: Optional[str] = None) -> str:
    """`user:<id>` when authenticated, else `ip:<addr>` (first X-Forwarded-For hop)."""
    if user_id:
        return f"user:{user_id}"

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


def require_rate_limit(request: Request, scope: str, identifier: Optional[str] = None,
                       max_requests: int = 10, window_seconds: int = 60) -> int:
    """429 once the caller has used up `max_requests` for `scope` in the window."""
    who = identifier or get_rate_limit_identifier(request)
    allowed, remaining = check_rate_limit(f"{scope}:{who}", max_requests, window_seconds)
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail=f"Too many attempts. Try again in {window_seconds} seconds.",
            headers={"Retry-After": str(window_seconds), "X-RateLimit-Limit": str(max_requests)},
        )
    return remaining


def reset_rate_limits():
    _limiter.reset()
