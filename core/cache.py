# core/cache.py

"""
Process-local TTL cache for lookups that every request reads but that
rarely change: Stripe prices and residence QR metadata.

Entries are (expires_at, value) pairs on a monotonic clock. Each worker
process has its own copy, so writers invalidate by key prefix
(`cache_delete_prefix("residence_qr")`) after changing the source row.
"""

import time
from functools import wraps
from threading import RLock
from typing import Any, Callable, Dict, Optional, Tuple

from core.logging_config import logger

DEFAULT_TTL = 300


class TTLCache:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = RLock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self.clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: int = DEFAULT_TTL):
        with self._lock:
            self._entries[key] = (self.clock() + ttl_seconds, value)

    def pop(self, key: str):
        with self._lock:
            self._entries.pop(key, None)

    def pop_prefix(self, prefix: str) -> int:
        with self._lock:
            stale = [k for k in self._entries if k.startswith(prefix)]
            for key in stale:
                del self._entries[key]
            return len(stale)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self):
        return len(self._entries)


_cache = TTLCache()


def _make_key(prefix: str, func: Callable, args: tuple, kwargs: dict) -> str:
    parts = [prefix or func.__module__, func.__name__]
    parts.extend(repr(a) for a in args)
    parts.extend(f"{k}={v!r}" for k, v in sorted(kwargs.items()))
    return ":".join(parts)


def cached(ttl_seconds: int = DEFAULT_TTL, key_prefix: str = ""):
    """
    Memoize by arguments for `ttl_seconds`. None is never stored, so a
    missing row is looked up again next time.

        @cached(ttl_seconds=3600, key_prefix="stripe_price")
        def get_price(price_id): ...
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            key = _make_key(key_prefix, func, args, kwargs)
            hit = _cache.get(key)
            if hit is not None:
                return hit

            result = func(*args, **kwargs)
            if result is not None:
                _cache.set(key, result, ttl_seconds)
                logger.debug(f"cached {key} for {ttl_seconds}s")
            return result

        return wrapper
    return decorator


def cache_get(key: str) -> Optional[Any]:
    return _cache.get(key)


def cache_set(key: str, value: Any, ttl_seconds: int = DEFAULT_TTL):
    _cache.set(key, value, ttl_seconds)


def cache_delete(key: str):
    _cache.pop(key)


def cache_delete_prefix(prefix: str) -> int:
    return _cache.pop_prefix(prefix)


def cache_clear():
    _cache.clear()
