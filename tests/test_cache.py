# tests/test_cache.py

"""
Tests for the in-memory cache and the rate limiter.
"""

import pytest
from unittest.mock import Mock

from core.cache import cache_get, cache_set, cache_clear, cache_delete, cache_delete_prefix, cached
from core.rate_limiter import check_rate_limit


def test_cache_set_and_get():
    cache_set("residence:1", {"name": "Les Jardins"}, ttl_seconds=60)
    assert cache_get("residence:1") == {"name": "Les Jardins"}


def test_cache_expiration():
    import core.cache as cache_module

    now = [1000.0]
    original_clock = cache_module._cache.clock
    cache_module._cache.clock = lambda: now[0]
    try:
        cache_set("expiring_key", "value", ttl_seconds=5)
        assert cache_get("expiring_key") == "value"

        now[0] += 6
        assert cache_get("expiring_key") is None
    finally:
        cache_module._cache.clock = original_clock


def test_cache_delete_and_prefix():
    cache_set("residence_qr:a", 1)
    cache_set("residence_qr:b", 2)
    cache_set("stripe_price:x", 3)

    cache_delete("residence_qr:a")
    assert cache_get("residence_qr:a") is None

    assert cache_delete_prefix("residence_qr") == 1
    assert cache_get("residence_qr:b") is None
    assert cache_get("stripe_price:x") == 3


def test_cached_decorator_skips_none():
    calls = Mock(side_effect=[None, "price", "other"])

    @cached(ttl_seconds=60, key_prefix="test")
    def lookup(key):
        return calls(key)

    assert lookup("p1") is None
    assert lookup("p1") == "price"
    # second hit comes from the cache
    assert lookup("p1") == "price"
    assert calls.call_count == 2


def test_cache_clear():
    cache_set("key1", "value1")
    cache_set("key2", "value2")

    cache_clear()

    assert cache_get("key1") is None
    assert cache_get("key2") is None


def test_rate_limit_blocks_after_max():
    for _ in range(3):
        allowed, _ = check_rate_limit("otp_verify:ip:1.2.3.4", max_requests=3, window_seconds=60)
        assert allowed

    allowed, remaining = check_rate_limit("otp_verify:ip:1.2.3.4", max_requests=3, window_seconds=60)
    assert not allowed
    assert remaining == 0

    # other identifiers are unaffected
    assert check_rate_limit("otp_verify:ip:5.6.7.8", max_requests=3, window_seconds=60)[0]
