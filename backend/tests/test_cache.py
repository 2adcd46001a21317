"""Tests for the TTL cache behind product listings."""

from app.utils.cache import TTLCache


class _Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestTTLCache:
    def test_hit_within_ttl(self):
        clock = _Clock()
        cache = TTLCache(ttl=300, clock=clock)
        cache.set("shop-a.myshopify.com", ["p1"])
        clock.now += 299
        assert cache.get("shop-a.myshopify.com") == ["p1"]

    def test_expires_at_ttl(self):
        clock = _Clock()
        cache = TTLCache(ttl=300, clock=clock)
        cache.set("shop", "value")
        clock.now += 300
        assert cache.get("shop") is None
        assert len(cache) == 0

    def test_last_write_wins(self):
        cache = TTLCache(ttl=300, clock=_Clock())
        cache.set("shop", "old")
        cache.set("shop", "new")
        assert cache.get("shop") == "new"

    def test_keys_are_independent(self):
        cache = TTLCache(ttl=300, clock=_Clock())
        cache.set("a", 1)
        assert cache.get("b") is None

    def test_clear(self):
        cache = TTLCache(ttl=300, clock=_Clock())
        cache.set("a", 1)
        cache.clear()
        assert len(cache) == 0
