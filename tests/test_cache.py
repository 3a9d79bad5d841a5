"""Tests for the TTL response cache."""

from unittest.mock import patch

from fixturecast.utils.cache import TTLCache, make_cache_key


class TestMakeCacheKey:
    def test_params_order_insensitive(self):
        a = make_cache_key("/fixtures", {"league": 39, "season": 2025})
        b = make_cache_key("/fixtures", {"season": 2025, "league": 39})
        assert a == b

    def test_endpoint_distinguishes(self):
        assert make_cache_key("/fixtures", {"id": 1}) != make_cache_key("/teams", {"id": 1})

    def test_no_params(self):
        assert make_cache_key("/status") == "/status-{}"


class TestTTLCache:
    def test_miss_on_empty(self):
        cache = TTLCache()
        assert cache.get("k", ttl=60) == (False, None)
        assert cache.get_stale("k") == (False, None)

    def test_fresh_hit(self):
        cache = TTLCache()
        cache.set("k", {"response": []})
        assert cache.get("k", ttl=60) == (True, {"response": []})

    def test_expired_entry_is_miss_but_stale_hit(self):
        cache = TTLCache()
        with patch("fixturecast.utils.cache.time.time", return_value=1000.0):
            cache.set("k", "payload")
        with patch("fixturecast.utils.cache.time.time", return_value=1000.0 + 3600):
            assert cache.get("k", ttl=3600) == (False, None)
            assert cache.get_stale("k") == (True, "payload")
        assert "k" in cache

    def test_clear(self):
        cache = TTLCache()
        cache.set("a", 1)
        cache.set("b", 2)
        assert len(cache) == 2
        cache.clear()
        assert len(cache) == 0
