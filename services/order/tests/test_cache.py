"""
Tests for the cache adapters.
"""
from unittest.mock import MagicMock

import pytest

from ordersaga.core.config import Settings
from ordersaga.services.cache import MemoryCache, RedisCache, build_cache, order_key, user_orders_key

class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

class TestMemoryCache:

    def test_set_get_invalidate(self):
        cache = MemoryCache()

        cache.set("k", "v", 60)
        assert cache.get("k") == "v"

        cache.invalidate("k")
        assert cache.get("k") is None

    def test_entries_expire(self):
        clock = FakeClock()
        cache = MemoryCache(clock=clock)
        cache.set("k", "v", 300)

        clock.now += 299
        assert cache.get("k") == "v"
        clock.now += 2
        assert cache.get("k") is None

    def test_invalidate_missing_key(self):
        MemoryCache().invalidate("nothing")

class TestRedisCache:

    def test_delegates_to_client(self):
        client = MagicMock()
        client.get.return_value = "payload"
        cache = RedisCache(client)

        assert cache.get("k") == "payload"
        cache.set("k", "v", 300)
        cache.invalidate("k")

        client.setex.assert_called_once_with("k", 300, "v")
        client.delete.assert_called_once_with("k")

class TestBuildCache:

    def test_memory_backend(self):
        assert isinstance(build_cache(Settings(CACHE_BACKEND="memory")), MemoryCache)

    def test_redis_backend(self):
        cache = build_cache(Settings(CACHE_BACKEND="redis", REDIS_URL="redis://localhost:6379/0"))
        assert isinstance(cache, RedisCache)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            build_cache(Settings(CACHE_BACKEND="memcached"))

def test_keys():
    assert order_key("abc") == "orders:abc"
    assert user_orders_key("u1") == "orders:user:u1"
