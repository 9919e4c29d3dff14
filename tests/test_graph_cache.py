import os
import sys
import unittest
from unittest.mock import MagicMock, patch

# Add the parent directory to sys.path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.family_graph.graph_cache import MemoryGraphCache, RedisGraphCache
from src.family_graph.graph_context import create_graph_cache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestMemoryGraphCache(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.cache = MemoryGraphCache(maxsize=2, timer=self.clock)

    def test_get_set_delete(self):
        self.assertIsNone(self.cache.get("k"))
        self.cache.set("k", "blob", 60)
        self.assertEqual(self.cache.get("k"), "blob")
        self.cache.delete("k")
        self.assertIsNone(self.cache.get("k"))
        self.cache.delete("missing")

    def test_entries_expire_with_their_own_ttl(self):
        self.cache.set("short", "a", 10)
        self.cache.set("long", "b", 100)
        self.clock.now = 50
        self.assertIsNone(self.cache.get("short"))
        self.assertEqual(self.cache.get("long"), "b")

    def test_size_bound(self):
        for key in ("a", "b", "c"):
            self.cache.set(key, key, 60)
        self.assertEqual(len(self.cache), 2)
        self.assertIsNone(self.cache.get("a"))


class TestRedisGraphCache(unittest.TestCase):

    def setUp(self):
        self.client = MagicMock()
        self.cache = RedisGraphCache("redis://localhost:6379/0", client=self.client)

    def test_set_uses_expiry(self):
        self.cache.set("k", "blob", 300)
        self.client.set.assert_called_once_with("k", "blob", ex=300)

    def test_get_decodes_bytes(self):
        self.client.get.return_value = b"blob"
        self.assertEqual(self.cache.get("k"), "blob")
        self.client.get.return_value = None
        self.assertIsNone(self.cache.get("k"))

    def test_delete(self):
        self.cache.delete("k")
        self.client.delete.assert_called_once_with("k")

    def test_client_built_from_url(self):
        with patch("src.family_graph.graph_cache.redis.Redis.from_url") as from_url:
            RedisGraphCache("redis://cache:6379/1")
        from_url.assert_called_once_with("redis://cache:6379/1", decode_responses=True)


class TestCacheBackendSelection(unittest.TestCase):

    def test_backends(self):
        with patch("src.family_graph.graph_context.config") as config:
            config.CACHE_MAX_ENTRIES = 10
            config.REDIS_URL = "redis://localhost:6379/0"

            config.CACHE_BACKEND = "none"
            self.assertIsNone(create_graph_cache())

            config.CACHE_BACKEND = "memory"
            self.assertIsInstance(create_graph_cache(), MemoryGraphCache)

            config.CACHE_BACKEND = "bogus"
            self.assertIsInstance(create_graph_cache(), MemoryGraphCache)

            config.CACHE_BACKEND = "redis"
            with patch("src.family_graph.graph_cache.redis.Redis.from_url"):
                self.assertIsInstance(create_graph_cache(), RedisGraphCache)


if __name__ == '__main__':
    unittest.main()
