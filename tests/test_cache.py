"""
Test cases for the TTL Cache
"""

import unittest
import threading
import time
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from stylematch.data.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class TestTTLCache(unittest.TestCase):
    """Test cases for TTLCache"""

    def setUp(self):
        self.clock = FakeClock()
        self.cache = TTLCache(ttl_seconds=60, max_entries=3, name="test", clock=self.clock)
        self.builds = 0

    def _builder(self, value):
        def build():
            self.builds += 1
            return value
        return build

    def test_get_or_build_builds_once(self):
        """Test repeated reads hit the cache"""
        first = self.cache.get_or_build("user_1", self._builder({'n': 1}))
        second = self.cache.get_or_build("user_1", self._builder({'n': 2}))

        self.assertIs(first, second)
        self.assertEqual(self.builds, 1)
        self.assertEqual(self.cache.get_stats()['hits'], 1)
        self.assertEqual(self.cache.get_stats()['misses'], 1)

        print("✅ Get or build: one build, one hit")

    def test_ttl_expiry(self):
        """Test entries older than the TTL are rebuilt"""
        self.cache.put("user_1", "old")
        self.clock.advance(59)
        self.assertEqual(self.cache.get("user_1"), "old")

        self.clock.advance(2)
        self.assertIsNone(self.cache.get("user_1"))
        self.assertEqual(self.cache.get_or_build("user_1", self._builder("new")), "new")

        print("✅ TTL expiry: entry rebuilt after 60s")

    def test_lru_eviction(self):
        """Test the least recently used entry is evicted"""
        for key in ("a", "b", "c"):
            self.cache.put(key, key.upper())
        self.cache.get("a")
        self.cache.put("d", "D")

        self.assertEqual(len(self.cache), 3)
        self.assertNotIn("b", self.cache)
        self.assertIn("a", self.cache)
        self.assertIn("d", self.cache)

        print("✅ LRU eviction: least recently used key dropped")

    def test_stamp_change_rebuilds(self):
        """Test a new stamp invalidates the stored entry"""
        self.cache.get_or_build("p1", self._builder("v1"), stamp=("p1", 1))
        self.assertEqual(self.cache.get_or_build("p1", self._builder("v2"), stamp=("p1", 1)), "v1")
        self.assertEqual(self.cache.get_or_build("p1", self._builder("v3"), stamp=("p1", 2)), "v3")
        self.assertEqual(self.builds, 2)

        print("✅ Stamps: changed inputs rebuild the entry")

    def test_update_is_copy_on_write(self):
        """Test update swaps in a new value and leaves the old one intact"""
        original = {'views': 1}
        self.cache.put("user_1", original)

        updated = self.cache.update("user_1", lambda v: {**v, 'views': v['views'] + 1})

        self.assertEqual(updated, {'views': 2})
        self.assertEqual(original, {'views': 1})
        self.assertIs(self.cache.get("user_1"), updated)

        print("✅ Update: copy-on-write")

    def test_update_missing_key(self):
        """Test update without a builder is a no-op for missing keys"""
        self.assertIsNone(self.cache.update("ghost", lambda v: v + 1))
        self.assertNotIn("ghost", self.cache)

        value = self.cache.update("ghost", lambda v: v + 1, builder=self._builder(10))
        self.assertEqual(value, 11)
        self.assertEqual(self.cache.get("ghost"), 11)

        print("✅ Update: builder used for missing keys")

    def test_invalidate_and_clear(self):
        """Test explicit invalidation"""
        self.cache.put("a", 1)
        self.cache.put("b", 2)

        self.assertTrue(self.cache.invalidate("a"))
        self.assertFalse(self.cache.invalidate("a"))
        self.cache.clear()
        self.assertEqual(len(self.cache), 0)

        print("✅ Invalidate and clear: entries dropped")

    def test_concurrent_builds_happen_once(self):
        """Test concurrent requests for one key share a single build"""
        cache = TTLCache(ttl_seconds=60, name="concurrent")
        build_count = []
        results = []

        def slow_build():
            build_count.append(1)
            time.sleep(0.05)
            return object()

        def worker():
            results.append(cache.get_or_build("user_1", slow_build))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(build_count), 1)
        self.assertEqual(len(results), 8)
        self.assertTrue(all(r is results[0] for r in results))

        print("✅ Concurrency: 8 threads, 1 build")

    def test_clear_during_build_keeps_key_lock(self):
        """Test a clear while a key is building does not allow a second build"""
        cache = TTLCache(ttl_seconds=60, max_entries=1, name="clearing")
        started = threading.Event()
        release = threading.Event()
        build_count = []
        results = []

        def blocking_build():
            build_count.append(1)
            started.set()
            release.wait(5)
            return "built"

        first = threading.Thread(target=lambda: results.append(cache.get_or_build("user_1", blocking_build)))
        first.start()
        self.assertTrue(started.wait(5))

        cache.clear()
        cache.put("other", "evicts nothing useful")
        second = threading.Thread(target=lambda: results.append(cache.get_or_build("user_1", blocking_build)))
        second.start()
        time.sleep(0.05)
        release.set()
        first.join()
        second.join()

        self.assertEqual(len(build_count), 1)
        self.assertEqual(results, ["built", "built"])
        self.assertEqual(cache._key_locks, {})

        print("✅ Concurrency: clear during build, 1 build")


if __name__ == '__main__':
    unittest.main()
