"""Tests for the LRU store and the fingerprint cache."""

import os
from pathlib import Path

import pytest

from ripple.cache_manager import CacheManager, file_fingerprint
from ripple.lru_cache import LRUCache


class TestLRUCache:
    """Capacity, recency and TTL behaviour."""

    def test_rejects_non_positive_capacity(self):
        with pytest.raises(ValueError):
            LRUCache(0)

    def test_evicts_least_recently_used(self):
        evicted = []
        cache = LRUCache(2, on_evict=lambda k, v: evicted.append(k))
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.get("a") == 1

        cache.set("c", 3)

        assert evicted == ["b"]
        assert cache.keys() == ["a", "c"]
        assert len(cache) == 2

    def test_overwrite_does_not_evict(self):
        cache = LRUCache(2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)

        assert cache.get("a") == 10
        assert "b" in cache

    def test_ttl_expires_on_access(self, fake_clock):
        cache = LRUCache(4, ttl_seconds=60, clock=fake_clock)
        cache.set("a", 1)

        fake_clock.advance(59)
        assert cache.get("a") == 1
        fake_clock.advance(2)
        assert cache.get("a") is None
        assert "a" not in cache

    def test_delete_and_clear(self):
        cache = LRUCache(4)
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.delete("a")
        assert not cache.delete("a")
        assert not cache.has("a")
        cache.clear()
        assert len(cache) == 0


class TestCacheManager:
    """Fingerprint-validated caching of per-file values."""

    def test_hit_while_file_unchanged(self, temp_dir: Path):
        path = temp_dir / "m.py"
        path.write_text("x = 1\n")
        cache = CacheManager()
        cache.set(str(path), "parsed")

        assert cache.get(str(path)) == "parsed"
        assert cache.stats().hits == 1

    def test_miss_after_file_changes(self, temp_dir: Path):
        path = temp_dir / "m.py"
        path.write_text("x = 1\n")
        cache = CacheManager()
        cache.set(str(path), "parsed")

        path.write_text("x = 1\ny = 2\n")

        assert cache.get(str(path)) is None
        assert len(cache) == 0
        assert cache.stats().misses == 1

    def test_mtime_change_alone_invalidates(self, temp_dir: Path):
        path = temp_dir / "m.py"
        path.write_text("x = 1\n")
        cache = CacheManager()
        cache.set(str(path), "parsed")
        st = os.stat(path)

        os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + 5_000_000_000))

        assert cache.get(str(path)) is None

    def test_unreadable_file_is_always_a_miss(self, temp_dir: Path):
        missing = str(temp_dir / "gone.py")
        cache = CacheManager()
        cache.set(missing, "parsed")

        assert cache.get(missing) is None
        assert file_fingerprint(missing) is None

    def test_injected_fingerprint(self):
        prints = {"a": (1, 1)}
        cache = CacheManager(fingerprint=lambda p: prints.get(p))
        cache.set("a", "v1")
        assert cache.get("a") == "v1"

        prints["a"] = (2, 1)

        assert cache.get("a") is None

    def test_ttl_applies_on_top_of_fingerprint(self, fake_clock):
        cache = CacheManager(ttl_seconds=300, fingerprint=lambda p: (1, 1), clock=fake_clock)
        cache.set("a", "v")
        fake_clock.advance(301)

        assert cache.get("a") is None

    def test_invalidate_pattern(self):
        cache = CacheManager(fingerprint=lambda p: (1, 1))
        for key in ("src/a.py", "src/b.py", "tests/c.py"):
            cache.set(key, key)

        assert cache.invalidate_pattern(r"^src/") == 2
        assert len(cache) == 1
        assert cache.invalidate("tests/c.py")

    def test_hit_rate(self):
        cache = CacheManager(fingerprint=lambda p: (1, 1))
        assert cache.hit_rate == 0.0
        cache.set("a", 1)
        cache.get("a")
        cache.get("b")

        assert cache.hit_rate == 0.5
