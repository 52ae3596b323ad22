"""
Tests for ContentCache
=======================

Test Strategy:
    ✅ Miss, then hit after put
    ✅ Entries expire exactly at the TTL
    ✅ Inserting past capacity evicts only the first-inserted key
    ✅ Overwriting keeps the entry's eviction position
    ✅ Keys depend on both identity and image bytes
    ❌ Invalid capacity
"""

import hashlib

import pytest

from app.services.content_cache import ContentCache


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestContentCache:
    def setup_method(self):
        self.clock = FakeClock()
        self.cache = ContentCache(ttl_seconds=3600, max_entries=3, clock=self.clock)

    def test_miss_then_hit(self):
        assert self.cache.get("k") is None
        self.cache.put("k", "hello")
        assert self.cache.get("k") == "hello"

    def test_entry_expires_at_ttl(self):
        """Valid while age < ttl; a miss once age == ttl."""
        self.cache.put("k", "hello")
        self.clock.now = 3599
        assert self.cache.get("k") == "hello"
        self.clock.now = 3600
        assert self.cache.get("k") is None

    def test_expired_entry_is_not_removed_eagerly(self):
        self.cache.put("k", "hello")
        self.clock.now = 5000
        assert self.cache.get("k") is None
        assert "k" in self.cache

    def test_evicts_first_inserted_key_only(self):
        for key in ("a", "b", "c", "d"):
            self.cache.put(key, key.upper())
        assert len(self.cache) == 3
        assert "a" not in self.cache
        assert [self.cache.get(k) for k in ("b", "c", "d")] == ["B", "C", "D"]

    def test_overwrite_keeps_position(self):
        """Refreshing 'a' does not save it from being evicted first."""
        for key in ("a", "b", "c"):
            self.cache.put(key, key)
        self.clock.now = 10
        self.cache.put("a", "fresh")
        assert self.cache.get("a") == "fresh"
        self.cache.put("d", "d")
        assert "a" not in self.cache
        assert "b" in self.cache

    def test_overwrite_refreshes_timestamp(self):
        self.cache.put("a", "old")
        self.clock.now = 3000
        self.cache.put("a", "new")
        self.clock.now = 4000
        assert self.cache.get("a") == "new"

    def test_key_format(self):
        content = b"image-bytes"
        key = ContentCache.make_key("user-1", content)
        assert key == f"user-1_{hashlib.sha256(content).hexdigest()}"

    def test_same_bytes_different_users_do_not_collide(self):
        assert ContentCache.make_key("u1", b"x") != ContentCache.make_key("u2", b"x")
        assert ContentCache.make_key("u1", b"x") != ContentCache.make_key("u1", b"y")

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            ContentCache(max_entries=0)
