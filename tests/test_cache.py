"""Tests for the sanitization result cache."""

from types import SimpleNamespace

import pytest

from scrubkit.security import cache as cache_module
from scrubkit.security.cache import ResultCache, get_shared_cache, make_cache_key, reset_sanitizer_cache


class TestCacheKey:

    def test_key_order_independent(self):
        assert make_cache_key({"a": 1, "b": 2}, "root", "fp") == make_cache_key({"b": 2, "a": 1}, "root", "fp")

    def test_path_and_fingerprint_matter(self):
        key = make_cache_key({"a": 1}, "root", "fp")
        assert key != make_cache_key({"a": 1}, "root[1]", "fp")
        assert key != make_cache_key({"a": 1}, "root", "other")

    @pytest.mark.parametrize("value", [
        (1, 2),
        {1: "a"},
        {"n": float("nan")},
        {"s": {1, 2}},
        object(),
    ])
    def test_non_json_not_keyed(self, value):
        assert make_cache_key(value, "root", "fp") is None

    def test_cyclic_not_keyed(self):
        value = {}
        value["self"] = value
        assert make_cache_key(value, "root", "fp") is None

    def test_oversized_not_keyed(self):
        assert make_cache_key("x" * 70000, "root", "fp") is None


class TestResultCache:

    def test_returns_copies(self):
        cache = ResultCache()
        stored = {"a": [1]}
        cache.put("k", stored)
        stored["a"].append(2)
        first = cache.get("k")
        first["a"].append(3)
        assert cache.get("k") == {"a": [1]}

    def test_ttl_expiry(self, monkeypatch):
        now = [100.0]
        monkeypatch.setattr(cache_module, "time", SimpleNamespace(monotonic=lambda: now[0]))
        cache = ResultCache(ttl_seconds=10)
        cache.put("k", "v")
        now[0] = 105.0
        assert cache.get("k") == "v"
        now[0] = 111.0
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_fifo_eviction(self):
        cache = ResultCache(max_size=2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.put("c", 3)
        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3
        assert len(cache) == 2

    def test_zero_size_stores_nothing(self):
        cache = ResultCache(max_size=0)
        cache.put("a", 1)
        assert len(cache) == 0

    def test_stats(self):
        cache = ResultCache()
        cache.put("a", 1)
        cache.get("a")
        cache.get("missing")
        assert cache.stats() == {"size": 1, "hits": 1, "misses": 1}

    def test_clear(self):
        cache = ResultCache()
        cache.put("a", 1)
        cache.clear()
        assert len(cache) == 0
        assert cache.stats()["hits"] == 0


class TestSharedCache:

    def test_shared_instance_resized(self):
        cache = get_shared_cache(300, 1000)
        assert get_shared_cache(60, 5) is cache
        assert cache.ttl_seconds == 60
        assert cache.max_size == 5

    def test_reset(self):
        cache = get_shared_cache(300, 1000)
        cache.put("a", 1)
        reset_sanitizer_cache()
        assert len(cache) == 0
