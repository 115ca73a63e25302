"""Tests for mvstats/api/services/result_cache.py - LRU + TTL result cache."""
from __future__ import annotations

import time

import pytest

from mvstats.analysis.hclus import HclusRequest, cluster
from mvstats.api.services.result_cache import CacheEntry, ResultCache


@pytest.fixture
def entry(store):
    request = HclusRequest(dataset="shopping", vars=("v1:v4",))
    return request, cluster(request, store)


class TestResultCache:
    """Tests for the LRU + TTL cache."""

    def test_get_returns_none_for_missing_key(self):
        assert ResultCache().get("nonexistent") is None

    def test_put_and_get(self, entry):
        cache = ResultCache()
        result_id = cache.put(*entry)

        cached = cache.get(result_id)
        assert cached.request is entry[0]
        assert cached.result is entry[1]

    def test_ids_are_unique(self, entry):
        cache = ResultCache()
        assert cache.put(*entry) != cache.put(*entry)
        assert len(cache) == 2

    def test_ttl_expires_old_entries(self, entry):
        cache = ResultCache(ttl_seconds=1)
        result_id = cache.put(*entry)

        # Artificially age the entry
        cache._entries[result_id] = CacheEntry(
            created_at=time.time() - 2,
            request=entry[0],
            result=entry[1],
        )

        assert cache.get(result_id) is None
        assert len(cache) == 0

    def test_lru_eviction(self, entry):
        cache = ResultCache(max_entries=2)
        a = cache.put(*entry)
        b = cache.put(*entry)
        c = cache.put(*entry)  # Should evict "a"

        assert cache.get(a) is None
        assert cache.get(b) is not None
        assert cache.get(c) is not None

    def test_get_refreshes_lru_order(self, entry):
        cache = ResultCache(max_entries=2)
        a = cache.put(*entry)
        b = cache.put(*entry)
        cache.get(a)  # Refresh "a"
        c = cache.put(*entry)  # Should evict "b" (oldest now)

        assert cache.get(a) is not None
        assert cache.get(b) is None
        assert cache.get(c) is not None
