# ============================================================================
# tests/unit/test_cache.py
# ============================================================================
"""
Tests for the result cache
"""

from datetime import datetime, timedelta

import pytest

from order_proof.core.result_cache import CacheEntry, ResultCache
from order_proof.core.types import ExtractionResult, ProofVerificationResult


@pytest.fixture
def cache():
    return ResultCache(max_size=3, default_ttl=60)


def _result(order_id="408-1234567-7654321"):
    return ExtractionResult(order_id=order_id, amount=1499.0, confidence_score=85)


class TestCacheEntry:

    def test_no_ttl_never_expires(self):
        entry = CacheEntry(value=1, created_at=datetime.now() - timedelta(days=365))
        assert not entry.is_expired()

    def test_expired(self):
        entry = CacheEntry(value=1, created_at=datetime.now() - timedelta(seconds=61), ttl_seconds=60)
        assert entry.is_expired()


class TestResultCache:
    """LRU + TTL behavior"""

    def test_hit_returns_flagged_copy(self, cache):
        key = cache.make_key(b"image", "extract")
        stored = _result()
        cache.set(key, stored)

        first = cache.get(key)
        first.order_id = "changed"
        second = cache.get(key)

        assert second.cached is True
        assert second.order_id == "408-1234567-7654321"
        assert stored.cached is False

    def test_miss(self, cache):
        assert cache.get(cache.make_key(b"other", "extract")) is None
        assert cache.get_statistics()['misses'] == 1

    def test_lru_eviction(self, cache):
        keys = [cache.make_key(bytes([i]), "extract") for i in range(4)]
        for key in keys[:3]:
            cache.set(key, _result())

        cache.get(keys[0])  # most recently used now
        cache.set(keys[3], _result())

        assert cache.get(keys[1]) is None
        assert cache.get(keys[0]) is not None
        assert len(cache) == 3
        assert cache.get_statistics()['evictions'] == 1

    def test_ttl_expiry(self, cache):
        key = cache.make_key(b"image", "extract")
        cache.set(key, _result())
        cache._cache[key].created_at = datetime.now() - timedelta(seconds=120)

        assert cache.get(key) is None
        assert cache.get_statistics()['expirations'] == 1
        assert len(cache) == 0

    def test_key_normalizes_expected_values(self):
        """Whitespace, case and whole floats do not split entries"""
        a = ResultCache.make_key(b"img", "purchase", "OD 123", 1499.0)
        b = ResultCache.make_key(b"img", "purchase", "od   123", 1499)
        assert a == b
        assert a != ResultCache.make_key(b"img", "return_window", "OD 123", 1499)
        assert a != ResultCache.make_key(b"img2", "purchase", "OD 123", 1499)

    def test_invalidate_one_image(self, cache):
        cache.set(cache.make_key(b"img", "extract"), _result())
        cache.set(cache.make_key(b"img", "purchase", "OD1", 10), ProofVerificationResult(confidence_score=85))
        cache.set(cache.make_key(b"other", "extract"), _result())

        assert cache.invalidate(b"img") == 2
        assert len(cache) == 1

    def test_disabled(self):
        cache = ResultCache(enabled=False)
        key = cache.make_key(b"img", "extract")
        cache.set(key, _result())
        assert cache.get(key) is None
        assert len(cache) == 0

    def test_statistics(self, cache):
        key = cache.make_key(b"img", "extract")
        cache.set(key, _result())
        cache.get(key)
        cache.get(cache.make_key(b"nope", "extract"))

        stats = cache.get_statistics()
        assert stats['hits'] == 1
        assert stats['writes'] == 1
        assert stats['hit_rate'] == 0.5
        assert stats['entry_count'] == 1

    def test_clear(self, cache):
        cache.set(cache.make_key(b"img", "extract"), _result())
        cache.clear()
        assert len(cache) == 0
