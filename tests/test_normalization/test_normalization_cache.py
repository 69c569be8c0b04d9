"""Tests for the normalization TTL cache and the cached normalizer facade."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from institution_matching.normalization import (
    CachedNormalizer,
    NormalizationCache,
    NormalizationResult,
    TextNormalizer,
)
from institution_matching.utils.config import CacheConfig


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class BrokenCache(NormalizationCache[NormalizationResult]):
    def get(self, key: str) -> NormalizationResult | None:
        raise RuntimeError("cache backend unavailable")

    def put(self, key: str, value: NormalizationResult) -> None:
        raise RuntimeError("cache backend unavailable")


def test_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    cache: NormalizationCache[str] = NormalizationCache(ttl_seconds=10, clock=clock)
    cache.put("a", "value")

    clock.now = 9.9
    assert cache.get("a") == "value"

    clock.now = 10.0
    assert cache.get("a") is None
    assert len(cache) == 0


def test_oldest_entries_evicted_in_batches() -> None:
    clock = FakeClock()
    cache: NormalizationCache[int] = NormalizationCache(max_entries=3, evict_batch=2, clock=clock)
    for tick, key in enumerate("abcd"):
        clock.now = float(tick)
        cache.put(key, tick)

    assert len(cache) == 2
    assert cache.get("a") is None
    assert cache.get("b") is None
    assert cache.get("c") == 2
    assert cache.get("d") == 3
    assert cache.stats().evictions == 2


def test_stats_count_hits_and_misses() -> None:
    cache: NormalizationCache[str] = NormalizationCache()
    cache.get("missing")
    cache.put("k", "v")
    cache.get("k")

    stats = cache.stats()
    assert (stats.size, stats.hits, stats.misses) == (1, 1, 1)


@pytest.mark.parametrize(
    "kwargs",
    [{"ttl_seconds": 0}, {"max_entries": 0}, {"evict_batch": 0}],
)
def test_invalid_cache_parameters_raise(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        NormalizationCache(**kwargs)


def test_from_config_uses_config_values() -> None:
    cache = NormalizationCache.from_config(
        CacheConfig(ttl_seconds=5, max_entries=20, evict_batch=4)
    )

    assert (cache.ttl_seconds, cache.max_entries, cache.evict_batch) == (5, 20, 4)


def test_cached_result_equals_direct_normalization() -> None:
    normalizer = TextNormalizer()
    cached = CachedNormalizer(normalizer)

    first = cached.normalize_with_cache("강남구보건소")
    second = cached.normalize_with_cache("강남구보건소")

    assert first == second == normalizer.normalize("강남구보건소")
    assert cached.cache is not None
    assert cached.cache.stats().hits == 1


def test_cache_failure_falls_back_to_direct_computation() -> None:
    cached = CachedNormalizer(cache=BrokenCache())

    assert cached.normalize_with_cache("서울중앙병원").normalized == "서울중앙"


def test_disabled_cache_bypasses_storage() -> None:
    cached = CachedNormalizer(config=CacheConfig(enabled=False))

    assert cached.cache is None
    assert cached.address_cache is None
    assert cached.normalize_with_cache("강남구보건소").normalized == "강남구"
    assert cached.normalize_address_with_cache("서울 강남구").road_form == "서울특별시 강남구"


def test_address_results_are_cached_separately() -> None:
    cached = CachedNormalizer()

    cached.normalize_address_with_cache("서울 강남구 테헤란로 123")
    cached.normalize_address_with_cache("서울 강남구 테헤란로 123")

    assert cached.address_cache is not None
    assert cached.address_cache.stats().hits == 1
    assert cached.cache is not None
    assert len(cached.cache) == 0


def test_clear_empties_both_caches() -> None:
    cached = CachedNormalizer()
    cached.normalize_with_cache("강남구보건소")
    cached.normalize_address_with_cache("서울 강남구")

    cached.clear()

    assert len(cached.cache) == 0
    assert len(cached.address_cache) == 0


def test_stats_and_len_wait_for_the_lock() -> None:
    cache: NormalizationCache[str] = NormalizationCache()
    cache.put("k", "v")
    snapshots: list = []

    cache._lock.acquire()
    try:
        reader = threading.Thread(target=lambda: snapshots.append((len(cache), cache.stats())))
        reader.start()
        reader.join(timeout=0.2)
        assert reader.is_alive()
        assert snapshots == []
    finally:
        cache._lock.release()
    reader.join(timeout=5)

    assert snapshots[0][0] == 1
    assert snapshots[0][1].size == 1


def test_shared_cache_counters_stay_consistent() -> None:
    cache: NormalizationCache[int] = NormalizationCache(max_entries=50, evict_batch=10)

    def work(worker: int) -> None:
        for i in range(200):
            key = f"{worker}-{i % 60}"
            if cache.get(key) is None:
                cache.put(key, i)
            cache.stats()

    with ThreadPoolExecutor(max_workers=4) as pool:
        list(pool.map(work, range(4)))

    stats = cache.stats()
    assert stats.hits + stats.misses == 800
    assert stats.size <= 50
    assert stats.size == len(cache)
