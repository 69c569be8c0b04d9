"""Process-local TTL cache for normalization results."""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Generic, Tuple, TypeVar

from loguru import logger
from pydantic import BaseModel, ConfigDict

from institution_matching.normalization.address_normalizer import (
    AddressNormalizationResult,
    AddressNormalizer,
)
from institution_matching.normalization.text_normalizer import (
    NormalizationResult,
    TextNormalizer,
)
from institution_matching.utils.config import CacheConfig

T = TypeVar("T")


class CacheStats(BaseModel):
    """Counters for cache diagnostics."""

    model_config = ConfigDict(frozen=True)

    size: int
    hits: int
    misses: int
    evictions: int


class NormalizationCache(Generic[T]):
    """Map of raw input -> result with a TTL and batched oldest-first eviction.

    The cache only ever saves work: a miss recomputes the same value a hit would
    have returned, and ``clear`` may be called at any time.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600.0,
        max_entries: int = 1000,
        evict_batch: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries < 1 or evict_batch < 1:
            raise ValueError("max_entries and evict_batch must be at least 1")

        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.evict_batch = evict_batch
        self._clock = clock
        self._entries: Dict[str, Tuple[float, T]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @classmethod
    def from_config(
        cls, config: CacheConfig, clock: Callable[[], float] = time.monotonic
    ) -> NormalizationCache[T]:
        return cls(
            ttl_seconds=config.ttl_seconds,
            max_entries=config.max_entries,
            evict_batch=config.evict_batch,
            clock=clock,
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> T | None:
        """Return the cached value, or None when missing or expired."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            stored_at, value = entry
            if now - stored_at >= self.ttl_seconds:
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return value

    def put(self, key: str, value: T) -> None:
        now = self._clock()
        with self._lock:
            self._entries[key] = (now, value)
            if len(self._entries) > self.max_entries:
                self._evict_oldest()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> CacheStats:
        """Consistent snapshot of size and counters."""
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
            )

    def _evict_oldest(self) -> None:
        ordered = sorted(self._entries.items(), key=lambda item: item[1][0])
        for key, _ in ordered[: self.evict_batch]:
            del self._entries[key]
        self._evictions += min(self.evict_batch, len(ordered))
        logger.debug("Evicted {} normalization cache entries", min(self.evict_batch, len(ordered)))


class CachedNormalizer:
    """Text/address normalizers fronted by their own caches.

    Cache errors never fail a request: they are logged and the value is recomputed.
    """

    def __init__(
        self,
        normalizer: TextNormalizer | None = None,
        address_normalizer: AddressNormalizer | None = None,
        cache: NormalizationCache[NormalizationResult] | None = None,
        address_cache: NormalizationCache[AddressNormalizationResult] | None = None,
        config: CacheConfig | None = None,
    ) -> None:
        self.config = config or CacheConfig()
        self.normalizer = normalizer or TextNormalizer()
        self.address_normalizer = address_normalizer or AddressNormalizer(
            config=self.normalizer.config
        )
        if self.config.enabled:
            self.cache = cache if cache is not None else NormalizationCache.from_config(self.config)
            self.address_cache = (
                address_cache
                if address_cache is not None
                else NormalizationCache.from_config(self.config)
            )
        else:
            self.cache = None
            self.address_cache = None

    def normalize_with_cache(self, text: str | None) -> NormalizationResult:
        if text is None or self.cache is None:
            return self.normalizer.normalize(text)
        return self._cached(self.cache, text, self.normalizer.normalize)

    def normalize_address_with_cache(self, address: str | None) -> AddressNormalizationResult:
        if address is None or self.address_cache is None:
            return self.address_normalizer.normalize(address)
        return self._cached(self.address_cache, address, self.address_normalizer.normalize)

    def clear(self) -> None:
        for cache in (self.cache, self.address_cache):
            if cache is not None:
                cache.clear()

    def _cached(self, cache: NormalizationCache[T], key: str, compute: Callable[[str], T]) -> T:
        try:
            cached = cache.get(key)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Normalization cache lookup failed for {!r}: {}", key, exc)
            return compute(key)
        if cached is not None:
            return cached

        value = compute(key)
        try:
            cache.put(key, value)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Normalization cache store failed for {!r}: {}", key, exc)
        return value
