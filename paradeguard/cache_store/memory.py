"""Weight-bounded in-memory cache with absolute/sliding TTL and priority eviction."""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Optional

from paradeguard.cache_store.base import CacheEntryOptions, CachePriority, CacheStats, CacheStore

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache_store/in_memory_cache_store")


@dataclass
class _CacheEntry:
    """Stored value plus the bookkeeping needed for expiry and eviction."""
    value: Any
    absolute_expiry: float
    sliding_ttl: float | None
    expires_at: float
    weight: int
    priority: CachePriority

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def touch(self, now: float) -> None:
        """Slide the expiry forward on access, never past the absolute expiry."""
        if self.sliding_ttl is not None:
            self.expires_at = min(self.absolute_expiry, now + self.sliding_ttl)


class InMemoryCacheStore(CacheStore):
    """Thread-safe cache bounded by total entry weight.

    Expiry is checked lazily on read. Eviction only happens inside `set()` when
    the weight budget is exceeded: expired entries go first, then the lowest
    priority, then the least recently used within a priority. Once over budget
    the store compacts down to `size_limit * (1 - compaction_percentage)` so a
    run of inserts does not evict on every call. Reads and evictions share one
    lock, so an entry is never dropped while another caller is reading it.
    """

    def __init__(
        self,
        size_limit: int = 1000,
        compaction_percentage: float = 0.25,
        time_func: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the store with a weight budget and compaction ratio."""
        if size_limit < 1:
            raise ValueError("size_limit must be at least 1")
        if not 0.0 <= compaction_percentage < 1.0:
            raise ValueError("compaction_percentage must be in [0, 1)")
        logger.debug("Initializing InMemoryCacheStore", extra={"size_limit": size_limit})
        self.size_limit = size_limit
        self.compaction_percentage = compaction_percentage
        self._time_func = time_func
        # insertion order doubles as recency order: reads move entries to the end
        self._entries: "OrderedDict[str, _CacheEntry]" = OrderedDict()
        self._total_weight = 0
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _drop(self, key: str) -> None:
        """Remove an entry and release its weight. Caller holds the lock."""
        entry = self._entries.pop(key, None)
        if entry is not None:
            self._total_weight -= entry.weight

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, refreshing its sliding TTL, or None if missing/expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            now = self._time_func()
            if entry.is_expired(now):
                self._drop(key)
                self._misses += 1
                return None
            entry.touch(now)
            self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, options: CacheEntryOptions) -> bool:
        """Insert or replace an entry, evicting others if the budget is exceeded."""
        if options.weight > self.size_limit:
            logger.warning(
                "Cache entry heavier than the whole budget; not stored",
                extra={"key": key, "weight": options.weight, "size_limit": self.size_limit},
            )
            self.remove(key)
            return False

        with self._lock:
            now = self._time_func()
            absolute_expiry = now + options.absolute_ttl_seconds
            expires_at = absolute_expiry
            if options.sliding_ttl_seconds is not None:
                expires_at = min(absolute_expiry, now + options.sliding_ttl_seconds)

            self._drop(key)
            self._entries[key] = _CacheEntry(
                value=value,
                absolute_expiry=absolute_expiry,
                sliding_ttl=options.sliding_ttl_seconds,
                expires_at=expires_at,
                weight=options.weight,
                priority=options.priority,
            )
            self._total_weight += options.weight

            if self._total_weight > self.size_limit:
                self._compact(now, protected_key=key)
            return True

    def _compact(self, now: float, *, protected_key: str) -> None:
        """Evict until the store is back under budget. Caller holds the lock."""
        for key in [k for k, e in self._entries.items() if e.is_expired(now)]:
            self._drop(key)
            self._evictions += 1

        if self._total_weight <= self.size_limit:
            return

        target = int(self.size_limit * (1.0 - self.compaction_percentage))
        # position in the OrderedDict is the recency rank (0 = least recently used)
        candidates = sorted(
            ((entry.priority, rank, key) for rank, (key, entry) in enumerate(self._entries.items())
             if key != protected_key),
        )
        evicted = 0
        for _priority, _rank, key in candidates:
            if self._total_weight <= target:
                break
            self._drop(key)
            evicted += 1
        self._evictions += evicted

        logger.info(
            "Cache compacted",
            extra={"evicted": evicted, "total_weight": self._total_weight, "size_limit": self.size_limit},
        )

    def remove(self, key: str) -> None:
        """Remove an entry if it exists."""
        with self._lock:
            self._drop(key)

    def clear(self) -> None:
        """Clear all entries."""
        with self._lock:
            self._entries.clear()
            self._total_weight = 0

    def stats(self) -> CacheStats:
        """Return a snapshot of size and hit/miss counters."""
        with self._lock:
            return CacheStats(
                entries=len(self._entries),
                total_weight=self._total_weight,
                size_limit=self.size_limit,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
            )
