"""Shared protocol and option types for cache store backends."""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Optional, Protocol


class CachePriority(IntEnum):
    """Eviction-order hint. Lower priorities are evicted first."""
    LOW = 0
    NORMAL = 1
    HIGH = 2


@dataclass(frozen=True)
class CacheEntryOptions:
    """Per-entry expiry and budget settings."""
    absolute_ttl_seconds: float
    sliding_ttl_seconds: float | None = None
    weight: int = 1
    priority: CachePriority = CachePriority.NORMAL

    def __post_init__(self) -> None:
        if self.absolute_ttl_seconds <= 0:
            raise ValueError("absolute_ttl_seconds must be positive")
        if self.sliding_ttl_seconds is not None and self.sliding_ttl_seconds <= 0:
            raise ValueError("sliding_ttl_seconds must be positive when set")
        if self.weight < 1:
            raise ValueError("weight must be at least 1")


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time counters for a cache store."""
    entries: int
    total_weight: int
    size_limit: int
    hits: int
    misses: int
    evictions: int


class CacheStore(Protocol):
    """Protocol for key/value stores shared by the fetchers."""
    def get(self, key: str) -> Optional[Any]:
        """Return the live value for `key`, or None if missing or expired."""

    def set(self, key: str, value: Any, options: CacheEntryOptions) -> bool:
        """Store `value` under `key`; return False if it could not be admitted."""

    def remove(self, key: str) -> None:
        """Drop `key` without raising if it is absent."""

    def clear(self) -> None:
        """Drop every entry."""

    def stats(self) -> CacheStats:
        """Return current counters."""
