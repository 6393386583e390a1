"""Cache storage backends."""

from .base import CacheEntryOptions, CachePriority, CacheStats, CacheStore
from .memory import InMemoryCacheStore

__all__ = [
    "CacheEntryOptions",
    "CachePriority",
    "CacheStats",
    "CacheStore",
    "InMemoryCacheStore",
]
