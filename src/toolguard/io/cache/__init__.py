"""Generic expiring cache (LRU + per-entry TTL).

The pipeline factory owns two instances: a call cache for tool results (short
TTL) and a catalog cache for tool listings (long TTL).
"""

from .cache import DEFAULT_MAX_SIZE, DEFAULT_TTL_MS, CacheEntry, CacheStats, ExpiringCache, make_key

__all__ = [
    "DEFAULT_MAX_SIZE",
    "DEFAULT_TTL_MS",
    "CacheEntry",
    "CacheStats",
    "ExpiringCache",
    "make_key",
]
