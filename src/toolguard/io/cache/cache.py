"""Bounded in-memory cache with LRU eviction and per-entry TTL.

ExpiringCache is a generic library component, not tool-specific wiring. The
pipeline keeps two independent instances: a call cache keyed by arbitrary call
signatures (short TTL) and a tool catalog cache (long TTL).

Invariants, held under the lock after every operation:
    - len(cache) <= max_size
    - the access order and the key index are the same key set (one OrderedDict)
"""

from __future__ import annotations

import logging
import re
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import orjson
from pydantic import BaseModel, computed_field

logger = logging.getLogger("toolguard.cache")

DEFAULT_TTL_MS: int = 300_000  # 5 minutes
DEFAULT_MAX_SIZE: int = 1000

V = TypeVar("V")
Clock = Callable[[], float]


@dataclass(slots=True)
class CacheEntry(Generic[V]):
    """A cached value with access tracking. Times are clock seconds."""
    value: V
    inserted_at: float
    last_accessed: float
    ttl: float
    access_count: int = 0

    def expired(self, now: float) -> bool:
        # Strictly after insertion + ttl
        return now - self.inserted_at > self.ttl


class CacheStats(BaseModel):
    """Snapshot of cache counters for monitoring."""

    model_config = {"frozen": True}

    size: int
    max_size: int
    hits: int
    misses: int
    evictions: int
    expirations: int

    @computed_field
    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class ExpiringCache(Generic[V]):
    """Thread-safe LRU cache with TTL-based expiration.

    Uses an RLock for synchronization, safe under concurrent access from
    threads and from interleaved asyncio tasks (no awaits while locked).

    Args:
        max_size: Maximum number of entries before LRU eviction
        ttl_ms: Default entry lifetime in milliseconds
        clock: Time source in seconds (monotonic by default)
        name: Label used in logs

    Example:
        >>> cache: ExpiringCache[str] = ExpiringCache(max_size=2, ttl_ms=60_000)
        >>> cache.set("a", "1"); cache.set("b", "2")
        >>> cache.get("a")
        '1'
        >>> cache.set("c", "3")  # evicts "b", the least recently accessed
        >>> cache.get("b") is None
        True
    """

    __slots__ = ("_entries", "_max_size", "_ttl", "_clock", "_lock", "name",
                 "_hits", "_misses", "_evictions", "_expirations")

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        ttl_ms: float = DEFAULT_TTL_MS,
        *,
        clock: Clock = time.monotonic,
        name: str = "cache",
    ) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be positive, got {max_size}")
        if ttl_ms <= 0:
            raise ValueError(f"ttl_ms must be positive, got {ttl_ms}")
        # Least recently accessed first
        self._entries: OrderedDict[str, CacheEntry[V]] = OrderedDict()
        self._max_size = max_size
        self._ttl = ttl_ms / 1000
        self._clock = clock
        self._lock = threading.RLock()
        self.name = name
        self._hits = self._misses = self._evictions = self._expirations = 0

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def ttl_ms(self) -> float:
        return self._ttl * 1000

    def get(self, key: str, default: Any = None) -> V | Any:
        """Return the live value for key, counting a hit or a miss."""
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return default
            if entry.expired(now):
                del self._entries[key]
                self._expirations += 1
                self._misses += 1
                return default
            entry.access_count += 1
            entry.last_accessed = now
            self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    def peek(self, key: str) -> CacheEntry[V] | None:
        """Entry for key without touching access order or counters."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.expired(self._clock()):
                return None
            return entry

    def set(self, key: str, value: V, ttl_ms: float | None = None) -> None:
        """Store value, replacing any existing entry and evicting as needed."""
        with self._lock:
            now = self._clock()
            self._entries.pop(key, None)
            if len(self._entries) >= self._max_size:
                self._purge_expired_unlocked(now)
            while len(self._entries) >= self._max_size:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug("%s: LRU eviction of %s", self.name, evicted)
            self._entries[key] = CacheEntry(
                value=value,
                inserted_at=now,
                last_accessed=now,
                ttl=self._ttl if ttl_ms is None else ttl_ms / 1000,
            )

    def has(self, key: str) -> bool:
        """Whether key holds a live entry. Expired entries are removed."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if entry.expired(self._clock()):
                del self._entries[key]
                self._expirations += 1
                return False
            return True

    __contains__ = has

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every entry and reset counters."""
        with self._lock:
            self._entries.clear()
            self._hits = self._misses = self._evictions = self._expirations = 0
        logger.info("%s: cleared", self.name)

    def invalidate_prefix(self, prefix: str) -> int:
        """Remove entries whose key starts with prefix. Returns count removed."""
        return self._invalidate(lambda k: k.startswith(prefix), prefix=prefix)

    def invalidate_pattern(self, pattern: str | re.Pattern[str]) -> int:
        """Remove entries whose key matches the regex (re.search). Returns count removed."""
        compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
        return self._invalidate(lambda k: compiled.search(k) is not None, pattern=compiled.pattern)

    def _invalidate(self, match: Callable[[str], bool], **log_ctx: str) -> int:
        with self._lock:
            keys = [k for k in self._entries if match(k)]
            for key in keys:
                del self._entries[key]
        logger.info("%s: invalidated %d entries %s", self.name, len(keys), log_ctx)
        return len(keys)

    def purge_expired(self) -> int:
        """Remove every expired entry. Returns count removed."""
        with self._lock:
            return self._purge_expired_unlocked(self._clock())

    def _purge_expired_unlocked(self, now: float) -> int:
        """Caller must hold lock."""
        expired = [k for k, e in self._entries.items() if e.expired(now)]
        for key in expired:
            del self._entries[key]
        self._expirations += len(expired)
        return len(expired)

    def size(self) -> int:
        """Number of live entries (expired ones are purged first)."""
        with self._lock:
            self._purge_expired_unlocked(self._clock())
            return len(self._entries)

    def __len__(self) -> int:
        return self.size()

    def keys(self) -> list[str]:
        """Live keys, least recently accessed first."""
        with self._lock:
            self._purge_expired_unlocked(self._clock())
            return list(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                max_size=self._max_size,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                expirations=self._expirations,
            )

    def __repr__(self) -> str:
        return f"ExpiringCache(name={self.name!r}, max_size={self._max_size}, ttl_ms={self.ttl_ms:g})"


def make_key(tool_name: str, params: Any) -> str:
    """Deterministic cache key from tool name and raw parameters.

    Keys sort mapping fields so `{"a": 1, "b": 2}` and `{"b": 2, "a": 1}`
    collide on purpose. Parameters stay readable in the key, which keeps
    `invalidate_prefix(f"{tool}:")` and pattern invalidation meaningful.
    """
    if isinstance(params, BaseModel):
        params = params.model_dump(mode="json")
    payload = orjson.dumps(params, option=orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS, default=str)
    return f"{tool_name}:{payload.decode()}"
