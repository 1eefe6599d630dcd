"""Tests for the expiring LRU cache."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest
from pydantic import BaseModel

from toolguard.foundation.testing import FakeClock
from toolguard.io.cache import ExpiringCache, make_key


@pytest.fixture
def cache(clock: FakeClock) -> ExpiringCache[str]:
    return ExpiringCache(max_size=3, ttl_ms=5000, clock=clock)


def test_get_and_set(cache: ExpiringCache[str]) -> None:
    cache.set("a", "1")
    assert cache.get("a") == "1"
    assert cache.get("missing") is None
    assert cache.get("missing", "default") == "default"


def test_size_never_exceeds_max(cache: ExpiringCache[str]) -> None:
    """Bound holds after every insert, whatever the insertion pattern."""
    for i in range(20):
        cache.set(f"k{i}", str(i))
        assert len(cache) <= cache.max_size
    assert cache.stats().evictions == 17


def test_lru_evicts_least_recently_accessed(cache: ExpiringCache[str]) -> None:
    cache.set("a", "1")
    cache.set("b", "2")
    cache.set("c", "3")
    cache.get("a")  # b is now least recently accessed
    cache.set("d", "4")

    assert "b" not in cache
    assert cache.keys() == ["c", "a", "d"]


def test_lru_ties_fall_back_to_insertion_order(cache: ExpiringCache[str]) -> None:
    """Never-read entries are evicted oldest-inserted first."""
    for key in ("a", "b", "c", "d", "e"):
        cache.set(key, key)
    assert cache.keys() == ["c", "d", "e"]


def test_overwrite_refreshes_position_without_growing(cache: ExpiringCache[str]) -> None:
    cache.set("a", "1")
    cache.set("b", "2")
    cache.set("a", "updated")
    cache.set("c", "3")
    cache.set("d", "4")

    assert cache.get("a") == "updated"
    assert "b" not in cache
    assert len(cache) == 3


def test_ttl_expiry(cache: ExpiringCache[str], clock: FakeClock) -> None:
    cache.set("a", "1")
    clock.advance(5.0)
    assert cache.get("a") == "1"  # expiry is strictly after ttl

    clock.advance(0.001)
    assert cache.get("a") is None
    stats = cache.stats()
    assert stats.expirations == 1
    assert stats.misses == 1


def test_per_entry_ttl(cache: ExpiringCache[str], clock: FakeClock) -> None:
    cache.set("short", "x", ttl_ms=100)
    cache.set("long", "y")
    clock.advance(1.0)

    assert cache.get("short") is None
    assert cache.get("long") == "y"


def test_expired_entries_purged_before_eviction(cache: ExpiringCache[str], clock: FakeClock) -> None:
    cache.set("old", "x", ttl_ms=100)
    cache.set("a", "1")
    cache.set("b", "2")
    clock.advance(1.0)
    cache.set("c", "3")

    assert cache.keys() == ["a", "b", "c"]
    assert cache.stats().evictions == 0


def test_stats_hit_rate(cache: ExpiringCache[str]) -> None:
    cache.set("a", "1")
    cache.get("a")
    cache.get("a")
    cache.get("b")

    stats = cache.stats()
    assert (stats.hits, stats.misses) == (2, 1)
    assert stats.hit_rate == pytest.approx(2 / 3)
    assert stats.model_dump()["hit_rate"] == pytest.approx(2 / 3)


def test_peek_does_not_touch_order_or_counters(cache: ExpiringCache[str]) -> None:
    cache.set("a", "1")
    cache.set("b", "2")
    entry = cache.peek("a")

    assert entry is not None and entry.value == "1"
    assert cache.keys() == ["a", "b"]
    assert cache.stats().hits == 0


def test_invalidate_prefix_and_pattern() -> None:
    cache: ExpiringCache[int] = ExpiringCache(max_size=10)
    for key in ("user:1", "user:2", "order:1", "order:22"):
        cache.set(key, 1)

    assert cache.invalidate_prefix("user:") == 2
    assert cache.invalidate_pattern(r":\d{2}$") == 1
    assert cache.keys() == ["order:1"]


def test_delete_and_clear(cache: ExpiringCache[str]) -> None:
    cache.set("a", "1")
    assert cache.delete("a") is True
    assert cache.delete("a") is False

    cache.set("b", "2")
    cache.get("b")
    cache.clear()
    assert len(cache) == 0
    assert cache.stats().hits == 0


def test_invalid_construction() -> None:
    with pytest.raises(ValueError):
        ExpiringCache(max_size=0)
    with pytest.raises(ValueError):
        ExpiringCache(ttl_ms=0)


class _Query(BaseModel):
    q: str
    limit: int = 5


def test_make_key_is_order_independent() -> None:
    assert make_key("search", {"a": 1, "b": 2}) == make_key("search", {"b": 2, "a": 1})
    assert make_key("search", {"a": 1}) != make_key("other", {"a": 1})
    assert make_key("search", _Query(q="x")) == make_key("search", {"q": "x", "limit": 5})
    assert make_key("search", {"a": 1}).startswith("search:")


def test_concurrent_threads_keep_cache_consistent() -> None:
    cache: ExpiringCache[int] = ExpiringCache(max_size=16, ttl_ms=60_000)
    workers, rounds = 8, 500

    def hammer(worker: int) -> int:
        gets = 0
        for i in range(rounds):
            key = f"k{(worker * 7 + i) % 40}"
            cache.set(key, i)
            cache.get(key)
            cache.get(f"k{i % 40}")
            gets += 2
            assert len(cache) <= cache.max_size
        return gets

    with ThreadPoolExecutor(max_workers=workers) as pool:
        total_gets = sum(pool.map(hammer, range(workers)))

    stats = cache.stats()
    keys = cache.keys()
    assert stats.size == len(keys) == len(set(keys)) <= cache.max_size
    assert all(cache.peek(k) is not None for k in keys)
    assert stats.hits + stats.misses == total_gets == workers * rounds * 2
