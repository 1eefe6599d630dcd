"""Per-tool call metrics.

The observability layer records call outcomes and latency, the caching layer
records hits and misses. Cached hits are counted as calls but kept out of the
response-time figures, which describe real executions only.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict


class ToolMetrics(BaseModel):
    """Snapshot of one tool's counters."""

    model_config = ConfigDict(frozen=True)

    tool_name: str
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    average_response_time_ms: float = 0.0
    min_response_time_ms: float | None = None
    max_response_time_ms: float | None = None
    last_execution_time_ms: float | None = None
    cache_hits: int = 0
    cache_misses: int = 0

    @property
    def success_rate(self) -> float:
        return self.successful_calls / self.total_calls if self.total_calls else 0.0

    @property
    def cache_hit_rate(self) -> float:
        total = self.cache_hits + self.cache_misses
        return self.cache_hits / total if total else 0.0


@dataclass(slots=True)
class _Counters:
    total: int = 0
    ok: int = 0
    failed: int = 0
    timed: int = 0
    total_ms: float = 0.0
    min_ms: float | None = None
    max_ms: float | None = None
    last_ms: float | None = None
    hits: int = 0
    misses: int = 0


class MetricsRegistry:
    """Thread-safe metrics keyed by tool name.

    Example:
        >>> registry = MetricsRegistry()
        >>> registry.record_call("search", 12.5, success=True)
        >>> registry.get("search").average_response_time_ms
        12.5
    """

    __slots__ = ("_counters", "_lock")

    def __init__(self) -> None:
        self._counters: dict[str, _Counters] = {}
        self._lock = threading.Lock()

    def _for(self, tool_name: str) -> _Counters:
        """Caller must hold lock."""
        if (c := self._counters.get(tool_name)) is None:
            c = self._counters[tool_name] = _Counters()
        return c

    def record_call(self, tool_name: str, duration_ms: float, *, success: bool, cached: bool = False) -> None:
        with self._lock:
            c = self._for(tool_name)
            c.total += 1
            if success:
                c.ok += 1
            else:
                c.failed += 1
            c.last_ms = duration_ms
            if success and not cached:
                c.timed += 1
                c.total_ms += duration_ms
                c.min_ms = duration_ms if c.min_ms is None else min(c.min_ms, duration_ms)
                c.max_ms = duration_ms if c.max_ms is None else max(c.max_ms, duration_ms)

    def record_cache(self, tool_name: str, *, hit: bool) -> None:
        with self._lock:
            c = self._for(tool_name)
            if hit:
                c.hits += 1
            else:
                c.misses += 1

    def get(self, tool_name: str) -> ToolMetrics:
        with self._lock:
            c = self._counters.get(tool_name) or _Counters()
            return ToolMetrics(
                tool_name=tool_name,
                total_calls=c.total,
                successful_calls=c.ok,
                failed_calls=c.failed,
                average_response_time_ms=c.total_ms / c.timed if c.timed else 0.0,
                min_response_time_ms=c.min_ms,
                max_response_time_ms=c.max_ms,
                last_execution_time_ms=c.last_ms,
                cache_hits=c.hits,
                cache_misses=c.misses,
            )

    def all(self) -> dict[str, ToolMetrics]:
        with self._lock:
            names = list(self._counters)
        return {name: self.get(name) for name in names}

    def reset(self, tool_name: str | None = None) -> None:
        with self._lock:
            if tool_name is None:
                self._counters.clear()
            else:
                self._counters.pop(tool_name, None)
