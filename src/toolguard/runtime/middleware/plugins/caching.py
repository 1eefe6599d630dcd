"""Caching / circuit layer.

Order inside the layer: circuit check, cache lookup, inner call, breaker
bookkeeping, store on success. An open circuit therefore rejects calls even
when a cached answer exists, and failures are never cached.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, ClassVar

import orjson

from toolguard.foundation.core import ToolDefinition, ToolHandler, current_context, decorated
from toolguard.io.cache import ExpiringCache, make_key
from toolguard.runtime.middleware.config import CachingConfig
from toolguard.runtime.observability.metrics import MetricsRegistry
from toolguard.runtime.resilience import CircuitBreaker

logger = logging.getLogger("toolguard.middleware")

_MISSING = object()


@dataclass(slots=True)
class CachingDecorator:
    """Serve repeated calls from cache and fail fast for failing tools.

    Mutating tools are never cached; they still go through the breaker.

    Args:
        config: Cache TTL/size and breaker settings
        cache: Shared call cache. When None a private cache sized by the
            config is created per wrapped tool
        breakers: Registry of per-tool breakers (shared with the factory so
            circuits can be inspected and reset)
        metrics: Receives cache hit/miss counts
        clock: Time source for breakers and private caches, seconds

    Example:
        >>> layer = CachingDecorator(CachingConfig(enableCaching=True, cacheTTLMs=5000))
        >>> handler = layer.wrap(inner, definition)
    """

    name: ClassVar[str] = "caching"

    config: CachingConfig = field(default_factory=CachingConfig)
    cache: ExpiringCache[Any] | None = None
    breakers: dict[str, CircuitBreaker] = field(default_factory=dict)
    metrics: MetricsRegistry | None = None
    clock: Callable[[], float] | None = None

    def breaker_for(self, tool: str) -> CircuitBreaker:
        if (breaker := self.breakers.get(tool)) is None:
            cfg = self.config
            kw = {} if self.clock is None else {"clock": self.clock}
            breaker = self.breakers[tool] = CircuitBreaker(
                tool, cfg.failure_threshold, cfg.recovery_timeout_ms, **kw,
            )
        return breaker

    def wrap(self, handler: ToolHandler, definition: ToolDefinition) -> ToolHandler:
        cfg, tool, metrics = self.config, definition.name, self.metrics
        breaker = self.breaker_for(tool) if cfg.enable_circuit_breaker else None
        cache: ExpiringCache[Any] | None = None
        if cfg.enable_caching and not definition.mutating:
            cache = self.cache if self.cache is not None else ExpiringCache(
                cfg.cache_max_size, cfg.cache_ttl_ms, clock=self.clock or time.monotonic, name=f"{tool}_cache",
            )

        async def cached(params: Any) -> Any:
            ctx = current_context()
            if breaker is not None:
                breaker.before_call()

            store, key = cache, None
            if store is not None:
                try:
                    key = make_key(tool, params)
                except orjson.JSONEncodeError as e:
                    logger.debug("[%s] Params not cacheable, calling through: %s", tool, e)
                    store = None
            if store is not None:
                hit = store.get(key, _MISSING)
                if metrics is not None:
                    metrics.record_cache(tool, hit=hit is not _MISSING)
                if ctx is not None:
                    ctx["cache_hit"] = hit is not _MISSING
                if hit is not _MISSING:
                    logger.debug("[%s] Cache hit", tool)
                    return hit

            try:
                result = await handler(params)
            except Exception:
                if breaker is not None:
                    breaker.record_failure()
                    _report_circuit(breaker)
                raise
            if breaker is not None:
                breaker.record_success()
                _report_circuit(breaker)
            if store is not None:
                store.set(key, result, ttl_ms=cfg.cache_ttl_ms)
            return result

        return decorated(handler, cached, self.name, cfg)


def _report_circuit(breaker: CircuitBreaker) -> None:
    if (ctx := current_context()) is not None:
        state = breaker.state
        ctx.update(circuit_state=state.state.name, circuit_failures=state.consecutive_failures)
