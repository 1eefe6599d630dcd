"""Tool factory: registration, chain assembly and call-context injection.

Every tool gets the same fixed chain, outermost first:

    Observability -> Caching/Circuit -> Validation -> Resilience -> base handler

Chains are assembled once per tool and reused. The entry point of each chain
binds a fresh ToolContext (services, request id, timestamp) before any layer
runs, so all layers and the base handler see the same call context.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from functools import update_wrapper
from typing import Any

from toolguard.foundation.core import (
    ToolContext,
    ToolDecorator,
    ToolDefinition,
    ToolHandler,
    bind_context,
    compose,
    current_context,
    invoke,
    unbind_context,
)
from toolguard.foundation.errors import ConfigurationError, JsonDict
from toolguard.io.cache import CacheStats, ExpiringCache
from toolguard.runtime.middleware import (
    CachingDecorator,
    ObservabilityDecorator,
    ResilienceDecorator,
    ValidationDecorator,
)
from toolguard.runtime.middleware.plugins.resilience import Fallback
from toolguard.runtime.observability import MetricsRegistry, ToolMetrics
from toolguard.runtime.resilience import CircuitBreaker, CircuitState

from .config import PipelineConfig

logger = logging.getLogger("toolguard.pipeline")

CATALOG_KEY = "catalog"
_PRIVATE_CACHE_KEYS = frozenset({"cache_max_size", "cacheMaxSize"})


def _base_handler(definition: ToolDefinition, services: Mapping[str, Any]) -> ToolHandler:
    """Adapt `(params, context)` to the single-argument handler shape."""
    async def base(params: Any) -> Any:
        ctx = current_context() or ToolContext(tool_name=definition.name, services=services)
        return await invoke(definition.handler, params, ctx)

    base.__name__ = getattr(definition.handler, "__name__", definition.name)
    return base


class ToolFactory:
    """Registry of tool definitions that builds their composed handlers.

    Args:
        services: Shared collaborators exposed to handlers through the call context
        config: Layer defaults (default: from TOOLGUARD_* settings)
        call_cache: Call result cache shared by all tools (default: from settings)
        catalog_cache: Cache for `catalog()` (default: from settings)
        metrics: Metrics registry (default: a new one)
        sleep: Retry delay coroutine, injectable for tests
        clock: Time source in seconds for caches and breakers, injectable for tests

    Example:
        >>> factory = ToolFactory(services={"store": InMemoryRecordStore()})
        >>> factory.register(ToolDefinition("echo", "Echo input", lambda p, ctx: p))
        >>> handler = factory.create("echo", maxRetries=0)
        >>> await handler({"x": 1})
        {'x': 1}
    """

    __slots__ = (
        "services", "config", "call_cache", "catalog_cache", "validation",
        "_metrics", "_breakers", "_sleep", "_clock", "_definitions", "_handlers",
    )

    def __init__(
        self,
        services: Mapping[str, Any] | None = None,
        config: PipelineConfig | None = None,
        *,
        call_cache: ExpiringCache[Any] | None = None,
        catalog_cache: ExpiringCache[Any] | None = None,
        metrics: MetricsRegistry | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] | None = None,
    ) -> None:
        from toolguard.foundation.config import get_settings
        cache_cfg = get_settings().cache
        self.services: dict[str, Any] = dict(services or {})
        self.config = config or PipelineConfig.from_settings()
        cache_clock = clock or time.monotonic
        self.call_cache = call_cache if call_cache is not None else ExpiringCache(
            self.config.caching.cache_max_size, cache_cfg.call_ttl_ms, clock=cache_clock, name="call_cache",
        )
        self.catalog_cache = catalog_cache if catalog_cache is not None else ExpiringCache(
            cache_cfg.catalog_max_size, cache_cfg.catalog_ttl_ms, clock=cache_clock, name="catalog_cache",
        )
        self.validation = ValidationDecorator(self.config.validation)
        self._metrics = metrics or MetricsRegistry()
        self._breakers: dict[str, CircuitBreaker] = {}
        self._sleep = sleep
        self._clock = clock
        self._definitions: dict[str, ToolDefinition] = {}
        self._handlers: dict[str, ToolHandler] = {}

    # ─────────────────────────────────────────────────────────────────
    # Registration
    # ─────────────────────────────────────────────────────────────────

    def register(self, definition: ToolDefinition) -> None:
        """Register a definition. Re-registering a name replaces it and its state."""
        name = definition.name
        if name in self._definitions:
            logger.warning("Tool %s re-registered, replacing previous definition", name)
            self._handlers.pop(name, None)
            self._breakers.pop(name, None)
            self.call_cache.invalidate_prefix(f"{name}:")
        self._definitions[name] = definition
        self.catalog_cache.delete(CATALOG_KEY)
        logger.debug("Registered tool %s", name)

    def register_all(self, definitions: Iterable[ToolDefinition]) -> None:
        for definition in definitions:
            self.register(definition)

    def unregister(self, name: str) -> bool:
        if self._definitions.pop(name, None) is None:
            return False
        self._handlers.pop(name, None)
        self._breakers.pop(name, None)
        self.call_cache.invalidate_prefix(f"{name}:")
        self.catalog_cache.delete(CATALOG_KEY)
        return True

    def definition(self, name: str) -> ToolDefinition:
        try:
            return self._definitions[name]
        except KeyError:
            raise ConfigurationError(f"Unknown tool: {name}") from None

    def names(self) -> list[str]:
        return list(self._definitions)

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def require(self, names: Iterable[str]) -> None:
        """Fail startup unless every named tool is registered.

        Raises:
            ConfigurationError: listing every missing name
        """
        if missing := [n for n in names if n not in self._definitions]:
            raise ConfigurationError(f"Missing required tools: {', '.join(missing)}")

    # ─────────────────────────────────────────────────────────────────
    # Assembly
    # ─────────────────────────────────────────────────────────────────

    def layers(self, config: PipelineConfig, *, private_cache: bool = False,
               fallback: Fallback | None = None) -> list[ToolDecorator]:
        """Decorators for a config, outermost first. Disabled layers are left out."""
        layers: list[ToolDecorator] = []
        if config.observability.active:
            layers.append(ObservabilityDecorator(config.observability, metrics=self._metrics))
        if config.caching.active:
            layers.append(CachingDecorator(
                config.caching,
                cache=None if private_cache else self.call_cache,
                breakers=self._breakers,
                metrics=self._metrics,
                clock=self._clock,
            ))
        if config.validation.enable_validation:
            layers.append(self.validation)
        layers.append(ResilienceDecorator(config.resilience, sleep=self._sleep, fallback=fallback))
        return layers

    def create(self, name: str, *, fallback: Fallback | None = None, **overrides: Any) -> ToolHandler:
        """Build a fresh composed handler for `name`.

        Handlers built for the same tool share one circuit breaker, so state
        seen by `circuit_state` and cleared by `reset_circuit` is the state
        every handler acts on.

        Args:
            name: Registered tool name
            fallback: Called with (params, error) after the final failure
            **overrides: Layer options (snake_case or camelCase) over the defaults

        Raises:
            ConfigurationError: unknown tool or invalid override
        """
        definition = self.definition(name)
        config = self.config.merged(overrides)
        layers = self.layers(
            config, private_cache=bool(_PRIVATE_CACHE_KEYS & overrides.keys()), fallback=fallback,
        )
        chain = compose(layers, _base_handler(definition, self.services), definition)
        logger.debug("Built %s with layers %s", name, [layer.name for layer in layers])
        return self._entry(chain, definition)

    def _entry(self, chain: ToolHandler, definition: ToolDefinition) -> ToolHandler:
        services, tool = self.services, definition.name

        async def call(params: Any) -> Any:
            token = bind_context(ToolContext(tool_name=tool, services=services))
            try:
                return await chain(params)
            finally:
                unbind_context(token)

        # Keeps the chain's layer metadata visible on the entry point
        return update_wrapper(call, chain)

    def get(self, name: str) -> ToolHandler:
        """Handler built with the default config, assembled on first use."""
        if (handler := self._handlers.get(name)) is None:
            handler = self._handlers[name] = self.create(name)
        return handler

    def create_all(self) -> dict[str, ToolHandler]:
        """Default handlers for every registered tool."""
        return {name: self.get(name) for name in self._definitions}

    async def call(self, name: str, params: Any) -> Any:
        return await self.get(name)(params)

    # ─────────────────────────────────────────────────────────────────
    # Catalog, metrics, administration
    # ─────────────────────────────────────────────────────────────────

    def catalog(self) -> list[JsonDict]:
        """Tool descriptions, served from the catalog cache."""
        if (entries := self.catalog_cache.get(CATALOG_KEY)) is None:
            entries = [d.describe() for d in self._definitions.values()]
            self.catalog_cache.set(CATALOG_KEY, entries)
        return entries

    def metrics(self, name: str) -> ToolMetrics:
        return self._metrics.get(name)

    def all_metrics(self) -> dict[str, ToolMetrics]:
        return self._metrics.all()

    def circuit_state(self, name: str) -> CircuitState | None:
        """Breaker state for a tool, None when no breaker was built for it."""
        breaker = self._breakers.get(name)
        return None if breaker is None else breaker.state

    def reset_circuit(self, name: str | None = None) -> None:
        for tool, breaker in self._breakers.items():
            if name is None or tool == name:
                breaker.reset()

    def cache_stats(self) -> CacheStats:
        return self.call_cache.stats()

    def invalidate(self, name: str) -> int:
        """Drop cached results of one tool."""
        return self.call_cache.invalidate_prefix(f"{name}:")

    def reset(self) -> None:
        """Clear caches, circuits, metrics and built handlers (definitions stay)."""
        self.call_cache.clear()
        self.catalog_cache.clear()
        self._metrics.reset()
        self._breakers.clear()
        self._handlers.clear()
