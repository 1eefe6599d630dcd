"""Tests for tool registration, chain assembly and context injection."""

from __future__ import annotations

from typing import Any

import pytest

from toolguard.foundation.core import (
    ToolContext,
    ToolDefinition,
    applied_decorators,
    current_context,
    decorator_config,
)
from toolguard.foundation.errors import ConfigurationError, NetworkError, ToolException
from toolguard.foundation.testing import ScriptedHandler
from toolguard.runtime.commands import InMemoryRecordStore
from toolguard.runtime.middleware import ResilienceConfig
from toolguard.runtime.pipeline import PipelineConfig, ToolFactory


def _echo(params: Any, ctx: ToolContext) -> Any:
    return params


@pytest.fixture
def echo(factory: ToolFactory) -> ToolDefinition:
    definition = ToolDefinition("echo", "Return the input", _echo, tags=("debug",))
    factory.register(definition)
    return definition


# ─────────────────────────────────────────────────────────────────────────────
# Context injection
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_handler_receives_fresh_context(factory: ToolFactory, store: InMemoryRecordStore) -> None:
    handler = ScriptedHandler()
    factory.register(ToolDefinition("probe", "Record its context", handler))
    call = factory.create("probe")

    await call({"n": 1})
    await call({"n": 2})

    first, second = (inv.context for inv in handler.invocations)
    assert first.tool_name == "probe"
    assert first.service("store") is store
    assert first.request_id.startswith("req_")
    assert first.request_id != second.request_id
    assert current_context() is None


@pytest.mark.asyncio
async def test_layers_share_the_call_context(factory: ToolFactory) -> None:
    handler = ScriptedHandler([ConnectionError("blip")], result="ok")
    factory.register(ToolDefinition("probe", "Record its context", handler))

    await factory.create("probe", maxRetries=1, retryDelayMs=10)({})

    ctx = handler.last_context
    assert ctx is not None
    assert ctx["retry_attempts"] == 2
    assert ctx["retry_delay_ms"] == pytest.approx(10.0)


@pytest.mark.asyncio
async def test_sync_handlers_are_supported(factory: ToolFactory, echo: ToolDefinition) -> None:
    assert await factory.call("echo", {"x": 1}) == {"x": 1}


# ─────────────────────────────────────────────────────────────────────────────
# Assembly
# ─────────────────────────────────────────────────────────────────────────────


def test_layer_order_outermost_first(factory: ToolFactory, echo: ToolDefinition) -> None:
    call = factory.create("echo", enableCaching=True)
    assert applied_decorators(call) == ["observability", "caching", "validation", "resilience"]


def test_disabled_layers_are_left_out(factory: ToolFactory, echo: ToolDefinition) -> None:
    assert applied_decorators(factory.create("echo")) == ["observability", "validation", "resilience"]

    bare = factory.create("echo", enableLogging=False, enableMetrics=False, enableValidation=False)
    assert applied_decorators(bare) == ["resilience"]


def test_overrides_reach_their_layer(factory: ToolFactory, echo: ToolDefinition) -> None:
    call = factory.create("echo", max_retries=1, timeoutMs=500, enableCircuitBreaker=True)

    resilience = decorator_config(call, "resilience")
    assert isinstance(resilience, ResilienceConfig)
    assert (resilience.max_retries, resilience.timeout_ms) == (1, 500)
    assert decorator_config(call, "caching") is not None
    assert decorator_config(factory.create("echo"), "caching") is None


def test_unknown_tool(factory: ToolFactory) -> None:
    with pytest.raises(ConfigurationError, match="Unknown tool: nope"):
        factory.create("nope")


@pytest.mark.parametrize("overrides", [{"maxRetry": 1}, {"maxRetries": 11}, {"retryBackoff": "fibonacci"}])
def test_invalid_overrides_fail_at_build_time(
    factory: ToolFactory, echo: ToolDefinition, overrides: dict[str, Any],
) -> None:
    with pytest.raises(ConfigurationError):
        factory.create("echo", **overrides)


def test_require_lists_every_missing_tool(factory: ToolFactory, echo: ToolDefinition) -> None:
    factory.require(["echo"])
    with pytest.raises(ConfigurationError) as info:
        factory.require(["echo", "search", "fetch"])
    assert str(info.value) == "Missing required tools: search, fetch"


# ─────────────────────────────────────────────────────────────────────────────
# Registry
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_reregistering_replaces_handler(factory: ToolFactory) -> None:
    factory.register(ToolDefinition("greet", "v1", ScriptedHandler(result="hello")))
    assert await factory.call("greet", {}) == "hello"

    factory.register(ToolDefinition("greet", "v2", ScriptedHandler(result="bonjour")))
    assert await factory.call("greet", {}) == "bonjour"
    assert len(factory) == 1


@pytest.mark.asyncio
async def test_unregister(factory: ToolFactory, echo: ToolDefinition) -> None:
    assert "echo" in factory
    assert factory.unregister("echo") is True
    assert factory.unregister("echo") is False
    assert factory.names() == []


def test_get_reuses_built_handler(factory: ToolFactory, echo: ToolDefinition) -> None:
    assert factory.get("echo") is factory.get("echo")
    assert factory.create("echo") is not factory.create("echo")


def test_create_all(factory: ToolFactory, echo: ToolDefinition) -> None:
    factory.register(ToolDefinition("other", "Another tool", _echo))
    handlers = factory.create_all()
    assert sorted(handlers) == ["echo", "other"]
    assert handlers["echo"] is factory.get("echo")


def test_catalog_is_cached_and_refreshed_on_register(factory: ToolFactory, echo: ToolDefinition) -> None:
    catalog = factory.catalog()
    assert catalog == [{
        "name": "echo",
        "description": "Return the input",
        "inputSchema": {"type": "object"},
        "mutating": False,
        "tags": ["debug"],
    }]
    factory.catalog()
    assert factory.catalog_cache.stats().hits == 1

    factory.register(ToolDefinition("other", "Another tool", _echo))
    assert [entry["name"] for entry in factory.catalog()] == ["echo", "other"]


@pytest.mark.asyncio
async def test_reset_clears_runtime_state(factory: ToolFactory) -> None:
    factory.register(ToolDefinition("fetch", "Fetch", ScriptedHandler(result=ConnectionError("down"))))
    call = factory.create("fetch", enableCircuitBreaker=True, failureThreshold=1, enableRetry=False)
    with pytest.raises(NetworkError):
        await call({})
    before = factory.get("fetch")

    factory.reset()

    assert factory.circuit_state("fetch") is None
    assert factory.metrics("fetch").total_calls == 0
    assert factory.get("fetch") is not before
    assert factory.names() == ["fetch"]


# ─────────────────────────────────────────────────────────────────────────────
# Fallback and defaults
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_fallback_through_factory(factory: ToolFactory) -> None:
    factory.register(ToolDefinition("fetch", "Fetch", ScriptedHandler(result=ConnectionError("down"))))

    def cached_copy(params: Any, error: ToolException) -> str:
        return f"stale:{error.code}"

    call = factory.create("fetch", fallback=cached_copy, enableRetry=False)
    assert await call({}) == "stale:NETWORK_ERROR"


def test_defaults_come_from_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TOOLGUARD_PIPELINE_MAX_RETRIES", "1")
    monkeypatch.setenv("TOOLGUARD_CACHE_CALL_MAX_SIZE", "7")

    factory = ToolFactory()

    assert factory.config.resilience.max_retries == 1
    assert factory.call_cache.max_size == 7
    assert factory.config == PipelineConfig.from_settings()


@pytest.mark.asyncio
async def test_passed_config_sizes_shared_cache() -> None:
    factory = ToolFactory(config=PipelineConfig().merged({"enableCaching": True, "cacheMaxSize": 2}))
    factory.register(ToolDefinition("echo", "Echo", _echo))

    for n in range(5):
        await factory.call("echo", {"n": n})

    assert factory.call_cache.max_size == 2
    assert factory.cache_stats().size == 2
    assert factory.cache_stats().evictions == 3
