"""Observability layer: structured call logging and metrics.

Outermost layer. It sees every call, including cache hits and calls rejected
by an open circuit, and measures latency as the caller experiences it.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, ClassVar

from pydantic import BaseModel

from toolguard.foundation.core import ToolDefinition, ToolHandler, current_context, decorated
from toolguard.foundation.errors import classify_exception
from toolguard.runtime.middleware.config import ObservabilityConfig
from toolguard.runtime.observability.logging import BoundLogger, get_logger
from toolguard.runtime.observability.metrics import MetricsRegistry

SENSITIVE_KEYS: tuple[str, ...] = ("password", "token", "secret", "key", "auth")
REDACTED = "[REDACTED]"


def sanitize(value: Any, max_length: int = 1000) -> Any:
    """Redact sensitive fields (recursively) and truncate long strings."""
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    if isinstance(value, dict):
        return {
            k: REDACTED if any(s in str(k).lower() for s in SENSITIVE_KEYS) else sanitize(v, max_length)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [sanitize(v, max_length) for v in value]
    if isinstance(value, str) and len(value) > max_length:
        return f"{value[:max_length]}... [truncated]"
    return value


@dataclass(slots=True)
class ObservabilityDecorator:
    """Log start/success/failure of each call and record per-tool metrics.

    Logs at INFO for successful calls, WARNING for slow ones (above
    slow_threshold_ms) and ERROR for failures. Cache hits (reported by the
    caching layer through the call context) are counted but kept out of the
    response-time statistics.

    Example:
        >>> layer = ObservabilityDecorator(ObservabilityConfig(slowThresholdMs=500), metrics=registry)
    """

    name: ClassVar[str] = "observability"

    config: ObservabilityConfig = field(default_factory=ObservabilityConfig)
    metrics: MetricsRegistry = field(default_factory=MetricsRegistry)
    log: BoundLogger = field(default_factory=lambda: get_logger("toolguard.pipeline"))

    def wrap(self, handler: ToolHandler, definition: ToolDefinition) -> ToolHandler:
        cfg, tool = self.config, definition.name
        log = self.log.bind(tool=tool)

        async def observed(params: Any) -> Any:
            if cfg.enable_logging:
                extra = {"params": sanitize(params, cfg.max_log_length)} if cfg.log_params else {}
                log.debug("tool call started", **extra)
            start = time.perf_counter()
            try:
                result = await handler(params)
            except Exception as e:
                duration_ms = (time.perf_counter() - start) * 1000
                code = classify_exception(e)
                if cfg.enable_metrics:
                    self.metrics.record_call(tool, duration_ms, success=False)
                if cfg.enable_logging:
                    log.error(
                        "tool call failed",
                        duration_ms=round(duration_ms, 2),
                        error_code=code.value,
                        error=str(e)[: cfg.max_log_length],
                    )
                raise
            duration_ms = (time.perf_counter() - start) * 1000
            ctx = current_context()
            cached = bool(ctx is not None and ctx.get("cache_hit"))
            if cfg.enable_metrics:
                self.metrics.record_call(tool, duration_ms, success=True, cached=cached)
            if cfg.enable_logging:
                fields: dict[str, object] = {"duration_ms": round(duration_ms, 2), "cache_hit": cached}
                if ctx is not None and "retry_attempts" in ctx:
                    fields["attempts"] = ctx["retry_attempts"]
                if duration_ms > cfg.slow_threshold_ms:
                    log.warning("slow tool call", threshold_ms=cfg.slow_threshold_ms, **fields)
                else:
                    log.info("tool call succeeded", **fields)
            return result

        return decorated(handler, observed, self.name, cfg)
