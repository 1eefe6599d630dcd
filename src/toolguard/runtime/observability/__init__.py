"""Observability: structured logging and per-tool metrics."""

from .logging import (
    BoundLogger,
    ConsoleRenderer,
    JsonRenderer,
    LogEntry,
    LogRenderer,
    MemoryRenderer,
    NoOpRenderer,
    configure_from_settings,
    configure_logging,
    get_logger,
    log_context,
)
from .metrics import MetricsRegistry, ToolMetrics

__all__ = [
    # Logging
    "BoundLogger", "LogEntry", "LogRenderer", "log_context",
    "ConsoleRenderer", "JsonRenderer", "MemoryRenderer", "NoOpRenderer",
    "configure_logging", "configure_from_settings", "get_logger",
    # Metrics
    "MetricsRegistry", "ToolMetrics",
]
