"""toolguard - resilient execution pipeline for tool handlers.

Wraps bare tool handlers with timeout enforcement, retry with backoff, circuit
breaking, response caching, validation and observability, always composed in
the same order:

    Observability -> Caching/Circuit -> Validation -> Resilience -> base handler

Quick Start:
    >>> from toolguard import ToolDefinition, ToolFactory
    >>>
    >>> async def lookup(params, ctx):
    ...     return await ctx.service("db").fetch(params["id"])
    >>>
    >>> factory = ToolFactory(services={"db": db})
    >>> factory.register(ToolDefinition("lookup", "Fetch a row by id", lookup))
    >>> handler = factory.create("lookup", maxRetries=2, enableCaching=True, cacheTTLMs=5000)
    >>> await handler({"id": 42})

Record Tools:
    >>> from toolguard import CommandQueue, InMemoryRecordStore, register_record_tools
    >>> factory = ToolFactory(services={"store": InMemoryRecordStore(), "command_queue": CommandQueue()})
    >>> register_record_tools(factory)
    >>> await factory.call("create_record", {"content": "hello"})

Configuration:
    Defaults come from TOOLGUARD_* environment variables (see
    toolguard.foundation.config); per-tool overrides accept snake_case or
    camelCase option names.
"""

__version__ = "0.3.0"

from .foundation.config import ToolguardSettings, clear_settings_cache, get_settings
from .foundation.core import (
    ToolContext,
    ToolDecorator,
    ToolDefinition,
    ToolHandler,
    applied_decorators,
    compose,
    current_context,
)
from .foundation.errors import (
    AuthenticationError,
    CircuitOpenError,
    CommandStateError,
    ConfigurationError,
    ErrorCode,
    NetworkError,
    NotFoundError,
    RetryExhaustedError,
    ToolError,
    ToolException,
    ToolTimeoutError,
    ValidationError,
    translate_error,
)
from .io.cache import CacheStats, ExpiringCache, make_key
from .runtime.commands import Command, CommandFactory, CommandQueue, InMemoryRecordStore, Record, RecordStore
from .runtime.middleware import (
    CachingConfig,
    CachingDecorator,
    ObservabilityConfig,
    ObservabilityDecorator,
    ResilienceConfig,
    ResilienceDecorator,
    ValidationConfig,
    ValidationDecorator,
    merge_config,
)
from .runtime.observability import MetricsRegistry, ToolMetrics, configure_logging, get_logger
from .runtime.pipeline import PipelineConfig, ToolFactory
from .runtime.resilience import CircuitBreaker
from .runtime.retry import ExponentialBackoff, LinearBackoff, RetryContext
from .tools import REQUIRED_TOOLS, record_tools, register_record_tools

__all__ = [
    "__version__",
    # Core
    "ToolContext", "ToolDecorator", "ToolDefinition", "ToolHandler",
    "applied_decorators", "compose", "current_context",
    # Errors
    "ErrorCode", "ToolError", "ToolException", "translate_error",
    "ValidationError", "NotFoundError", "AuthenticationError", "ToolTimeoutError", "NetworkError",
    "RetryExhaustedError", "CircuitOpenError", "CommandStateError", "ConfigurationError",
    # Settings
    "ToolguardSettings", "get_settings", "clear_settings_cache",
    # Cache
    "ExpiringCache", "CacheStats", "make_key",
    # Layers
    "ObservabilityDecorator", "CachingDecorator", "ValidationDecorator", "ResilienceDecorator",
    "ObservabilityConfig", "CachingConfig", "ValidationConfig", "ResilienceConfig", "merge_config",
    # Resilience
    "CircuitBreaker", "RetryContext", "ExponentialBackoff", "LinearBackoff",
    # Observability
    "MetricsRegistry", "ToolMetrics", "configure_logging", "get_logger",
    # Pipeline
    "PipelineConfig", "ToolFactory",
    # Commands
    "Command", "CommandFactory", "CommandQueue", "Record", "RecordStore", "InMemoryRecordStore",
    # Record tools
    "REQUIRED_TOOLS", "record_tools", "register_record_tools",
]
