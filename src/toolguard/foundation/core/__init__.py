"""Core abstractions: handlers, definitions, call context and decoration."""

from .decorator import ToolDecorator, applied_decorators, compose, decorated, decorator_config
from .handler import (
    BaseHandler,
    ToolContext,
    ToolDefinition,
    ToolHandler,
    Validator,
    bind_context,
    current_context,
    invoke,
    unbind_context,
)

__all__ = [
    "BaseHandler",
    "ToolContext",
    "ToolDecorator",
    "ToolDefinition",
    "ToolHandler",
    "Validator",
    "applied_decorators",
    "bind_context",
    "compose",
    "current_context",
    "decorated",
    "decorator_config",
    "invoke",
    "unbind_context",
]
