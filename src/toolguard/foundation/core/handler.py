"""Tool handlers, tool definitions and the call-scoped context.

A ToolHandler is the one signature every layer shares: one opaque input, one
awaited result, failures raised. Definitions hold the *base* handler, which
additionally receives the ToolContext injected for the call.
"""

from __future__ import annotations

import asyncio
import inspect
import time
import uuid
from collections.abc import Awaitable, Callable, Mapping
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeAlias

from pydantic import BaseModel

if TYPE_CHECKING:
    from contextvars import Token

# (params) -> result; the shape a transport sees
ToolHandler: TypeAlias = Callable[[Any], Awaitable[Any]]

# (params, context) -> result, sync or async; supplied by tool authors
BaseHandler: TypeAlias = Callable[[Any, "ToolContext"], Any]

# (params) -> validated params, raising ValidationError
Validator: TypeAlias = Callable[[Any], Any]


@dataclass(slots=True)
class ToolContext:
    """Execution context for one tool call.

    Created at the outermost edge of the pipeline, before any decorator runs,
    and visible to every layer through `current_context()`. Layers report state
    outward through the item interface:

        >>> ctx = ToolContext(tool_name="get_record")
        >>> ctx["cache_hit"] = True
        >>> ctx.get("cache_hit")
        True
    """

    tool_name: str
    services: Mapping[str, Any] = field(default_factory=dict)
    request_id: str = field(default_factory=lambda: f"req_{uuid.uuid4().hex[:16]}")
    timestamp: float = field(default_factory=time.time)
    data: dict[str, object] = field(default_factory=dict)

    def __getitem__(self, key: str) -> object:
        return self.data[key]

    def __setitem__(self, key: str, value: object) -> None:
        self.data[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self.data

    def get(self, key: str, default: object = None) -> object:
        return self.data.get(key, default)

    def update(self, **kw: object) -> None:
        self.data.update(kw)

    def service(self, name: str) -> Any:
        """Look up a shared collaborator handle (store, clients, ...)."""
        try:
            return self.services[name]
        except KeyError:
            raise LookupError(f"Service not available in tool context: {name}") from None


_current: ContextVar[ToolContext | None] = ContextVar("toolguard_call_context", default=None)


def current_context() -> ToolContext | None:
    """Context of the call being executed, or None outside a pipeline call."""
    return _current.get()


def bind_context(ctx: ToolContext) -> Token[ToolContext | None]:
    return _current.set(ctx)


def unbind_context(token: Token[ToolContext | None]) -> None:
    _current.reset(token)


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    """A named tool: base handler plus the metadata the pipeline needs.

    Args:
        name: Unique tool name (registration key)
        description: Human-readable description for tool catalogs
        handler: Base handler `(params, context) -> result`, sync or async
        params_schema: Optional pydantic model used by the validation layer
        validator: Optional callable used instead of (or after) params_schema
        mutating: Whether the tool changes state (never cached by default)
        tags: Free-form labels for catalogs
    """

    name: str
    description: str
    handler: BaseHandler
    params_schema: type[BaseModel] | None = None
    validator: Validator | None = None
    mutating: bool = False
    tags: tuple[str, ...] = ()

    def input_schema(self) -> dict[str, Any]:
        """JSON schema of the parameters, empty object schema when unspecified."""
        if self.params_schema is None:
            return {"type": "object"}
        return self.params_schema.model_json_schema()

    def describe(self) -> dict[str, Any]:
        """Catalog entry for this tool."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema(),
            "mutating": self.mutating,
            "tags": list(self.tags),
        }


async def invoke(func: Callable[..., Any], *args: Any) -> Any:
    """Run a sync or async callable, off-loading sync work to a thread."""
    if inspect.iscoroutinefunction(func) or inspect.iscoroutinefunction(getattr(func, "__call__", None)):
        return await func(*args)
    result = await asyncio.to_thread(func, *args)
    # Sync callables may still hand back an awaitable
    if inspect.isawaitable(result):
        return await result
    return result
