"""Decoration primitive: turning one ToolHandler into another.

A decorator never mutates the handler it wraps. `wrap` returns a new handler
with the same signature that may run pre-logic, call the wrapped handler zero
or more times, run post-logic and return or re-raise. Chains are built once at
startup by `compose`, first decorator = outermost.
"""

from __future__ import annotations

from collections.abc import Sequence
from functools import update_wrapper
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import BaseModel

from .handler import ToolDefinition, ToolHandler

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


@runtime_checkable
class ToolDecorator(Protocol):
    """Protocol for pipeline layers.

    Example:
        >>> class TimingDecorator:
        ...     name = "timing"
        ...     def wrap(self, handler, definition):
        ...         async def timed(params):
        ...             start = time.perf_counter()
        ...             try:
        ...                 return await handler(params)
        ...             finally:
        ...                 print(definition.name, time.perf_counter() - start)
        ...         return timed
    """

    name: str

    def wrap(self, handler: ToolHandler, definition: ToolDefinition) -> ToolHandler:
        """Return a new handler adding one behavior around `handler`."""
        ...


def decorated(
    inner: ToolHandler,
    outer: Callable[[Any], Awaitable[Any]],
    layer: str,
    config: BaseModel | None = None,
) -> ToolHandler:
    """Stamp `outer` as a wrapper of `inner` and record the applied layer.

    Keeps `__wrapped__` pointing at the inner handler so the chain can be
    walked, and accumulates `(layer, config)` pairs outermost-first.
    """
    update_wrapper(outer, inner, assigned=("__name__", "__qualname__", "__doc__"), updated=())
    outer.__wrapped__ = inner  # type: ignore[attr-defined]
    inner_layers: tuple[tuple[str, BaseModel | None], ...] = getattr(inner, "__toolguard_layers__", ())
    outer.__toolguard_layers__ = ((layer, config), *inner_layers)  # type: ignore[attr-defined]
    return outer


def applied_decorators(handler: ToolHandler) -> list[str]:
    """Names of the layers around a composed handler, outermost first."""
    return [name for name, _ in getattr(handler, "__toolguard_layers__", ())]


def decorator_config(handler: ToolHandler, layer: str) -> BaseModel | None:
    """Config a given layer was built with, or None when the layer is absent."""
    for name, config in getattr(handler, "__toolguard_layers__", ()):
        if name == layer:
            return config
    return None


def compose(
    decorators: Sequence[ToolDecorator],
    base: ToolHandler,
    definition: ToolDefinition,
) -> ToolHandler:
    """Compose decorators around a base handler.

    Args:
        decorators: Ordered layers (first = outermost)
        base: Innermost handler
        definition: Tool the chain is built for

    Returns:
        Composed handler with the base handler's signature
    """
    chain = base
    for deco in reversed(decorators):
        chain = deco.wrap(chain, definition)
    return chain
