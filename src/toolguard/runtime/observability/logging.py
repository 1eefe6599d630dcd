"""Structured logging for tool calls with call-context propagation.

- Automatic request correlation (tool name and request id of the running call)
- Human-readable dev output, JSON Lines (orjson) for production
- Scoped context via `log_context`

Quick Start:
    >>> from toolguard.runtime.observability import get_logger, configure_logging
    >>> configure_logging(format="console")  # or "json" for production
    >>> log = get_logger("toolguard.pipeline")
    >>> log.info("tool registered", tool="get_record")
"""

from __future__ import annotations

import logging
import sys
import time
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol, TextIO, runtime_checkable

import orjson

from toolguard.foundation.core import current_context
from toolguard.foundation.errors import JsonDict

if TYPE_CHECKING:
    from types import TracebackType

# Bound context shared by every logger inside a `log_context` scope
_log_context: ContextVar[JsonDict] = ContextVar("toolguard_log_context", default={})


# ─────────────────────────────────────────────────────────────────────────────
# Logger
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(slots=True)
class LogEntry:
    """One rendered log line."""

    timestamp: float
    level: str
    event: str
    context: JsonDict

    @property
    def ts_iso(self) -> str:
        return datetime.fromtimestamp(self.timestamp, tz=UTC).isoformat()

    @property
    def ts_human(self) -> str:
        """HH:MM:SS.mmm"""
        return datetime.fromtimestamp(self.timestamp, tz=UTC).strftime("%H:%M:%S.%f")[:-3]


@dataclass(slots=True)
class BoundLogger:
    """Structured logger with bound context.

    Immutable: bind() returns a new logger with merged context.

    Example:
        >>> log = BoundLogger(context={"component": "queue"})
        >>> log.bind(command="create_record").info("executed", duration_ms=1.2)
        # => 10:30:45.123 [info] executed command="create_record" component="queue" duration_ms=1.2
    """

    context: JsonDict = field(default_factory=dict)
    _renderer: LogRenderer | None = None
    _level: int | None = None

    def bind(self, **kw: object) -> BoundLogger:
        return BoundLogger(context={**self.context, **kw}, _renderer=self._renderer, _level=self._level)

    def unbind(self, *keys: str) -> BoundLogger:
        return BoundLogger(
            context={k: v for k, v in self.context.items() if k not in keys},
            _renderer=self._renderer,
            _level=self._level,
        )

    def is_enabled_for(self, level: int) -> bool:
        return level >= (_state.level if self._level is None else self._level)

    def _log(self, level: int, event: str, **kw: object) -> None:
        if not self.is_enabled_for(level):
            return
        # global scope -> bound -> call context -> call-site
        merged: JsonDict = {**_log_context.get(), **self.context, **_call_fields(), **kw}
        entry = LogEntry(time.time(), logging.getLevelName(level).lower(), event, merged)
        (self._renderer or _state.renderer).render(entry)

    def debug(self, event: str, **kw: object) -> None:
        self._log(logging.DEBUG, event, **kw)

    def info(self, event: str, **kw: object) -> None:
        self._log(logging.INFO, event, **kw)

    def warning(self, event: str, **kw: object) -> None:
        self._log(logging.WARNING, event, **kw)

    def error(self, event: str, **kw: object) -> None:
        self._log(logging.ERROR, event, **kw)


def _call_fields() -> JsonDict:
    ctx = current_context()
    return {} if ctx is None else {"tool": ctx.tool_name, "request_id": ctx.request_id}


class log_context:
    """Context manager adding key-value pairs to every entry within the scope.

    Example:
        >>> with log_context(batch="nightly"):
        ...     log.info("processing")  # includes batch
    """

    __slots__ = ("_ctx", "_token")

    def __init__(self, **kw: object) -> None:
        self._ctx: JsonDict = dict(kw)
        self._token: Token[JsonDict] | None = None

    def __enter__(self) -> log_context:
        self._token = _log_context.set({**_log_context.get(), **self._ctx})
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._token is not None:
            _log_context.reset(self._token)


# ─────────────────────────────────────────────────────────────────────────────
# Renderers
# ─────────────────────────────────────────────────────────────────────────────


@runtime_checkable
class LogRenderer(Protocol):
    """Protocol for log output renderers."""

    def render(self, entry: LogEntry) -> None: ...


@dataclass(slots=True)
class ConsoleRenderer:
    """Human-readable console output: `time [level] event key=value ...`"""

    output: TextIO = field(default_factory=lambda: sys.stderr)
    colors: bool | None = None  # None = auto-detect from TTY

    def __post_init__(self) -> None:
        if self.colors is None:
            self.colors = hasattr(self.output, "isatty") and self.output.isatty()

    def render(self, entry: LogEntry) -> None:
        c = _COLORS if self.colors else _NO_COLORS
        parts = [
            f"{c['dim']}{entry.ts_human}{c['reset']}",
            f"{_LEVEL_COLORS.get(entry.level, '') if self.colors else ''}[{entry.level}]{c['reset']}",
            f"{c['bold']}{entry.event}{c['reset']}",
        ]
        parts.extend(
            f"{c['cyan']}{k}{c['reset']}={_format_value(v)}"
            for k, v in sorted(entry.context.items()) if k != "exc_info"
        )
        print(" ".join(parts), file=self.output)
        if "exc_info" in entry.context:
            print(f"{c['red']}{entry.context['exc_info']}{c['reset']}", file=self.output)


@dataclass(slots=True)
class JsonRenderer:
    """JSON Lines output for log aggregation."""

    output: TextIO = field(default_factory=lambda: sys.stdout)

    def render(self, entry: LogEntry) -> None:
        data = {"timestamp": entry.ts_iso, "level": entry.level, "event": entry.event, **entry.context}
        print(orjson.dumps(data, default=str).decode(), file=self.output)


@dataclass(slots=True)
class MemoryRenderer:
    """Keeps entries in a list. Used by tests to assert on log output."""

    entries: list[LogEntry] = field(default_factory=list)

    def render(self, entry: LogEntry) -> None:
        self.entries.append(entry)

    def events(self, level: str | None = None) -> list[str]:
        return [e.event for e in self.entries if level is None or e.level == level]


@dataclass(slots=True)
class NoOpRenderer:
    """Silent renderer."""

    def render(self, entry: LogEntry) -> None:
        pass


# ─────────────────────────────────────────────────────────────────────────────
# Global Configuration
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(slots=True)
class _LoggingState:
    renderer: LogRenderer = field(default_factory=ConsoleRenderer)
    level: int = logging.INFO


_state = _LoggingState()


def configure_logging(
    format: str = "console",  # noqa: A002
    level: str = "INFO",
    *,
    output: TextIO | None = None,
    colors: bool | None = None,
    renderer: LogRenderer | None = None,
) -> LogRenderer:
    """Configure process-wide structured logging.

    Args:
        format: "console" (human), "json" (machine) or "none"
        level: Minimum level name
        output: Output stream (default: stderr for console, stdout for json)
        colors: Force console colors on/off (None = auto-detect)
        renderer: Explicit renderer, overrides `format`

    Returns:
        The installed renderer
    """
    if renderer is None:
        match format:
            case "console": renderer = ConsoleRenderer(output=output or sys.stderr, colors=colors)
            case "json": renderer = JsonRenderer(output=output or sys.stdout)
            case "none": renderer = NoOpRenderer()
            case _: raise ValueError(f"Unknown format: {format}. Use 'console', 'json', or 'none'")
    _state.renderer = renderer
    _state.level = getattr(logging, level.upper(), logging.INFO)
    return renderer


def configure_from_settings() -> LogRenderer:
    """Apply TOOLGUARD_LOG_* settings."""
    from toolguard.foundation.config import get_settings
    cfg = get_settings().logging
    return configure_logging(cfg.format, cfg.level)


def get_logger(name: str | None = None, **initial_context: object) -> BoundLogger:
    """Structured logger, with `name` bound as 'logger' when given."""
    ctx: JsonDict = dict(initial_context)
    if name:
        ctx["logger"] = name
    return BoundLogger(context=ctx)


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────


_COLORS = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "red": "\033[31m",
    "cyan": "\033[36m",
}
_NO_COLORS = {k: "" for k in _COLORS}
_LEVEL_COLORS = {
    "debug": "\033[2m",
    "info": "\033[32m",
    "warning": "\033[33m",
    "error": "\033[31m",
}


def _format_value(v: object) -> str:
    if isinstance(v, str):
        return f'"{v}"'
    if isinstance(v, bool):
        return str(v).lower()
    if isinstance(v, (int, float)) or v is None:
        return str(v)
    if isinstance(v, dict):
        return f"{{{len(v)} items}}"
    if isinstance(v, (list, tuple)):
        return f"[{len(v)} items]"
    return repr(v)
