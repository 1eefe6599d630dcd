"""Standardized error handling for the tool pipeline.

Every failure that leaves a pipeline layer is a ToolException carrying a frozen
ToolError with a stable symbolic code. Outer layers (and transports) only need
to understand ErrorCode, never the wrapped handler's own exception vocabulary.
"""

from __future__ import annotations

import asyncio
from enum import StrEnum
from functools import lru_cache
from typing import Annotated, ClassVar, Self

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from .types import JsonDict


class ErrorCode(StrEnum):
    """Symbolic error codes for tool failures.

    Used for programmatic error handling and retry decisions.
    """
    INVALID_PARAMS = "INVALID_PARAMS"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    RESOURCE_EXHAUSTED = "RESOURCE_EXHAUSTED"
    RETRY_EXHAUSTED = "RETRY_EXHAUSTED"
    CIRCUIT_OPEN = "CIRCUIT_OPEN"
    INVALID_STATE = "INVALID_STATE"
    INTERNAL = "INTERNAL"

    @property
    def rpc_code(self) -> int:
        """JSON-RPC style integer for transports that need a numeric code."""
        return _RPC_CODES[self]


_RPC_CODES: dict[ErrorCode, int] = {
    ErrorCode.INVALID_PARAMS: -32602,
    ErrorCode.NOT_FOUND: -32004,
    ErrorCode.UNAUTHENTICATED: -32006,
    ErrorCode.PERMISSION_DENIED: -32007,
    ErrorCode.TIMEOUT: -32001,
    ErrorCode.NETWORK_ERROR: -32002,
    ErrorCode.RESOURCE_EXHAUSTED: -32003,
    ErrorCode.RETRY_EXHAUSTED: -32005,
    ErrorCode.CIRCUIT_OPEN: -32008,
    ErrorCode.INVALID_STATE: -32009,
    ErrorCode.INTERNAL: -32000,
}

# Codes that must never be retried: the same input fails the same way
NON_RETRYABLE: frozenset[ErrorCode] = frozenset({
    ErrorCode.INVALID_PARAMS,
    ErrorCode.NOT_FOUND,
    ErrorCode.UNAUTHENTICATED,
    ErrorCode.PERMISSION_DENIED,
})

# Builtin exception types checked before message patterns (most specific first)
_TYPE_CODES: tuple[tuple[type[BaseException], ErrorCode], ...] = (
    (asyncio.TimeoutError, ErrorCode.TIMEOUT),
    (TimeoutError, ErrorCode.TIMEOUT),
    (ConnectionError, ErrorCode.NETWORK_ERROR),
    (MemoryError, ErrorCode.RESOURCE_EXHAUSTED),
    (PermissionError, ErrorCode.PERMISSION_DENIED),
)

# Flattened pattern -> code mapping, checked in order against "TypeName message"
_PATTERN_CODES: dict[str, ErrorCode] = {
    "timeout": ErrorCode.TIMEOUT,
    "timed out": ErrorCode.TIMEOUT,
    "econnrefused": ErrorCode.NETWORK_ERROR,
    "enotfound": ErrorCode.NETWORK_ERROR,
    "connection": ErrorCode.NETWORK_ERROR,
    "network": ErrorCode.NETWORK_ERROR,
    "out of memory": ErrorCode.RESOURCE_EXHAUSTED,
    "heap": ErrorCode.RESOURCE_EXHAUSTED,
    "exhausted": ErrorCode.RESOURCE_EXHAUSTED,
    "unauthorized": ErrorCode.UNAUTHENTICATED,
    "authentication": ErrorCode.UNAUTHENTICATED,
    "forbidden": ErrorCode.PERMISSION_DENIED,
    "access denied": ErrorCode.PERMISSION_DENIED,
}
_PATTERN_KEYS = tuple(_PATTERN_CODES)


@lru_cache(maxsize=256)
def _classify_cached(exc_key: str) -> ErrorCode:
    """Cached classification by exception signature."""
    haystack = exc_key.lower()
    for pattern in _PATTERN_KEYS:
        if pattern in haystack:
            return _PATTERN_CODES[pattern]
    return ErrorCode.INTERNAL


def classify_exception(exc: BaseException) -> ErrorCode:
    """Map an exception to an error code: tool errors keep theirs, then type, then message."""
    if isinstance(exc, ToolException):
        return exc.error.code
    for exc_type, code in _TYPE_CODES:
        if isinstance(exc, exc_type):
            return code
    return _classify_cached(f"{type(exc).__name__} {exc}")


class ToolError(BaseModel):
    """Structured error for a failed tool call.

    Attributes:
        tool_name: Name of the tool that failed
        message: Human-readable error message
        code: Machine-readable error code
        recoverable: Whether the error might succeed on retry
        data: Structured details (retry trace, original error, timeout, ...)
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        json_schema_extra={
            "title": "Tool Error",
            "examples": [{
                "tool_name": "get_record",
                "message": "Record not found: r1",
                "code": "NOT_FOUND",
                "recoverable": False,
            }],
        },
    )

    tool_name: Annotated[str, Field(min_length=1)]
    message: Annotated[str, Field(min_length=1)]
    code: ErrorCode = ErrorCode.INTERNAL
    recoverable: bool = True
    data: JsonDict = Field(default_factory=dict, repr=False)

    @field_validator("message", mode="before")
    @classmethod
    def _ensure_message(cls, v: str | Exception) -> str:
        """Accept Exception objects and extract message."""
        return (str(v) or type(v).__name__) if isinstance(v, Exception) else v

    @computed_field
    @property
    def rpc_code(self) -> int:
        return self.code.rpc_code

    @property
    def is_retryable(self) -> bool:
        return self.code not in NON_RETRYABLE

    def render(self) -> str:
        """Format error as a single line for logs and LLM feedback."""
        return f"**Tool Error ({self.tool_name}):** [{self.code}] {self.message}"

    __str__ = render


class ToolException(Exception):
    """Exception wrapping a ToolError for raising.

    Subclasses pin a default code so handlers can raise domain errors without
    building a ToolError by hand::

        raise NotFoundError.create("get_record", f"Record not found: {rid}")
    """

    __slots__ = ("error",)
    default_code: ClassVar[ErrorCode] = ErrorCode.INTERNAL
    default_recoverable: ClassVar[bool] = True

    def __init__(self, error: ToolError) -> None:
        self.error = error
        super().__init__(error.message)

    @property
    def code(self) -> ErrorCode:
        return self.error.code

    @classmethod
    def create(
        cls,
        tool_name: str,
        message: str,
        code: ErrorCode | None = None,
        *,
        recoverable: bool | None = None,
        **data: object,
    ) -> Self:
        """Create an exception with this class's default code unless overridden."""
        return cls(ToolError(
            tool_name=tool_name or "unknown",
            message=message,
            code=code or cls.default_code,
            recoverable=cls.default_recoverable if recoverable is None else recoverable,
            data=data,
        ))


class ValidationError(ToolException):
    """Parameters rejected by a validator. Never retried."""
    default_code = ErrorCode.INVALID_PARAMS
    default_recoverable = False


class NotFoundError(ToolException):
    """Target record or resource does not exist. Never retried."""
    default_code = ErrorCode.NOT_FOUND
    default_recoverable = False


class AuthenticationError(ToolException):
    """Caller is not authenticated or not allowed. Never retried."""
    default_code = ErrorCode.UNAUTHENTICATED
    default_recoverable = False


class ToolTimeoutError(ToolException):
    """An attempt did not finish within the configured timeout."""
    default_code = ErrorCode.TIMEOUT


class NetworkError(ToolException):
    """Transient transport failure."""
    default_code = ErrorCode.NETWORK_ERROR


class RetryExhaustedError(ToolException):
    """All attempts failed. Carries the last error and the retry trace."""
    default_code = ErrorCode.RETRY_EXHAUSTED
    default_recoverable = False

    @property
    def last_error(self) -> BaseException | None:
        return self.__cause__

    @property
    def trace(self) -> JsonDict:
        return self.error.data.get("retry_context", {})


class CircuitOpenError(ToolException):
    """Call rejected without being attempted because the circuit is open."""
    default_code = ErrorCode.CIRCUIT_OPEN


class CommandStateError(ToolException):
    """Command executed twice, or undone when not allowed."""
    default_code = ErrorCode.INVALID_STATE
    default_recoverable = False


class ConfigurationError(Exception):
    """Fatal startup error: the pipeline cannot be assembled as configured."""


def translate_error(tool_name: str, exc: BaseException, **data: object) -> ToolException:
    """Normalize any exception into a ToolException with a symbolic code.

    ToolExceptions pass through unchanged. Timeouts and network failures get
    their dedicated subclasses so callers can still match on type.
    """
    if isinstance(exc, ToolException):
        return exc
    code = classify_exception(exc)
    cls: type[ToolException] = _CODE_CLASSES.get(code, ToolException)
    message = str(exc) or type(exc).__name__
    translated = cls.create(
        tool_name, message, code,
        recoverable=code not in NON_RETRYABLE,
        original_error=type(exc).__name__, **data,
    )
    translated.__cause__ = exc
    return translated


_CODE_CLASSES: dict[ErrorCode, type[ToolException]] = {
    ErrorCode.TIMEOUT: ToolTimeoutError,
    ErrorCode.NETWORK_ERROR: NetworkError,
    ErrorCode.NOT_FOUND: NotFoundError,
    ErrorCode.UNAUTHENTICATED: AuthenticationError,
    ErrorCode.PERMISSION_DENIED: AuthenticationError,
}
