"""Unified error handling for toolguard.

- ErrorCode: Symbolic error codes (with JSON-RPC style integers)
- ToolError/ToolException: Structured errors and the exception that carries them
- Domain subclasses: ValidationError, NotFoundError, AuthenticationError, ...
- translate_error/classify_exception: Normalize foreign exceptions
"""

from .errors import (
    NON_RETRYABLE,
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
    classify_exception,
    translate_error,
)
from .types import JsonDict, JsonMapping, JsonPrimitive, JsonValue

__all__ = [
    # Core errors
    "ErrorCode", "ToolError", "ToolException", "classify_exception", "translate_error",
    "NON_RETRYABLE",
    # Domain errors
    "ValidationError", "NotFoundError", "AuthenticationError", "ToolTimeoutError",
    "NetworkError", "RetryExhaustedError", "CircuitOpenError", "CommandStateError",
    "ConfigurationError",
    # JSON aliases
    "JsonDict", "JsonMapping", "JsonPrimitive", "JsonValue",
]
