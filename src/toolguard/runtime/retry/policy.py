"""Retry bookkeeping and the retry decision.

RetryContext is ephemeral: one per logical call, discarded when the call
resolves. Its `trace()` is what RetryExhaustedError carries outward; the
individual attempts are otherwise invisible to callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from toolguard.foundation.errors import (
    NON_RETRYABLE,
    AuthenticationError,
    NotFoundError,
    ToolException,
    ValidationError,
    classify_exception,
)

if TYPE_CHECKING:
    from toolguard.foundation.errors import JsonDict

# Never retried: the same input fails the same way
NO_RETRY_TYPES: tuple[type[Exception], ...] = (ValidationError, NotFoundError, AuthenticationError)


def is_retryable(exc: BaseException) -> bool:
    """Whether a failed attempt may be retried."""
    if isinstance(exc, NO_RETRY_TYPES):
        return False
    if isinstance(exc, ToolException) and not exc.error.recoverable:
        return False
    return classify_exception(exc) not in NON_RETRYABLE


@dataclass(slots=True)
class RetryContext:
    """Per-call retry state.

    Attributes:
        max_attempts: Total attempts allowed, including the first
        attempt: Attempts started so far
        total_delay: Seconds spent waiting between attempts
        last_error: Most recent failure
        history: One record per failed attempt
    """

    max_attempts: int
    attempt: int = 0
    total_delay: float = 0.0
    last_error: BaseException | None = None
    history: list[JsonDict] = field(default_factory=list)

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts

    def record_failure(self, exc: BaseException, *, retryable: bool) -> None:
        self.last_error = exc
        self.history.append({
            "attempt": self.attempt,
            "error_type": type(exc).__name__,
            "error_code": classify_exception(exc).value,
            "message": str(exc),
            "retryable": retryable,
        })

    def record_delay(self, seconds: float) -> None:
        self.total_delay += seconds

    def trace(self) -> JsonDict:
        """Serializable summary for error payloads and logs."""
        return {
            "attempts": self.attempt,
            "max_attempts": self.max_attempts,
            "total_delay_ms": round(self.total_delay * 1000, 3),
            "last_error": str(self.last_error) if self.last_error else None,
            "history": list(self.history),
        }
