"""Circuit breaker primitive for fault tolerance.

A standalone two-state machine, one instance per tool. Recovery is lazy: it
happens on the first call attempted after the recovery window, never on a
timer.

State Machine:
    CLOSED → consecutive failures reach threshold → OPEN
    OPEN → call arrives after recovery_timeout → CLOSED (failures reset)
    CLOSED → success → failures reset to 0
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum

from toolguard.foundation.errors import CircuitOpenError, JsonDict

logger = logging.getLogger("toolguard.resilience")


class State(IntEnum):
    """Circuit breaker states."""
    CLOSED, OPEN = 0, 1  # Normal → Failing fast


@dataclass(slots=True)
class CircuitState:
    """Per-tool breaker bookkeeping. Times are clock seconds."""
    state: State = State.CLOSED
    consecutive_failures: int = 0
    last_failure: float | None = None

    @property
    def is_open(self) -> bool:
        return self.state == State.OPEN

    def to_dict(self) -> JsonDict:
        return {
            "state": self.state.name,
            "is_open": self.is_open,
            "consecutive_failures": self.consecutive_failures,
            "last_failure": self.last_failure,
        }


class CircuitBreaker:
    """Fail fast for a tool after repeated failures.

    `before_call` either lets the call through (closing an expired open
    circuit on the way) or raises CircuitOpenError without counting it as a
    failure. Callers report the outcome with `record_success` or
    `record_failure`.

    Args:
        name: Tool the breaker guards (used in errors and logs)
        failure_threshold: Consecutive failures that open the circuit
        recovery_timeout_ms: Time after the last failure before a call may pass
        clock: Time source in seconds (monotonic by default)

    Example:
        >>> breaker = CircuitBreaker("search", failure_threshold=2, recovery_timeout_ms=60_000)
        >>> breaker.record_failure(); breaker.record_failure()
        >>> breaker.state.is_open
        True
    """

    __slots__ = ("name", "failure_threshold", "recovery_timeout", "_clock", "_state", "_lock")

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout_ms: float = 60_000,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError(f"failure_threshold must be positive, got {failure_threshold}")
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout_ms / 1000
        self._clock = clock
        self._state = CircuitState()
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        """Copy of the current state (does not trigger recovery)."""
        with self._lock:
            s = self._state
            return CircuitState(s.state, s.consecutive_failures, s.last_failure)

    def before_call(self) -> None:
        """Admit a call or raise CircuitOpenError."""
        with self._lock:
            s = self._state
            if not s.is_open:
                return
            elapsed = self._clock() - (s.last_failure or 0.0)
            if elapsed > self.recovery_timeout:
                s.state, s.consecutive_failures = State.CLOSED, 0
                logger.info("[%s] Circuit closed after %.1fs recovery window", self.name, elapsed)
                return
            retry_in = self.recovery_timeout - elapsed
            failures = s.consecutive_failures
        raise CircuitOpenError.create(
            self.name,
            f"Circuit breaker is open for tool {self.name}. Retry in {retry_in:.0f}s",
            failures=failures,
            retry_in_ms=round(retry_in * 1000),
        )

    def record_success(self) -> None:
        with self._lock:
            self._state.consecutive_failures = 0

    def record_failure(self) -> None:
        with self._lock:
            s = self._state
            s.consecutive_failures += 1
            s.last_failure = self._clock()
            if not s.is_open and s.consecutive_failures >= self.failure_threshold:
                s.state = State.OPEN
                logger.warning(
                    "[%s] Circuit opened after %d consecutive failures",
                    self.name, s.consecutive_failures,
                )

    def reset(self) -> None:
        """Manually close the circuit (for operations)."""
        with self._lock:
            self._state = CircuitState()

    def __repr__(self) -> str:
        s = self._state
        return f"CircuitBreaker(name={self.name!r}, state={s.state.name}, failures={s.consecutive_failures})"
