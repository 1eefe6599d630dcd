"""Backoff strategies for retry policies.

Delay is computed for the attempt about to run, numbered from 1 (the first,
undelayed call) so attempt 2 is the first retry:

- LinearBackoff: base * attempt
- ExponentialBackoff: base * multiplier ** (attempt - 2), i.e. base, 2*base, 4*base, ...
- ConstantBackoff: fixed delay
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from toolguard.foundation.config import BackoffKind


@runtime_checkable
class Backoff(Protocol):
    """Protocol for backoff delay calculation."""

    def delay(self, attempt: int) -> float:
        """Delay in seconds before `attempt` (1-indexed, >= 2 for retries)."""
        ...


@dataclass(frozen=True, slots=True)
class ExponentialBackoff:
    """Exponential backoff with an optional cap.

    Attributes:
        base: Delay before the first retry, in seconds
        multiplier: Growth factor per retry (default: 2.0)
        max_delay: Upper bound in seconds, None for uncapped
    """

    base: float = 1.0
    multiplier: float = 2.0
    max_delay: float | None = None

    def delay(self, attempt: int) -> float:
        d = self.base * (self.multiplier ** max(attempt - 2, 0))
        return d if self.max_delay is None else min(d, self.max_delay)


@dataclass(frozen=True, slots=True)
class LinearBackoff:
    """Linear backoff: delay grows with the attempt number.

    Attributes:
        base: Delay unit in seconds
        max_delay: Upper bound in seconds, None for uncapped
    """

    base: float = 1.0
    max_delay: float | None = None

    def delay(self, attempt: int) -> float:
        d = self.base * attempt
        return d if self.max_delay is None else min(d, self.max_delay)


@dataclass(frozen=True, slots=True)
class ConstantBackoff:
    """Fixed delay between retries."""

    delay_seconds: float = 1.0

    def delay(self, attempt: int) -> float:
        return self.delay_seconds


def backoff_for(kind: BackoffKind, base_ms: float) -> Backoff:
    """Build the backoff named in configuration from a millisecond base delay."""
    base = base_ms / 1000
    match kind:
        case "linear": return LinearBackoff(base=base)
        case "exponential": return ExponentialBackoff(base=base)
        case "constant": return ConstantBackoff(delay_seconds=base)
        case _: raise ValueError(f"Unknown backoff kind: {kind!r}. Use 'linear', 'exponential' or 'constant'")
