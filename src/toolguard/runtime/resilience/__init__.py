"""Resilience primitives: circuit breaker.

Example:
    >>> from toolguard.runtime.resilience import CircuitBreaker
    >>> breaker = CircuitBreaker("search", failure_threshold=3)
    >>> breaker.before_call()  # raises CircuitOpenError while open
"""

from .breaker import CircuitBreaker, CircuitState, State

__all__ = ["CircuitBreaker", "CircuitState", "State"]
