"""Retry policies: backoff strategies and per-call retry bookkeeping.

Example:
    >>> from toolguard.runtime.retry import backoff_for
    >>> b = backoff_for("exponential", 100)
    >>> [b.delay(n) for n in (2, 3, 4)]
    [0.1, 0.2, 0.4]
"""

from .backoff import Backoff, ConstantBackoff, ExponentialBackoff, LinearBackoff, backoff_for
from .policy import NO_RETRY_TYPES, RetryContext, is_retryable

__all__ = [
    # Backoff strategies
    "Backoff",
    "ExponentialBackoff",
    "LinearBackoff",
    "ConstantBackoff",
    "backoff_for",
    # Retry state
    "RetryContext",
    "NO_RETRY_TYPES",
    "is_retryable",
]
