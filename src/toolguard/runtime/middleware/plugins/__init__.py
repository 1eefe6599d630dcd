"""Pipeline layers, listed outermost first.

Observability -> Caching/Circuit -> Validation -> Resilience -> base handler
"""

from .caching import CachingDecorator
from .observability import REDACTED, SENSITIVE_KEYS, ObservabilityDecorator, sanitize
from .resilience import Fallback, ResilienceDecorator
from .validation import Check, FieldRule, ValidationDecorator, format_validation_error

__all__ = [
    "ObservabilityDecorator", "sanitize", "SENSITIVE_KEYS", "REDACTED",
    "CachingDecorator",
    "ValidationDecorator", "FieldRule", "Check", "format_validation_error",
    "ResilienceDecorator", "Fallback",
]
