"""Per-layer configuration models.

Each pipeline layer takes one frozen model. Fields accept both snake_case and
the camelCase names used by JSON configuration (`maxRetries`, `cacheTTLMs`).
Overrides merge shallowly over defaults, last write wins:

    >>> base = ResilienceConfig()
    >>> merge_config(base, {"maxRetries": 5}).max_retries
    5
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, PositiveInt

from toolguard.foundation.config import BackoffKind

C = TypeVar("C", bound="LayerConfig")


class LayerConfig(BaseModel):
    """Base for layer configs: frozen, alias-aware, unknown keys rejected."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")


class ResilienceConfig(LayerConfig):
    """Timeout and retry settings for the innermost layer."""

    enable_retry: bool = Field(default=True, alias="enableRetry")
    max_retries: Annotated[int, Field(ge=0, le=10, alias="maxRetries")] = 3
    retry_delay_ms: NonNegativeInt = Field(default=1000, alias="retryDelayMs")
    retry_backoff: BackoffKind = Field(default="exponential", alias="retryBackoff")
    timeout_ms: NonNegativeInt = Field(default=30000, alias="timeoutMs")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1 if self.enable_retry else 1


class CachingConfig(LayerConfig):
    """Response cache and circuit breaker settings."""

    enable_caching: bool = Field(default=False, alias="enableCaching")
    cache_ttl_ms: PositiveInt = Field(default=300000, alias="cacheTTLMs")
    cache_max_size: PositiveInt = Field(default=1000, alias="cacheMaxSize")
    enable_circuit_breaker: bool = Field(default=False, alias="enableCircuitBreaker")
    failure_threshold: PositiveInt = Field(default=5, alias="failureThreshold")
    recovery_timeout_ms: NonNegativeInt = Field(default=60000, alias="recoveryTimeoutMs")

    @property
    def active(self) -> bool:
        return self.enable_caching or self.enable_circuit_breaker


class ValidationConfig(LayerConfig):
    enable_validation: bool = Field(default=True, alias="enableValidation")


class ObservabilityConfig(LayerConfig):
    """Logging and metrics settings for the outermost layer."""

    enable_logging: bool = Field(default=True, alias="enableLogging")
    enable_metrics: bool = Field(default=True, alias="enableMetrics")
    slow_threshold_ms: NonNegativeInt = Field(default=1000, alias="slowThresholdMs")
    log_params: bool = Field(default=True, alias="logParams")
    max_log_length: PositiveInt = Field(default=1000, alias="maxLogLength")

    @property
    def active(self) -> bool:
        return self.enable_logging or self.enable_metrics


def _field_names(model: type[LayerConfig]) -> frozenset[str]:
    names: set[str] = set()
    for name, info in model.model_fields.items():
        names.add(name)
        if info.alias:
            names.add(info.alias)
    return frozenset(names)


def split_overrides(model: type[LayerConfig], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Keys of `overrides` that belong to `model` (by field name or alias)."""
    known = _field_names(model)
    return {k: v for k, v in overrides.items() if k in known}


def merge_config(base: C, overrides: Mapping[str, Any]) -> C:
    """Shallow last-write-wins merge, revalidated.

    Overrides may use field names or aliases. Raises pydantic.ValidationError
    for unknown keys or invalid values.
    """
    if not overrides:
        return base
    merged: dict[str, Any] = base.model_dump()
    fields = type(base).model_fields
    aliases = {info.alias: name for name, info in fields.items() if info.alias}
    for key, value in overrides.items():
        merged[aliases.get(key, key)] = value
    return type(base).model_validate(merged)
