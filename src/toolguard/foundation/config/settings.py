"""Environment-based configuration using pydantic-settings.

Provides type-safe, validated configuration from environment variables
with the pipeline's documented defaults. Supports .env files.

Example:
    >>> from toolguard.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.pipeline.max_retries
    3
    >>> settings.cache.call_ttl_ms
    300000

    # Or with environment variables:
    # TOOLGUARD_PIPELINE_MAX_RETRIES=5
    # TOOLGUARD_LOG_FORMAT=json
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, NonNegativeInt, PositiveInt, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BackoffKind = Literal["linear", "exponential", "constant"]


class PipelineSettings(BaseSettings):
    """Default decorator tunables applied to every tool."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLGUARD_PIPELINE_",
        extra="ignore",
    )

    enable_logging: bool = True
    enable_metrics: bool = True
    enable_validation: bool = True

    enable_retry: bool = True
    max_retries: Annotated[int, Field(ge=0, le=10)] = 3
    retry_delay_ms: NonNegativeInt = Field(default=1000, description="Base backoff delay")
    retry_backoff: BackoffKind = "exponential"
    timeout_ms: NonNegativeInt = Field(default=30000, description="Per-attempt timeout, 0 disables")

    enable_circuit_breaker: bool = False
    failure_threshold: PositiveInt = 5
    recovery_timeout_ms: NonNegativeInt = 60000

    enable_caching: bool = False
    cache_ttl_ms: PositiveInt = 300000
    slow_threshold_ms: NonNegativeInt = 1000


class CacheSettings(BaseSettings):
    """Sizes and TTLs of the shared cache instances."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLGUARD_CACHE_",
        extra="ignore",
    )

    call_max_size: PositiveInt = 1000
    call_ttl_ms: PositiveInt = 300000  # 5 minutes
    catalog_max_size: PositiveInt = 100
    catalog_ttl_ms: PositiveInt = 3600000  # 1 hour


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLGUARD_LOG_",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "none"] = "console"
    log_params: bool = True
    max_log_length: PositiveInt = 1000

    @field_validator("level", mode="before")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class ToolguardSettings(BaseSettings):
    """Root settings.

    Example environment variables:
        TOOLGUARD_ENVIRONMENT=production
        TOOLGUARD_PIPELINE_ENABLE_CACHING=true
        TOOLGUARD_CACHE_CALL_MAX_SIZE=5000
        TOOLGUARD_LOG_LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="TOOLGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    environment: Literal["development", "test", "production"] = "development"

    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("environment", mode="before")
    @classmethod
    def _normalize_env(cls, v: str) -> str:
        return v.lower() if isinstance(v, str) else v


@lru_cache(maxsize=1)
def get_settings() -> ToolguardSettings:
    """Get the global settings instance (cached)."""
    return ToolguardSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
