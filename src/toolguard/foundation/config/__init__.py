"""Configuration management using pydantic-settings."""

from .settings import (
    BackoffKind,
    CacheSettings,
    LoggingSettings,
    PipelineSettings,
    ToolguardSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "BackoffKind",
    "CacheSettings",
    "LoggingSettings",
    "PipelineSettings",
    "ToolguardSettings",
    "clear_settings_cache",
    "get_settings",
]
