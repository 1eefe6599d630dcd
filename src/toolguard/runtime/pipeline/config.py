"""Pipeline-wide configuration: one config per layer, bridged from settings."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from toolguard.foundation.errors import ConfigurationError
from toolguard.runtime.middleware.config import (
    CachingConfig,
    LayerConfig,
    ObservabilityConfig,
    ResilienceConfig,
    ValidationConfig,
    merge_config,
    split_overrides,
)

if TYPE_CHECKING:
    from toolguard.foundation.config import ToolguardSettings

_LAYERS: tuple[str, ...] = ("observability", "caching", "validation", "resilience")


class PipelineConfig(BaseModel):
    """Defaults for every layer of every tool.

    Example:
        >>> cfg = PipelineConfig().merged({"maxRetries": 1, "enableCaching": True})
        >>> cfg.resilience.max_retries, cfg.caching.enable_caching
        (1, True)
    """

    model_config = ConfigDict(frozen=True)

    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
    caching: CachingConfig = Field(default_factory=CachingConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    resilience: ResilienceConfig = Field(default_factory=ResilienceConfig)

    @classmethod
    def from_settings(cls, settings: ToolguardSettings | None = None) -> PipelineConfig:
        """Build defaults from TOOLGUARD_* settings."""
        if settings is None:
            from toolguard.foundation.config import get_settings
            settings = get_settings()
        flat: dict[str, Any] = {
            **settings.pipeline.model_dump(),
            "cache_max_size": settings.cache.call_max_size,
            "log_params": settings.logging.log_params,
            "max_log_length": settings.logging.max_log_length,
        }
        return cls().merged(flat)

    def merged(self, overrides: Mapping[str, Any]) -> PipelineConfig:
        """Apply flat overrides (field names or camelCase aliases) to the matching layers.

        Raises:
            ConfigurationError: unknown option or invalid value
        """
        if not overrides:
            return self
        claimed: set[str] = set()
        updates: dict[str, LayerConfig] = {}
        for layer in _LAYERS:
            current: LayerConfig = getattr(self, layer)
            mine = split_overrides(type(current), overrides)
            claimed.update(mine)
            try:
                updates[layer] = merge_config(current, mine)
            except PydanticValidationError as e:
                raise ConfigurationError(f"Invalid {layer} configuration: {e}") from e
        if unknown := sorted(set(overrides) - claimed):
            raise ConfigurationError(f"Unknown pipeline options: {', '.join(unknown)}")
        return self.model_copy(update=updates)
