"""Pipeline layers and their configuration."""

from .config import (
    CachingConfig,
    LayerConfig,
    ObservabilityConfig,
    ResilienceConfig,
    ValidationConfig,
    merge_config,
    split_overrides,
)
from .plugins import (
    CachingDecorator,
    FieldRule,
    ObservabilityDecorator,
    ResilienceDecorator,
    ValidationDecorator,
    sanitize,
)

__all__ = [
    # Config
    "LayerConfig", "ResilienceConfig", "CachingConfig", "ValidationConfig", "ObservabilityConfig",
    "merge_config", "split_overrides",
    # Layers
    "ObservabilityDecorator", "CachingDecorator", "ValidationDecorator", "ResilienceDecorator",
    "FieldRule", "sanitize",
]
