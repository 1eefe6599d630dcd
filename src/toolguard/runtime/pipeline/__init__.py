"""Pipeline assembly: per-layer configuration and the tool factory.

Example:
    >>> from toolguard.runtime.pipeline import ToolFactory
    >>> factory = ToolFactory(services={"store": store})
    >>> factory.register_all(record_tools())
    >>> factory.require(REQUIRED_TOOLS)
    >>> get_record = factory.create("get_record", enableCaching=True, cacheTTLMs=5000)
"""

from .config import PipelineConfig
from .factory import CATALOG_KEY, ToolFactory

__all__ = ["PipelineConfig", "ToolFactory", "CATALOG_KEY"]
