"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import IngestConfig, RecordIdStrategy, StoreConfig

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "IngestConfig",
    "RecordIdStrategy",
    "StoreConfig",
]
