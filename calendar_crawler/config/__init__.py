"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    CacheConfig,
    CrawlerConfig,
    HistoryConfig,
    ScrapeConfig,
    StorageBackend,
    StorageConfig,
    SyncConfig,
)

__all__ = [
    "CacheConfig",
    "ConfigLocator",
    "ConfigRepository",
    "CrawlerConfig",
    "HistoryConfig",
    "ScrapeConfig",
    "StorageBackend",
    "StorageConfig",
    "SyncConfig",
]
