"""Pydantic models used across calendar-crawler configuration flow."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


class StorageBackend(str, Enum):
    """Key-value persistence backends."""

    SQLITE = "sqlite"
    MEMORY = "memory"


class ScrapeConfig(BaseModel):
    """Where and how the news page is fetched and mined for events."""

    target_url: str = "https://pokemongo.com/es/news"
    content_segments: list[str] = Field(default_factory=lambda: ["/news/", "/post/"])
    boilerplate_phrases: list[str] = Field(
        default_factory=lambda: ["Política de", "Términos de", "Privacy"]
    )
    locale: str = "es"
    relay_proxies: list[str] = Field(
        default_factory=lambda: ["https://api.allorigins.win/raw?url="]
    )
    user_agents: list[str] = Field(default_factory=lambda: [DEFAULT_USER_AGENT])
    # seconds
    timeout: float = 60.0
    attempts_per_strategy: int = 1
    retry_backoff: float = 1.0
    use_browser: bool = False

    @field_validator("target_url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError("target_url must be an absolute http(s) URL")
        return value

    @model_validator(mode="after")
    def _validate_limits(self) -> "ScrapeConfig":
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if self.attempts_per_strategy < 1:
            raise ValueError("attempts_per_strategy must be >= 1")
        if self.retry_backoff < 0:
            raise ValueError("retry_backoff must be >= 0")
        if not self.content_segments:
            raise ValueError("content_segments cannot be empty")
        return self


class CacheConfig(BaseModel):
    ttl_minutes: float = 30.0

    @field_validator("ttl_minutes")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("ttl_minutes must be > 0")
        return value


class HistoryConfig(BaseModel):
    max_size: int = 100

    @field_validator("max_size")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_size must be >= 1")
        return value


class SyncConfig(BaseModel):
    """Batch export settings for the calendar sink."""

    batch_size: int = 5
    # seconds between batches
    batch_delay: float = 1.0
    sink: Literal["mock", "file"] = "mock"
    time_zone: str = "Europe/Madrid"
    mock_failure_rate: float = 0.0

    @model_validator(mode="after")
    def _validate_batching(self) -> "SyncConfig":
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if self.batch_delay < 0:
            raise ValueError("batch_delay must be >= 0")
        if not 0.0 <= self.mock_failure_rate <= 1.0:
            raise ValueError("mock_failure_rate must be within [0, 1]")
        return self


class StorageConfig(BaseModel):
    backend: StorageBackend = StorageBackend.SQLITE
    path: Path = Field(default=Path("data/storage.db"))

    @field_validator("path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    def resolved_path(self, base_dir: Path) -> Path:
        """Return storage path relative to the project root."""

        if not self.path.is_absolute():
            return (base_dir / self.path).resolve()
        return self.path


class CrawlerConfig(BaseModel):
    """Top-level configuration shared by every component."""

    scrape: ScrapeConfig = Field(default_factory=ScrapeConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    outputs_dir: Path = Field(default=Path("data/outputs"))

    @field_validator("outputs_dir", mode="before")
    @classmethod
    def _coerce_dir(cls, value: Any) -> Path:
        return Path(value)


__all__ = [
    "CacheConfig",
    "CrawlerConfig",
    "DEFAULT_USER_AGENT",
    "HistoryConfig",
    "ScrapeConfig",
    "StorageBackend",
    "StorageConfig",
    "SyncConfig",
]
