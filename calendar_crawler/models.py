"""Event records exchanged between the pipeline stages."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class EventCategory(str, Enum):
    """Event families used for calendar colouring and stats."""

    LEGENDARY = "legendary"
    FESTIVAL = "festival"
    COMMUNITY = "community"
    SPOTLIGHT = "spotlight"
    RAIDS = "raids"
    OTHER = "other"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CanonicalEvent(BaseModel):
    """Validated, immutable event record.

    Field names are snake_case in Python; the JSON form uses the camelCase
    aliases (``startDate``, ``sourceUrl`` ...).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(min_length=1)
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=1000)
    start_date: datetime = Field(alias="startDate")
    end_date: datetime = Field(alias="endDate")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    source_url: str = Field(min_length=1, alias="sourceUrl")
    category: EventCategory = EventCategory.OTHER
    scraped_at: datetime = Field(alias="scrapedAt")

    @field_validator("id", "title", "description", "source_url")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("field cannot be blank")
        return value

    @field_validator("image_url")
    @classmethod
    def _empty_image_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return value.strip()

    @field_validator("start_date", "end_date", "scraped_at")
    @classmethod
    def _normalise_instant(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @model_validator(mode="after")
    def _check_range(self) -> "CanonicalEvent":
        if self.end_date < self.start_date:
            raise ValueError("endDate must not be earlier than startDate")
        return self

    def equivalence_key(self) -> str:
        """Identity used when ids are not stable across runs: title + source URL."""

        basis = f"{' '.join(self.title.split()).casefold()}|{self.source_url.strip()}"
        return hashlib.sha256(basis.encode("utf-8")).hexdigest()

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_json(cls, payload: dict[str, Any]) -> "CanonicalEvent":
        return cls.model_validate(payload)


class HistoryRecord(CanonicalEvent):
    """Event remembered by the history store, stamped with insertion time."""

    added_at: datetime = Field(alias="addedAt")

    @field_validator("added_at")
    @classmethod
    def _normalise_added(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @classmethod
    def from_event(cls, event: CanonicalEvent, added_at: datetime) -> "HistoryRecord":
        return cls(**event.model_dump(exclude={"added_at"}), added_at=added_at)

    def to_event(self) -> CanonicalEvent:
        return CanonicalEvent(**self.model_dump(exclude={"added_at"}))


@dataclass
class RawEventDraft:
    """Unvalidated extraction output, consumed only by the validator."""

    title: str | None = None
    description: str | None = None
    link: str | None = None
    full_url: str | None = None
    date: str | None = None
    image_url: str | None = None
    id: str | None = None
    category: str | None = None
    end_date: str | None = None


@dataclass
class SyncSuccess:
    event: CanonicalEvent
    result: Any


@dataclass
class SyncFailure:
    event: CanonicalEvent
    error: BaseException


@dataclass
class SyncBatchResult:
    """Per-call aggregate of calendar export outcomes."""

    total: int
    success: list[SyncSuccess] = field(default_factory=list)
    failed: list[SyncFailure] = field(default_factory=list)
    batch_sizes: list[int] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return len(self.success) + len(self.failed) == self.total

    def summary(self) -> dict[str, int]:
        return {
            "total": self.total,
            "success": len(self.success),
            "failed": len(self.failed),
            "batches": len(self.batch_sizes),
        }


class UserSettings(BaseModel):
    """Flat user preferences persisted next to cache and history."""

    theme: str = "light"
    language: str = "es"
    auto_sync: bool = False
    # minutes
    sync_interval: int = Field(60, ge=1)
    notifications: bool = True
    calendar_connected: bool = False
    last_sync: Optional[datetime] = None


__all__ = [
    "CanonicalEvent",
    "EventCategory",
    "HistoryRecord",
    "RawEventDraft",
    "SyncBatchResult",
    "SyncFailure",
    "SyncSuccess",
    "UserSettings",
]
