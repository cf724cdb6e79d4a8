"""Single gatekeeper turning raw drafts into canonical events."""

from __future__ import annotations

import hashlib
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable

import structlog
from pydantic import ValidationError

from ..models import CanonicalEvent, EventCategory, RawEventDraft
from .dates import DateFragmentParser
from .extractor import clean_text

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 1000

# checked in order, accent-insensitive, against the lower-cased title
CATEGORY_KEYWORDS: tuple[tuple[EventCategory, tuple[str, ...]], ...] = (
    (EventCategory.COMMUNITY, ("dia de la comunidad", "community day")),
    (EventCategory.SPOTLIGHT, ("hora destacada", "hora del foco", "spotlight hour")),
    (EventCategory.RAIDS, ("incursion", "raid")),
    (EventCategory.FESTIVAL, ("festival",)),
    (EventCategory.LEGENDARY, ("legendari", "legendary")),
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text.casefold())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def generate_event_id(title: str, start_date: datetime, source_url: str) -> str:
    """Content hash of title + start instant + source URL."""

    composite = f"{title}|{start_date.isoformat()}|{source_url}"
    return hashlib.sha256(composite.encode("utf-8")).hexdigest()[:16]


def truncate_text(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 1].rstrip() + "…"


def classify_title(title: str) -> EventCategory:
    folded = _fold(title)
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in folded for keyword in keywords):
            return category
    return EventCategory.OTHER


@dataclass
class ValidationReport:
    events: list[CanonicalEvent] = field(default_factory=list)
    rejected: int = 0
    duplicates: int = 0


class EventValidator:
    """Enforce the canonical schema; rejects are counted, never raised."""

    def __init__(
        self,
        date_parser: DateFragmentParser | None = None,
        clock: Callable[[], datetime] = _utcnow,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.date_parser = date_parser or DateFragmentParser()
        self.clock = clock
        self.logger = logger or structlog.get_logger("calendar_crawler.validator")

    def validate(self, draft: RawEventDraft) -> CanonicalEvent | None:
        title = clean_text(draft.title)
        description = clean_text(draft.description)
        source_url = (draft.full_url or draft.link or "").strip()
        raw_date = (draft.date or "").strip()
        missing = [
            name
            for name, value in (
                ("title", title),
                ("description", description),
                ("date", raw_date),
                ("sourceUrl", source_url),
            )
            if not value
        ]
        if missing:
            self.logger.debug("draft_rejected", reason="missing_fields", fields=missing, title=title)
            return None

        start_date = self.date_parser.parse_any(raw_date)
        if start_date is None:
            self.logger.debug("draft_rejected", reason="unparseable_date", date=raw_date, title=title)
            return None
        end_date = start_date
        if draft.end_date:
            end_date = self.date_parser.parse_any(draft.end_date)
            if end_date is None or end_date < start_date:
                self.logger.debug("draft_rejected", reason="invalid_end_date", title=title)
                return None

        title = truncate_text(title, MAX_TITLE_LENGTH)
        description = truncate_text(description, MAX_DESCRIPTION_LENGTH)
        event_id = (draft.id or "").strip() or generate_event_id(title, start_date, source_url)

        try:
            return CanonicalEvent(
                id=event_id,
                title=title,
                description=description,
                start_date=start_date,
                end_date=end_date,
                image_url=draft.image_url or None,
                source_url=source_url,
                category=self._category(draft, title),
                scraped_at=self.clock(),
            )
        except ValidationError as exc:
            self.logger.debug("draft_rejected", reason="schema", title=title, error=str(exc))
            return None

    def validate_many(self, drafts: Iterable[RawEventDraft]) -> ValidationReport:
        report = ValidationReport()
        seen: set[str] = set()
        for draft in drafts:
            event = self.validate(draft)
            if event is None:
                report.rejected += 1
                continue
            if event.id in seen:
                report.duplicates += 1
                continue
            seen.add(event.id)
            report.events.append(event)
        self.logger.info(
            "validation_complete",
            valid=len(report.events),
            rejected=report.rejected,
            duplicates=report.duplicates,
        )
        return report

    @staticmethod
    def _category(draft: RawEventDraft, title: str) -> EventCategory:
        if draft.category:
            try:
                return EventCategory(draft.category.strip().lower())
            except ValueError:
                pass
        return classify_title(title)


__all__ = [
    "EventValidator",
    "ValidationReport",
    "classify_title",
    "generate_event_id",
    "truncate_text",
]
