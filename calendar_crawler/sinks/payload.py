"""Google-Calendar-shaped request bodies built from canonical events."""

from __future__ import annotations

from typing import Any

from ..models import CanonicalEvent, EventCategory

COLOR_BY_CATEGORY: dict[EventCategory, str] = {
    EventCategory.LEGENDARY: "11",
    EventCategory.FESTIVAL: "9",
    EventCategory.COMMUNITY: "10",
    EventCategory.SPOTLIGHT: "5",
    EventCategory.RAIDS: "6",
    EventCategory.OTHER: "1",
}
REMINDER_MINUTES = (60, 10)
SOURCE_TITLE = "Pokémon GO"


def format_description(event: CanonicalEvent) -> str:
    lines = [event.description, "", f"Más información: {event.source_url}", ""]
    lines.append("Creado automáticamente por calendar-crawler")
    lines.append(f"Fecha de extracción: {event.scraped_at.strftime('%d/%m/%Y %H:%M:%S')} UTC")
    lines.append(f"Categoría: {event.category.value}")
    return "\n".join(lines)


def build_calendar_payload(event: CanonicalEvent, time_zone: str = "Europe/Madrid") -> dict[str, Any]:
    return {
        "summary": event.title,
        "description": format_description(event),
        "start": {"dateTime": event.start_date.isoformat(), "timeZone": time_zone},
        "end": {"dateTime": event.end_date.isoformat(), "timeZone": time_zone},
        "source": {"title": SOURCE_TITLE, "url": event.source_url},
        "colorId": COLOR_BY_CATEGORY.get(event.category, COLOR_BY_CATEGORY[EventCategory.OTHER]),
        "reminders": {
            "useDefault": False,
            "overrides": [{"method": "popup", "minutes": minutes} for minutes in REMINDER_MINUTES],
        },
    }


__all__ = ["COLOR_BY_CATEGORY", "build_calendar_payload", "format_description"]
