"""Locale-aware parsing of "29 jul 2025" style date fragments."""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any, Mapping

MONTHS_BY_LOCALE: dict[str, dict[str, int]] = {
    "es": {
        "ene": 1, "feb": 2, "mar": 3, "abr": 4, "may": 5, "jun": 6,
        "jul": 7, "ago": 8, "sep": 9, "oct": 10, "nov": 11, "dic": 12,
    },
    "en": {
        "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
        "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
    },
}


def _build_pattern(months: Mapping[str, int]) -> re.Pattern[str]:
    alternatives = "|".join(sorted(months))
    # "29 jul 2025", "29 jul. 2025", "29 de julio de 2025"
    return re.compile(
        rf"\b(\d{{1,2}})\s+(?:de\s+)?({alternatives})[^\W\d_]*\.?\s+(?:de\s+)?(\d{{4}})\b",
        re.IGNORECASE,
    )


class DateFragmentParser:
    """Find the first day/month/year fragment in free text.

    Results are midnight UTC. Anything unrecognisable yields ``None``.
    """

    def __init__(self, locale: str = "es") -> None:
        if locale not in MONTHS_BY_LOCALE:
            raise ValueError(f"Unsupported locale: {locale}")
        self.locale = locale
        self.months = MONTHS_BY_LOCALE[locale]
        self._pattern = _build_pattern(self.months)

    def parse(self, fragment: Any) -> datetime | None:
        if not isinstance(fragment, str) or not fragment:
            return None
        for match in self._pattern.finditer(fragment):
            day, month_token, year = match.groups()
            month = self.months.get(month_token[:3].lower())
            if month is None:
                continue
            iso = f"{year}-{month:02d}-{int(day):02d}"
            try:
                parsed = date.fromisoformat(iso)
            except ValueError:
                continue
            return datetime(parsed.year, parsed.month, parsed.day, tzinfo=timezone.utc)
        return None

    def parse_iso(self, value: Any) -> datetime | None:
        """Accept ISO-8601 strings, dates and datetimes; naive values are UTC."""

        if isinstance(value, datetime):
            dt = value
        elif isinstance(value, date):
            dt = datetime(value.year, value.month, value.day)
        elif isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            try:
                dt = datetime.fromisoformat(text)
            except ValueError:
                return None
        else:
            return None
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)

    def parse_any(self, value: Any) -> datetime | None:
        """ISO first, then the locale fragment."""

        return self.parse_iso(value) or self.parse(value)


__all__ = ["DateFragmentParser", "MONTHS_BY_LOCALE"]
