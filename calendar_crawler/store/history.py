"""Bounded, deduplicated log of previously seen events."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from typing import Any, Callable

import structlog
from pydantic import ValidationError

from ..infra.storage import KeyValueStore
from ..models import CanonicalEvent, HistoryRecord
from .base import _MISSING, PrefixedStore

HISTORY_PREFIX = "history_"
HISTORY_KEY = "events"
DEFAULT_MAX_SIZE = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HistoryStore(PrefixedStore):
    """FIFO-capped history keyed by event id.

    Records are kept newest-added first. When the cap is reached the oldest
    addition is dropped, regardless of the events' own dates.
    """

    def __init__(
        self,
        backend: KeyValueStore,
        max_size: int = DEFAULT_MAX_SIZE,
        prefix: str = HISTORY_PREFIX,
        clock: Callable[[], datetime] = _utcnow,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        super().__init__(backend, prefix, logger=logger)
        self.max_size = max_size
        self.clock = clock

    def _load(self) -> list[HistoryRecord] | None:
        """Return stored records, or ``None`` if the payload is unreadable."""

        try:
            payload = self._read_json(HISTORY_KEY)
        except ValueError:
            self.logger.warning("history_payload_corrupt")
            return None
        if payload is _MISSING:
            return []
        items = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            self.logger.warning("history_payload_corrupt")
            return None
        records: list[HistoryRecord] = []
        for item in items:
            try:
                records.append(HistoryRecord.model_validate(item))
            except ValidationError:
                self.logger.debug("history_record_skipped")
        return records

    def _save(self, records: list[HistoryRecord]) -> bool:
        payload = {"data": [record.model_dump(mode="json", by_alias=True) for record in records]}
        return self._write_json(HISTORY_KEY, payload)

    # ------------------------------------------------------------------
    def add(self, event: CanonicalEvent) -> bool:
        """Append ``event``; ``False`` if it is already known or cannot be stored."""

        records = self._load()
        if records is None:
            records = []
        key = event.equivalence_key()
        for record in records:
            if record.id == event.id or record.equivalence_key() == key:
                return False
        records.insert(0, HistoryRecord.from_event(event, added_at=self.clock()))
        while len(records) > self.max_size:
            evicted = records.pop()
            self.logger.debug("history_evicted", event_id=evicted.id)
        return self._save(records)

    def list(self) -> list[HistoryRecord]:
        return self._load() or []

    def ids(self) -> set[str]:
        return {record.id for record in self.list()}

    def __len__(self) -> int:
        return len(self.list())

    def clear(self) -> bool:
        return self._save([])

    def stats(self) -> dict[str, Any]:
        records = self.list()
        by_month = Counter(record.added_at.strftime("%Y-%m") for record in records)
        return {
            "total_events": len(records),
            "oldest_event": records[-1].added_at.isoformat() if records else None,
            "newest_event": records[0].added_at.isoformat() if records else None,
            "events_by_month": dict(by_month),
        }


__all__ = ["HISTORY_PREFIX", "HistoryStore"]
