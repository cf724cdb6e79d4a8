"""In-process calendar stand-in used until a real calendar is connected."""

from __future__ import annotations

import itertools
import random
from datetime import datetime, timezone
from threading import Lock
from typing import Any

import structlog

from ..models import CanonicalEvent
from .base import BaseCalendarSink
from .payload import build_calendar_payload


class SimulatedSinkError(RuntimeError):
    """Raised by the mock sink to emulate an API rejection."""


class MockCalendarSink(BaseCalendarSink):
    """Accept events in memory; ``failure_rate`` of them are rejected at random."""

    def __init__(
        self,
        time_zone: str = "Europe/Madrid",
        failure_rate: float = 0.0,
        rng: random.Random | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError("failure_rate must be within [0, 1]")
        self.time_zone = time_zone
        self.failure_rate = failure_rate
        self.rng = rng or random.Random()
        self.logger = logger or structlog.get_logger("calendar_crawler.sinks.mock")
        self.delivered: list[dict[str, Any]] = []
        self._counter = itertools.count()
        self._lock = Lock()

    def deliver(self, event: CanonicalEvent) -> dict[str, Any]:
        payload = build_calendar_payload(event, self.time_zone)
        with self._lock:
            index = next(self._counter)
            rejected = self.failure_rate > 0 and self.rng.random() < self.failure_rate
            if rejected:
                raise SimulatedSinkError(f"Simulated API error for {event.id}")
            now = datetime.now(timezone.utc)
            record = {
                "id": f"mock_{int(now.timestamp() * 1000)}_{index}",
                "htmlLink": f"https://calendar.google.com/event?eid=mock_{index}",
                "created": now.isoformat(),
            }
            self.delivered.append(payload)
        self.logger.debug("mock_event_created", event_id=event.id, remote_id=record["id"])
        return record


__all__ = ["MockCalendarSink", "SimulatedSinkError"]
