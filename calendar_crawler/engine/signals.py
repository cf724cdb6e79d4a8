"""Lifecycle notification channel."""

from __future__ import annotations

from collections import defaultdict
from threading import Lock
from typing import Any, Callable

import structlog

Listener = Callable[[Any], None]

SCRAPING_STARTED = "scraping_started"
EVENTS_LOADED = "events_loaded"
SCRAPING_ERROR = "scraping_error"
NEW_EVENTS_FOUND = "new_events_found"
SYNC_STARTED = "sync_started"
EVENT_SYNCED = "event_synced"
EVENT_SYNC_FAILED = "event_sync_failed"
SYNC_COMPLETED = "sync_completed"


class SignalBus:
    """Observer registry; a failing listener is logged and skipped."""

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._lock = Lock()
        self.logger = logger or structlog.get_logger("calendar_crawler.signals")

    def subscribe(self, name: str, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a handle that unregisters it."""

        with self._lock:
            self._listeners[name].append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(name, [])
                if listener in listeners:
                    listeners.remove(listener)

        return _unsubscribe

    def emit(self, name: str, payload: Any = None) -> int:
        """Deliver ``payload`` to every listener; return how many succeeded."""

        with self._lock:
            listeners = list(self._listeners.get(name, []))
        delivered = 0
        for listener in listeners:
            try:
                listener(payload)
            except Exception as exc:  # noqa: BLE001
                self.logger.error("listener_failed", signal=name, error=str(exc))
                continue
            delivered += 1
        return delivered

    def clear(self, name: str | None = None) -> None:
        with self._lock:
            if name is None:
                self._listeners.clear()
            else:
                self._listeners.pop(name, None)


__all__ = [
    "EVENTS_LOADED",
    "EVENT_SYNCED",
    "EVENT_SYNC_FAILED",
    "NEW_EVENTS_FOUND",
    "SCRAPING_ERROR",
    "SCRAPING_STARTED",
    "SYNC_COMPLETED",
    "SYNC_STARTED",
    "SignalBus",
]
