"""Calendar sink SPI."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ..models import CanonicalEvent


class BaseCalendarSink(ABC):
    """Uniform contract for anything that accepts events for a calendar."""

    @abstractmethod
    def deliver(self, event: CanonicalEvent) -> dict[str, Any]:
        """Insert a single event and return the remote record."""

    def close(self) -> None:
        """Release underlying resources."""


__all__ = ["BaseCalendarSink"]
