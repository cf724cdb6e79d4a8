"""Calendar sinks and payload helpers."""

from .base import BaseCalendarSink
from .file_sink import JsonlCalendarSink
from .mock_sink import MockCalendarSink, SimulatedSinkError
from .payload import COLOR_BY_CATEGORY, build_calendar_payload

__all__ = [
    "BaseCalendarSink",
    "COLOR_BY_CATEGORY",
    "JsonlCalendarSink",
    "MockCalendarSink",
    "SimulatedSinkError",
    "build_calendar_payload",
]
