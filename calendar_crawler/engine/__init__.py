"""Engine components: fetch → extract → validate, plus batch sync."""

from .dates import DateFragmentParser
from .dispatcher import BatchSyncDispatcher
from .extractor import EventExtractor
from .fetcher import FetchRequest, FetchResponse, PageFetcher
from .signals import SignalBus
from .validator import EventValidator, ValidationReport

__all__ = [
    "BatchSyncDispatcher",
    "DateFragmentParser",
    "EventExtractor",
    "EventValidator",
    "FetchRequest",
    "FetchResponse",
    "PageFetcher",
    "SignalBus",
    "ValidationReport",
]
