"""Cache, history and settings stores layered on the key-value backend."""

from .base import PrefixedStore, format_bytes
from .cache import TTLCache
from .history import HistoryStore
from .settings import SettingsStore

__all__ = ["HistoryStore", "PrefixedStore", "SettingsStore", "TTLCache", "format_bytes"]
