"""Key-value cache with per-entry expiry."""

from __future__ import annotations

import json
import time
from datetime import timedelta
from typing import Any, Callable

import structlog

from ..errors import StorageUnavailable
from ..infra.storage import KeyValueStore
from .base import _MISSING, PrefixedStore

CACHE_PREFIX = "cache_"
DEFAULT_TTL = timedelta(hours=1)


def _ttl_ms(ttl: timedelta | float | int) -> int:
    if isinstance(ttl, timedelta):
        seconds = ttl.total_seconds()
    else:
        seconds = float(ttl)
    if seconds < 0:
        raise ValueError("ttl must be >= 0")
    return int(round(seconds * 1000))


class TTLCache(PrefixedStore):
    """Store values as ``{data, storedAt, ttl, expires}`` (epoch milliseconds).

    ``get`` treats expired or unreadable entries as a miss and evicts them, so
    ``sweep`` is housekeeping only.
    """

    def __init__(
        self,
        backend: KeyValueStore,
        prefix: str = CACHE_PREFIX,
        clock: Callable[[], float] = time.time,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        super().__init__(backend, prefix, logger=logger)
        self.clock = clock

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def set(self, key: str, value: Any, ttl: timedelta | float | int = DEFAULT_TTL) -> bool:
        """Store ``value`` for ``ttl`` (timedelta or seconds); overwrites unconditionally."""

        now = self._now_ms()
        ttl_ms = _ttl_ms(ttl)
        entry = {"data": value, "storedAt": now, "ttl": ttl_ms, "expires": now + ttl_ms}
        return self._write_json(key, entry)

    def get(self, key: str, default: Any = None) -> Any:
        try:
            entry = self._read_json(key)
        except ValueError:
            self.logger.warning("cache_entry_corrupt", key=key)
            self.remove(key)
            return default
        if entry is _MISSING:
            return default
        if not self._is_entry(entry):
            self.logger.warning("cache_entry_corrupt", key=key)
            self.remove(key)
            return default
        if self._now_ms() > entry["expires"]:
            self.logger.debug("cache_entry_expired", key=key)
            self.remove(key)
            return default
        return entry["data"]

    def contains(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def sweep(self) -> int:
        """Evict every expired or corrupt entry; return how many were removed."""

        removed = 0
        now = self._now_ms()
        try:
            for full_key in self._own_keys():
                raw = self.backend.get_item(full_key)
                try:
                    entry = json.loads(raw) if raw is not None else None
                except ValueError:
                    entry = None
                if entry is not None and self._is_entry(entry) and now <= entry["expires"]:
                    continue
                self.backend.remove_item(full_key)
                removed += 1
        except StorageUnavailable as exc:
            self.logger.warning("cache_sweep_failed", error=str(exc), removed=removed)
        if removed:
            self.logger.info("cache_swept", removed=removed)
        return removed

    @staticmethod
    def _is_entry(entry: Any) -> bool:
        return (
            isinstance(entry, dict)
            and "data" in entry
            and isinstance(entry.get("expires"), (int, float))
        )


__all__ = ["CACHE_PREFIX", "TTLCache"]
