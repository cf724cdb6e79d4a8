"""JSON-over-key-value base shared by cache, history and settings stores."""

from __future__ import annotations

import json
import math
from typing import Any, Iterator

import structlog

from ..errors import StorageUnavailable
from ..infra.storage import KeyValueStore

_MISSING = object()


def format_bytes(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    index = min(int(math.floor(math.log(size, 1024))), len(units) - 1)
    value = round(size / (1024**index), 2)
    return f"{value:g} {units[index]}"


class PrefixedStore:
    """Namespace a key-value store under a fixed prefix and speak JSON.

    Storage failures are logged and reported as ``False``/missing; they never
    escape this layer.
    """

    def __init__(self, backend: KeyValueStore, prefix: str, logger: structlog.BoundLogger | None = None) -> None:
        self.backend = backend
        self.prefix = prefix
        self.logger = logger or structlog.get_logger("calendar_crawler.store").bind(prefix=prefix)

    def full_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    # ------------------------------------------------------------------
    def _read_raw(self, key: str) -> str | None:
        try:
            return self.backend.get_item(self.full_key(key))
        except StorageUnavailable as exc:
            self.logger.warning("storage_read_failed", key=key, error=str(exc))
            return None

    def _read_json(self, key: str) -> Any:
        """Return decoded JSON, ``_MISSING`` when absent, or raise ``ValueError`` if corrupt."""

        raw = self._read_raw(key)
        if raw is None:
            return _MISSING
        return json.loads(raw)

    def _write_json(self, key: str, payload: Any) -> bool:
        try:
            encoded = json.dumps(payload, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            self.logger.error("storage_encode_failed", key=key, error=str(exc))
            return False
        try:
            self.backend.set_item(self.full_key(key), encoded)
        except StorageUnavailable as exc:
            self.logger.warning("storage_write_failed", key=key, error=str(exc))
            return False
        return True

    def remove(self, key: str) -> bool:
        try:
            self.backend.remove_item(self.full_key(key))
        except StorageUnavailable as exc:
            self.logger.warning("storage_remove_failed", key=key, error=str(exc))
            return False
        return True

    def _own_keys(self) -> Iterator[str]:
        """Yield full keys under this prefix; snapshot first so removal is safe."""

        keys: list[str] = []
        for index in range(len(self.backend)):
            key = self.backend.key(index)
            if key and key.startswith(self.prefix):
                keys.append(key)
        return iter(keys)

    def clear(self) -> bool:
        try:
            for full_key in self._own_keys():
                self.backend.remove_item(full_key)
        except StorageUnavailable as exc:
            self.logger.warning("storage_clear_failed", error=str(exc))
            return False
        return True

    def info(self) -> dict[str, Any]:
        try:
            keys = list(self._own_keys())
            total = 0
            for full_key in keys:
                value = self.backend.get_item(full_key)
                total += len(full_key) + (len(value) if value else 0)
        except StorageUnavailable as exc:
            return {"supported": False, "error": str(exc)}
        return {
            "supported": True,
            "keys": len(keys),
            "total_size": total,
            "formatted_size": format_bytes(total),
        }


__all__ = ["PrefixedStore", "format_bytes"]
