"""Key-value string stores backing the cache, history and settings layers."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from threading import Lock
from typing import Dict, Optional, Protocol, runtime_checkable

from ..errors import StorageUnavailable


@runtime_checkable
class KeyValueStore(Protocol):
    """Generic string store with positional key access."""

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored string or ``None``."""

    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    def remove_item(self, key: str) -> None:
        """Delete ``key`` if present."""

    def __len__(self) -> int:
        """Number of keys held."""

    def key(self, index: int) -> Optional[str]:
        """Return the key at ``index`` or ``None`` when out of range."""


class MemoryKeyValueStore:
    """Process-local store, insertion ordered."""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}
        self._lock = Lock()

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = value

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def key(self, index: int) -> Optional[str]:
        with self._lock:
            keys = list(self._items)
        if 0 <= index < len(keys):
            return keys[index]
        return None


class SQLiteManager:
    """Manage SQLite connections with basic schema guarantees."""

    def __init__(self) -> None:
        self._connections: Dict[Path, sqlite3.Connection] = {}
        self._lock = Lock()

    def connect(self, path: Path) -> sqlite3.Connection:
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            if path not in self._connections:
                conn = sqlite3.connect(path, check_same_thread=False)
                conn.row_factory = sqlite3.Row
                self._connections[path] = conn
                self._ensure_schema(conn)
            return self._connections[path]

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            """
        )
        conn.commit()

    def reset(self, path: Path) -> None:
        with self._lock:
            if path in self._connections:
                self._connections[path].close()
                del self._connections[path]
        if path.exists():
            path.unlink()

    def close_all(self) -> None:
        with self._lock:
            for conn in self._connections.values():
                conn.close()
            self._connections.clear()


class SQLiteKeyValueStore:
    """Durable key-value store on a single SQLite table.

    Any ``sqlite3.Error`` surfaces as :class:`StorageUnavailable` so callers
    can degrade instead of crashing.
    """

    def __init__(self, manager: SQLiteManager, db_path: Path) -> None:
        self.manager = manager
        self.db_path = db_path
        self._lock = Lock()
        try:
            self._conn = self.manager.connect(db_path)
        except (sqlite3.Error, OSError) as exc:
            raise StorageUnavailable(f"Cannot open storage at {db_path}", cause=exc) from exc

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            try:
                row = self._conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (key,)
                ).fetchone()
            except sqlite3.Error as exc:
                raise StorageUnavailable("Storage read failed", cause=exc) from exc
        return row["value"] if row is not None else None

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            try:
                self._conn.execute(
                    "INSERT OR REPLACE INTO kv_store(key, value) VALUES (?, ?)", (key, value)
                )
                self._conn.commit()
            except sqlite3.Error as exc:
                raise StorageUnavailable("Storage write failed", cause=exc) from exc

    def remove_item(self, key: str) -> None:
        with self._lock:
            try:
                self._conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                self._conn.commit()
            except sqlite3.Error as exc:
                raise StorageUnavailable("Storage delete failed", cause=exc) from exc

    def __len__(self) -> int:
        with self._lock:
            try:
                row = self._conn.execute("SELECT count(*) FROM kv_store").fetchone()
            except sqlite3.Error as exc:
                raise StorageUnavailable("Storage count failed", cause=exc) from exc
        return int(row[0])

    def key(self, index: int) -> Optional[str]:
        if index < 0:
            return None
        with self._lock:
            try:
                row = self._conn.execute(
                    "SELECT key FROM kv_store ORDER BY rowid LIMIT 1 OFFSET ?", (index,)
                ).fetchone()
            except sqlite3.Error as exc:
                raise StorageUnavailable("Storage key lookup failed", cause=exc) from exc
        return row["key"] if row is not None else None


__all__ = ["KeyValueStore", "MemoryKeyValueStore", "SQLiteKeyValueStore", "SQLiteManager"]
