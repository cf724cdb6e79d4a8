"""JSON-lines file sink for offline review or import."""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any

from ..models import CanonicalEvent
from .base import BaseCalendarSink
from .payload import build_calendar_payload


class JsonlCalendarSink(BaseCalendarSink):
    """Append one calendar payload per line to ``<output_dir>/<name>-<run_tag>.jsonl``."""

    def __init__(
        self,
        output_dir: Path,
        name: str = "calendar",
        time_zone: str = "Europe/Madrid",
        run_tag: str | None = None,
    ) -> None:
        self.output_dir = output_dir
        self.time_zone = time_zone
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.run_tag = run_tag or datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        slug = re.sub(r"[^0-9A-Za-z_-]+", "_", name.strip()) or "calendar"
        self.path = self.output_dir / f"{slug}-{self.run_tag}.jsonl"
        self._file = self.path.open("a", encoding="utf-8")
        self._lock = Lock()
        self._line = 0

    def deliver(self, event: CanonicalEvent) -> dict[str, Any]:
        payload = build_calendar_payload(event, self.time_zone)
        payload["eventId"] = event.id
        with self._lock:
            json.dump(payload, self._file, ensure_ascii=False)
            self._file.write("\n")
            self._file.flush()
            self._line += 1
            line = self._line
        return {"id": event.id, "path": str(self.path), "line": line}

    def close(self) -> None:
        with self._lock:
            if not self._file.closed:
                self._file.close()


__all__ = ["JsonlCalendarSink"]
