"""Error taxonomy shared by the fetch, storage and sync layers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


class CrawlerError(Exception):
    """Base error carrying an HTTP-like status code and the original cause."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": type(self).__name__,
            "message": self.message,
            "status_code": self.status_code,
            "timestamp": self.timestamp.isoformat(),
        }


class FetchError(CrawlerError):
    """Page could not be retrieved.

    ``reason`` is one of ``timeout``, ``http_status``, ``network`` or
    ``exhausted`` (every fetch strategy failed).
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        cause: BaseException | None = None,
        reason: str = "network",
    ) -> None:
        super().__init__(message, status_code=status_code, cause=cause)
        self.reason = reason

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["reason"] = self.reason
        return payload


class StorageUnavailable(CrawlerError):
    """Key-value persistence backend is not accessible."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message, status_code=503, cause=cause)


class SyncInputError(CrawlerError, ValueError):
    """Batch sync was handed something other than a non-empty list."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=400)


__all__ = ["CrawlerError", "FetchError", "StorageUnavailable", "SyncInputError"]
