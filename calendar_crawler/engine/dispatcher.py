"""Batched, bounded-concurrency export of events to a calendar sink."""

from __future__ import annotations

import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from threading import Lock
from typing import Any, Callable, Iterator, Sequence

import structlog

from ..errors import SyncInputError
from ..models import CanonicalEvent, SyncBatchResult, SyncFailure, SyncSuccess
from . import signals as sig
from .signals import SignalBus

DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY = 1.0
THREAD_PREFIX = "calendar-sync"


def iter_batches(items: Sequence[Any], size: int) -> Iterator[list[Any]]:
    """Yield consecutive slices of ``items`` of at most ``size`` elements."""

    if size < 1:
        raise ValueError("batch size must be >= 1")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


class BatchSyncDispatcher:
    """Push events to ``sink`` a batch at a time.

    Items in a batch run concurrently; the batch is joined before the next
    one starts, and ``batch_delay`` seconds pass between batches. Each item
    lands in exactly one of ``success`` or ``failed``.
    """

    def __init__(
        self,
        sink: Any,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY,
        signals: SignalBus | None = None,
        sleep: Callable[[float], None] = time.sleep,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if batch_delay < 0:
            raise ValueError("batch_delay must be >= 0")
        self.sink = sink
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = Lock()
        self.signals = signals
        self.sleep = sleep
        self.logger = logger or structlog.get_logger("calendar_crawler.dispatcher")

    def _emit(self, name: str, payload: Any) -> None:
        if self.signals is not None:
            self.signals.emit(name, payload)

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.batch_size, thread_name_prefix=THREAD_PREFIX
                )
            return self._executor

    def sync(self, events: list[CanonicalEvent]) -> SyncBatchResult:
        if not isinstance(events, list):
            raise SyncInputError("Events must be a list")
        if not events:
            raise SyncInputError("No events to sync")

        result = SyncBatchResult(total=len(events))
        executor = self._get_executor()
        self._emit(sig.SYNC_STARTED, {"total": result.total})
        self.logger.info("sync_started", total=result.total, batch_size=self.batch_size)

        for index, batch in enumerate(iter_batches(events, self.batch_size)):
            if index and self.batch_delay:
                self.sleep(self.batch_delay)
            futures: list[Future] = [executor.submit(self.sink.deliver, event) for event in batch]
            wait(futures)
            for event, future in zip(batch, futures):
                error = future.exception()
                if error is None:
                    outcome = SyncSuccess(event=event, result=future.result())
                    result.success.append(outcome)
                    self._emit(sig.EVENT_SYNCED, outcome)
                else:
                    self.logger.warning("event_sync_failed", event_id=event.id, error=str(error))
                    failure = SyncFailure(event=event, error=error)
                    result.failed.append(failure)
                    self._emit(sig.EVENT_SYNC_FAILED, failure)
            result.batch_sizes.append(len(batch))

        self.logger.info("sync_completed", **result.summary())
        self._emit(sig.SYNC_COMPLETED, result)
        return result

    def close(self) -> None:
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False)


__all__ = ["BatchSyncDispatcher", "iter_batches"]
