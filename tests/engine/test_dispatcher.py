from __future__ import annotations

import threading
import time

import pytest

from calendar_crawler.engine.dispatcher import BatchSyncDispatcher, iter_batches
from calendar_crawler.engine.signals import EVENT_SYNC_FAILED, EVENT_SYNCED, SYNC_COMPLETED, SYNC_STARTED, SignalBus
from calendar_crawler.errors import SyncInputError


class RecordingSink:
    """Fails every ``fail_every``-th event (1-based on event id suffix)."""

    def __init__(self, fail_every: int | None = None, pause: float = 0.0) -> None:
        self.fail_every = fail_every
        self.pause = pause
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def deliver(self, event):
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            if self.pause:
                time.sleep(self.pause)
            index = int(event.id.split("-")[1])
            if self.fail_every and index % self.fail_every == 0:
                raise RuntimeError(f"rejected {event.id}")
            return {"id": f"remote-{event.id}"}
        finally:
            with self._lock:
                self.active -= 1

    def close(self) -> None:
        return


def _events(make_event, count: int):
    return [make_event(id=f"evt-{index}", title=f"Evento número {index}") for index in range(1, count + 1)]


def test_batches_partition_and_outcomes_are_complete(make_event) -> None:
    sleeps: list[float] = []
    dispatcher = BatchSyncDispatcher(RecordingSink(fail_every=3), batch_size=5, batch_delay=1.0, sleep=sleeps.append)
    events = _events(make_event, 12)

    result = dispatcher.sync(events)
    dispatcher.close()

    assert result.batch_sizes == [5, 5, 2]
    assert result.total == 12
    assert len(result.failed) == 4
    assert len(result.success) == 8
    assert result.complete
    # delay only between batches
    assert sleeps == [1.0, 1.0]
    assert [outcome.event.id for outcome in result.success][:2] == ["evt-1", "evt-2"]
    assert {failure.event.id for failure in result.failed} == {"evt-3", "evt-6", "evt-9", "evt-12"}
    assert str(result.failed[0].error) == "rejected evt-3"


def test_concurrency_is_bounded_by_batch_size(make_event) -> None:
    sink = RecordingSink(pause=0.05)
    dispatcher = BatchSyncDispatcher(sink, batch_size=3, batch_delay=0, sleep=lambda _s: None)
    result = dispatcher.sync(_events(make_event, 7))
    dispatcher.close()
    assert result.batch_sizes == [3, 3, 1]
    assert sink.peak <= 3


@pytest.mark.parametrize("bad_input", [[], None, "events", ("tuple",)])
def test_rejects_non_list_or_empty_input(bad_input) -> None:
    dispatcher = BatchSyncDispatcher(RecordingSink(), sleep=lambda _s: None)
    with pytest.raises(SyncInputError):
        dispatcher.sync(bad_input)  # type: ignore[arg-type]


def test_emits_lifecycle_signals(make_event) -> None:
    bus = SignalBus()
    seen: list[str] = []
    for name in (SYNC_STARTED, EVENT_SYNCED, EVENT_SYNC_FAILED, SYNC_COMPLETED):
        bus.subscribe(name, lambda _payload, name=name: seen.append(name))

    dispatcher = BatchSyncDispatcher(RecordingSink(fail_every=2), batch_size=5, signals=bus, sleep=lambda _s: None)
    dispatcher.sync(_events(make_event, 2))

    assert seen == [SYNC_STARTED, EVENT_SYNCED, EVENT_SYNC_FAILED, SYNC_COMPLETED]


def test_iter_batches() -> None:
    assert list(iter_batches([1, 2, 3, 4, 5], 2)) == [[1, 2], [3, 4], [5]]
    with pytest.raises(ValueError):
        list(iter_batches([1], 0))


def test_invalid_construction() -> None:
    with pytest.raises(ValueError):
        BatchSyncDispatcher(RecordingSink(), batch_size=0)
    with pytest.raises(ValueError):
        BatchSyncDispatcher(RecordingSink(), batch_delay=-1)


def test_deliveries_run_on_named_workers_and_close_resets_executor(make_event) -> None:
    names: list[str] = []

    class ThreadNameSink(RecordingSink):
        def deliver(self, event):
            names.append(threading.current_thread().name)
            return super().deliver(event)

    dispatcher = BatchSyncDispatcher(ThreadNameSink(), batch_size=2, sleep=lambda _s: None)
    dispatcher.sync(_events(make_event, 2))
    dispatcher.close()
    dispatcher.close()
    result = dispatcher.sync(_events(make_event, 1))
    dispatcher.close()

    assert result.summary()["success"] == 1
    assert len(names) == 3
    assert all(name.startswith("calendar-sync") for name in names)
