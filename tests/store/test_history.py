from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from calendar_crawler.models import EventCategory
from calendar_crawler.store import HistoryStore

BASE = datetime(2025, 7, 1, tzinfo=timezone.utc)


class StepClock:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self) -> datetime:
        self.calls += 1
        return BASE + timedelta(days=self.calls)


def test_add_is_idempotent_by_id(memory_store, make_event) -> None:
    history = HistoryStore(memory_store)
    event = make_event()
    assert history.add(event) is True
    assert history.add(event) is False
    assert len(history) == 1
    assert history.ids() == {event.id}


def test_equivalent_event_with_new_id_is_duplicate(memory_store, make_event) -> None:
    history = HistoryStore(memory_store)
    history.add(make_event(id="first"))
    assert history.add(make_event(id="second", title="  DÍA de la Comunidad de julio ")) is False


def test_fifo_cap_keeps_newest_first(memory_store, make_event) -> None:
    history = HistoryStore(memory_store, max_size=3, clock=StepClock())
    for index in range(5):
        history.add(make_event(id=f"evt-{index}", title=f"Evento {index}"))

    records = history.list()
    assert [record.id for record in records] == ["evt-4", "evt-3", "evt-2"]
    assert records[0].added_at > records[-1].added_at


def test_clear_keeps_empty_payload(memory_store, make_event) -> None:
    history = HistoryStore(memory_store)
    history.add(make_event())
    assert history.clear()
    assert history.list() == []
    assert memory_store.get_item("history_events") == '{"data": []}'


def test_corrupt_payload_reads_as_empty(memory_store, make_event) -> None:
    memory_store.set_item("history_events", "[broken")
    history = HistoryStore(memory_store)
    assert history.list() == []
    assert history.add(make_event()) is True
    assert len(history) == 1


def test_stats(memory_store, make_event) -> None:
    history = HistoryStore(memory_store, clock=StepClock())
    assert history.stats()["total_events"] == 0
    history.add(make_event(id="a", title="Evento A"))
    history.add(make_event(id="b", title="Evento B", category=EventCategory.RAIDS))

    stats = history.stats()
    assert stats["total_events"] == 2
    assert stats["oldest_event"] == (BASE + timedelta(days=1)).isoformat()
    assert stats["newest_event"] == (BASE + timedelta(days=2)).isoformat()
    assert stats["events_by_month"] == {"2025-07": 2}


def test_history_record_roundtrip(memory_store, make_event) -> None:
    history = HistoryStore(memory_store)
    event = make_event(image_url="https://cdn.example.com/a.png")
    history.add(event)
    assert history.list()[0].to_event() == event


def test_rejects_invalid_cap(memory_store) -> None:
    with pytest.raises(ValueError):
        HistoryStore(memory_store, max_size=0)


def test_unavailable_storage_reads_empty_and_refuses_writes(broken_store, make_event) -> None:
    history = HistoryStore(broken_store)
    assert history.add(make_event()) is False
    assert history.list() == []
    assert history.ids() == set()
    assert len(history) == 0
    assert history.clear() is False
    assert history.stats()["total_events"] == 0
