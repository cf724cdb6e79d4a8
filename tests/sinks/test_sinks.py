from __future__ import annotations

import json
import random
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from calendar_crawler.models import EventCategory
from calendar_crawler.sinks import (
    COLOR_BY_CATEGORY,
    JsonlCalendarSink,
    MockCalendarSink,
    SimulatedSinkError,
    build_calendar_payload,
)


def test_payload_shape(make_event) -> None:
    event = make_event(category=EventCategory.LEGENDARY)
    payload = build_calendar_payload(event, time_zone="Europe/Madrid")

    assert payload["summary"] == event.title
    assert payload["start"] == {"dateTime": "2025-07-29T00:00:00+00:00", "timeZone": "Europe/Madrid"}
    assert payload["end"]["dateTime"] == payload["start"]["dateTime"]
    assert payload["colorId"] == "11"
    assert payload["source"]["url"] == event.source_url
    assert [item["minutes"] for item in payload["reminders"]["overrides"]] == [60, 10]
    assert payload["reminders"]["useDefault"] is False
    assert event.source_url in payload["description"]
    assert "Categoría: legendary" in payload["description"]


def test_every_category_has_a_colour() -> None:
    assert set(COLOR_BY_CATEGORY) == set(EventCategory)
    assert COLOR_BY_CATEGORY[EventCategory.OTHER] == "1"


def test_mock_sink_returns_remote_record(make_event) -> None:
    sink = MockCalendarSink()
    record = sink.deliver(make_event())
    assert set(record) == {"id", "htmlLink", "created"}
    assert record["id"].startswith("mock_")
    assert record["htmlLink"].startswith("https://calendar.google.com/event?eid=mock_")
    assert len(sink.delivered) == 1


def test_mock_sink_failure_rate(make_event) -> None:
    always = MockCalendarSink(failure_rate=1.0, rng=random.Random(7))
    with pytest.raises(SimulatedSinkError):
        always.deliver(make_event())
    assert always.delivered == []
    with pytest.raises(ValueError):
        MockCalendarSink(failure_rate=2.0)


def test_jsonl_sink_appends_lines_thread_safely(tmp_path: Path, make_event) -> None:
    sink = JsonlCalendarSink(tmp_path / "outputs", name="Pokémon GO", run_tag="run1")
    events = [make_event(id=f"evt-{index}", title=f"Evento {index}") for index in range(20)]
    with ThreadPoolExecutor(max_workers=5) as executor:
        results = list(executor.map(sink.deliver, events))
    sink.close()
    sink.close()

    assert sink.path.name == "Pok_mon_GO-run1.jsonl"
    lines = sink.path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 20
    assert {json.loads(line)["eventId"] for line in lines} == {event.id for event in events}
    assert sorted(result["line"] for result in results) == list(range(1, 21))
