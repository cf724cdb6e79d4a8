from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from calendar_crawler.errors import CrawlerError, FetchError, StorageUnavailable, SyncInputError
from calendar_crawler.models import CanonicalEvent, HistoryRecord, SyncBatchResult


def test_json_form_uses_camel_case(make_event) -> None:
    payload = make_event().to_json()
    assert payload["startDate"] == "2025-07-29T00:00:00Z"
    assert payload["sourceUrl"].endswith("/dia-de-la-comunidad")
    assert payload["imageUrl"] is None
    assert CanonicalEvent.from_json(payload) == make_event()


def test_naive_datetimes_become_utc(make_event) -> None:
    event = make_event(start_date=datetime(2025, 7, 29, 10, 0))
    assert event.start_date.tzinfo is not None
    assert event.start_date.utcoffset() == timedelta(0)


def test_invariants_enforced(make_event) -> None:
    with pytest.raises(ValidationError):
        make_event(title="   ")
    with pytest.raises(ValidationError):
        make_event(end_date=datetime(2025, 7, 1, tzinfo=timezone.utc))
    with pytest.raises(ValidationError):
        make_event(title="x" * 201)
    assert make_event(image_url="  ").image_url is None


def test_events_are_immutable(make_event) -> None:
    event = make_event()
    with pytest.raises(ValidationError):
        event.title = "changed"  # type: ignore[misc]


def test_equivalence_key_ignores_case_and_spacing(make_event) -> None:
    assert make_event(id="a").equivalence_key() == make_event(id="b", title="día  DE la comunidad de JULIO").equivalence_key()
    assert make_event().equivalence_key() != make_event(source_url="https://other.example/x").equivalence_key()


def test_history_record_wraps_event(make_event) -> None:
    added = datetime(2025, 7, 2, tzinfo=timezone.utc)
    record = HistoryRecord.from_event(make_event(), added_at=added)
    assert record.model_dump(mode="json", by_alias=True)["addedAt"] == "2025-07-02T00:00:00Z"
    assert record.to_event() == make_event()


def test_sync_batch_result_summary() -> None:
    result = SyncBatchResult(total=3, batch_sizes=[3])
    assert not result.complete
    assert result.summary() == {"total": 3, "success": 0, "failed": 0, "batches": 1}


def test_error_taxonomy() -> None:
    cause = OSError("disk")
    fetch = FetchError("Request timeout", status_code=408, reason="timeout")
    assert isinstance(fetch, CrawlerError)
    assert fetch.to_dict()["reason"] == "timeout"
    assert fetch.to_dict()["status_code"] == 408
    assert StorageUnavailable("gone", cause=cause).status_code == 503
    assert StorageUnavailable("gone", cause=cause).cause is cause
    sync_error = SyncInputError("No events to sync")
    assert isinstance(sync_error, ValueError)
    assert sync_error.status_code == 400
