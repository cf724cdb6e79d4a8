from __future__ import annotations

from calendar_crawler.engine.signals import NEW_EVENTS_FOUND, SCRAPING_ERROR, SignalBus


def test_emit_reaches_every_listener() -> None:
    bus = SignalBus()
    received: list[tuple[str, object]] = []
    bus.subscribe(NEW_EVENTS_FOUND, lambda payload: received.append(("a", payload)))
    bus.subscribe(NEW_EVENTS_FOUND, lambda payload: received.append(("b", payload)))

    assert bus.emit(NEW_EVENTS_FOUND, [1, 2]) == 2
    assert received == [("a", [1, 2]), ("b", [1, 2])]


def test_failing_listener_does_not_block_others() -> None:
    bus = SignalBus()
    received: list[object] = []

    def broken(_payload) -> None:
        raise RuntimeError("listener bug")

    bus.subscribe(SCRAPING_ERROR, broken)
    bus.subscribe(SCRAPING_ERROR, received.append)

    assert bus.emit(SCRAPING_ERROR, "boom") == 1
    assert received == ["boom"]


def test_unsubscribe_and_clear() -> None:
    bus = SignalBus()
    received: list[object] = []
    unsubscribe = bus.subscribe(NEW_EVENTS_FOUND, received.append)
    unsubscribe()
    unsubscribe()
    assert bus.emit(NEW_EVENTS_FOUND, "x") == 0

    bus.subscribe(NEW_EVENTS_FOUND, received.append)
    bus.clear()
    assert bus.emit(NEW_EVENTS_FOUND, "y") == 0
    assert received == []
