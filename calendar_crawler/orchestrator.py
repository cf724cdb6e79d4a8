"""Orchestrator wiring fetching, extraction, validation, storage and sync."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta, timezone
from enum import Enum
from threading import Event, Lock
from typing import Any, Callable
from uuid import uuid4

import structlog
from pydantic import ValidationError

from .config import ConfigRepository, CrawlerConfig, StorageBackend
from .engine import (
    BatchSyncDispatcher,
    DateFragmentParser,
    EventExtractor,
    EventValidator,
    PageFetcher,
    SignalBus,
)
from .engine import signals as sig
from .errors import StorageUnavailable
from .infra import KeyValueStore, MemoryKeyValueStore, SQLiteKeyValueStore, SQLiteManager
from .logging_conf import component_logger
from .models import CanonicalEvent, SyncBatchResult
from .scheduler import APSchedulerAdapter
from .sinks import BaseCalendarSink, JsonlCalendarSink, MockCalendarSink
from .store import HistoryStore, SettingsStore, TTLCache

SCRAPED_EVENTS_KEY = "scraped_events"
AUTO_SCRAPE_JOB_ID = "auto_scrape"
DEFAULT_CACHE_TTL = timedelta(minutes=30)


class ScrapeState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    VALIDATING = "validating"
    PUBLISHING = "publishing"
    ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScrapeOrchestrator:
    """Drive one scrape at a time through fetch → extract → validate → publish.

    A failed attempt leaves the cache and history untouched; the error is
    published on the ``scraping_error`` signal and re-raised.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        extractor: EventExtractor,
        validator: EventValidator,
        cache: TTLCache,
        history: HistoryStore,
        settings: SettingsStore,
        dispatcher: BatchSyncDispatcher,
        scheduler: APSchedulerAdapter | None = None,
        signals: SignalBus | None = None,
        target_url: str = "https://pokemongo.com/es/news",
        cache_ttl: timedelta = DEFAULT_CACHE_TTL,
        clock: Callable[[], datetime] = _utcnow,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.extractor = extractor
        self.validator = validator
        self.cache = cache
        self.history = history
        self.settings = settings
        self.dispatcher = dispatcher
        self.scheduler = scheduler
        self.signals = signals or SignalBus()
        self.target_url = target_url
        self.cache_ttl = cache_ttl
        self.clock = clock
        self.logger = logger or structlog.get_logger("calendar_crawler.orchestrator")
        self.state = ScrapeState.IDLE
        self._scrape_lock = Lock()
        self._auto_scraping_cancel: Callable[[], None] | None = None

    # ------------------------------------------------------------------
    def startup(self) -> int:
        """Drop expired cache entries left over from earlier runs."""

        removed = self.cache.sweep()
        self.logger.info("orchestrator_started", expired_cache_entries=removed)
        return removed

    def scrape_events(self, use_cache: bool = True) -> list[CanonicalEvent]:
        with self._scrape_lock:
            if use_cache:
                cached = self._load_cached_events()
                if cached is not None:
                    self.logger.info("cache_hit", events=len(cached))
                    self.signals.emit(sig.EVENTS_LOADED, {"events": cached, "source": "cache"})
                    return cached
            return self._scrape_live()

    def _load_cached_events(self) -> list[CanonicalEvent] | None:
        payload = self.cache.get(SCRAPED_EVENTS_KEY)
        if not isinstance(payload, list):
            return None
        events: list[CanonicalEvent] = []
        for item in payload:
            try:
                events.append(CanonicalEvent.from_json(item))
            except (TypeError, ValidationError):
                self.logger.warning("cache_entry_corrupt", key=SCRAPED_EVENTS_KEY)
                self.cache.remove(SCRAPED_EVENTS_KEY)
                return None
        return events

    def _scrape_live(self) -> list[CanonicalEvent]:
        self.signals.emit(sig.SCRAPING_STARTED, {"url": self.target_url})
        self.logger.info("scraping_started", url=self.target_url)
        try:
            self.state = ScrapeState.FETCHING
            response = self.fetcher.fetch(self.target_url)
            self.state = ScrapeState.EXTRACTING
            drafts = self.extractor.extract(response.text, self.target_url)
            self.state = ScrapeState.VALIDATING
            report = self.validator.validate_many(drafts)
        except Exception as exc:
            self.state = ScrapeState.ERROR
            self.logger.error("scraping_failed", url=self.target_url, error=str(exc))
            self.signals.emit(sig.SCRAPING_ERROR, exc)
            self.state = ScrapeState.IDLE
            raise

        self.state = ScrapeState.PUBLISHING
        events = report.events
        self.cache.set(SCRAPED_EVENTS_KEY, [event.to_json() for event in events], ttl=self.cache_ttl)
        added = sum(1 for event in events if self.history.add(event))
        self.logger.info(
            "scraping_complete",
            events=len(events),
            rejected=report.rejected,
            added_to_history=added,
        )
        self.signals.emit(sig.EVENTS_LOADED, {"events": events, "source": "scrape"})
        self.state = ScrapeState.IDLE
        return events

    def scrape_new_events(self) -> list[CanonicalEvent]:
        """Scrape bypassing the cache; return only events history had not seen."""

        known = self.history.ids()
        events = self.scrape_events(use_cache=False)
        fresh = [event for event in events if event.id not in known]
        self.logger.info("new_events_checked", scraped=len(events), new=len(fresh))
        return fresh

    # ------------------------------------------------------------------
    def poll_once(self, cancelled: Event | None = None, sync_new: bool = False) -> list[CanonicalEvent]:
        """One polling tick; failures are logged so later ticks keep running.

        With ``sync_new`` the fresh events are also pushed to the sink.
        """

        if cancelled is not None and cancelled.is_set():
            return []
        try:
            fresh = self.scrape_new_events()
        except Exception as exc:  # noqa: BLE001
            self.logger.error("poll_failed", error=str(exc))
            return []
        if fresh:
            self.signals.emit(sig.NEW_EVENTS_FOUND, fresh)
            if sync_new:
                self.sync_events(fresh)
        return fresh

    def schedule_auto_scraping(
        self, interval_minutes: float = 60, sync_new: bool = False
    ) -> Callable[[], None]:
        """Poll every ``interval_minutes``; the returned callable stops this schedule only."""

        if self.scheduler is None:
            raise RuntimeError("No scheduler configured")
        cancelled = Event()
        job_id = f"{AUTO_SCRAPE_JOB_ID}:{uuid4().hex}"
        self.scheduler.add_interval_job(
            job_id, lambda: self.poll_once(cancelled, sync_new=sync_new), minutes=interval_minutes
        )
        self.logger.info(
            "auto_scraping_scheduled", job_id=job_id, interval_minutes=interval_minutes, sync_new=sync_new
        )

        def cancel() -> None:
            if cancelled.is_set():
                return
            cancelled.set()
            self.scheduler.remove_job(job_id)
            self.logger.info("auto_scraping_cancelled", job_id=job_id)

        return cancel

    def setup_auto_scraping(self, interval_minutes: float | None = None) -> Callable[[], None]:
        """(Re)start polling from user settings, replacing any earlier schedule.

        ``sync_interval`` is used unless ``interval_minutes`` is given;
        ``auto_sync`` decides whether new events are synced on each tick.
        """

        current = self.settings.get_settings()
        minutes = interval_minutes if interval_minutes is not None else current.sync_interval
        self.stop_auto_scraping()
        self._auto_scraping_cancel = self.schedule_auto_scraping(minutes, sync_new=current.auto_sync)
        return self._auto_scraping_cancel

    def stop_auto_scraping(self) -> None:
        if self._auto_scraping_cancel is not None:
            self._auto_scraping_cancel()
            self._auto_scraping_cancel = None

    # ------------------------------------------------------------------
    def use_sink(self, sink: BaseCalendarSink) -> None:
        previous = self.dispatcher.sink
        self.dispatcher.sink = sink
        if previous is not sink and previous is not None:
            previous.close()
            self.settings.set("calendar_connected", False)

    def sync_events(self, events: list[CanonicalEvent]) -> SyncBatchResult:
        result = self.dispatcher.sync(events)
        self.settings.update(last_sync=self.clock(), calendar_connected=bool(result.success))
        return result

    def get_scraping_stats(self) -> dict[str, Any]:
        records = self.history.list()
        last_scraping = max((record.scraped_at for record in records), default=None)
        return {
            "total_events": len(records),
            "cache_info": self.cache.info(),
            "last_scraping": last_scraping.isoformat() if last_scraping else None,
            "events_by_category": dict(Counter(record.category.value for record in records)),
        }

    def get_storage_info(self) -> dict[str, Any]:
        return {
            "cache": self.cache.info(),
            "history": self.history.info(),
            "settings": self.settings.info(),
        }

    def clear_all_data(self) -> bool:
        cache_cleared = self.cache.clear()
        history_cleared = self.history.clear()
        self.logger.info("storage_cleared", cache=cache_cleared, history=history_cleared)
        return cache_cleared and history_cleared

    def close(self) -> None:
        self.stop_auto_scraping()
        if self.scheduler is not None:
            self.scheduler.shutdown()
        self.dispatcher.close()
        self.dispatcher.sink.close()
        self.fetcher.close()


# ----------------------------------------------------------------------
def build_backend(
    config: CrawlerConfig, repository: ConfigRepository, manager: SQLiteManager | None = None
) -> KeyValueStore:
    """Open the configured key-value backend, degrading to memory if unavailable."""

    if config.storage.backend is StorageBackend.MEMORY:
        return MemoryKeyValueStore()
    path = repository.storage_path(config)
    try:
        return SQLiteKeyValueStore(manager or SQLiteManager(), path)
    except StorageUnavailable as exc:
        component_logger("storage").warning("storage_degraded", path=str(path), error=str(exc))
        return MemoryKeyValueStore()


def build_sink(config: CrawlerConfig, repository: ConfigRepository, name: str | None = None) -> BaseCalendarSink:
    name = name or config.sync.sink
    if name == "file":
        return JsonlCalendarSink(repository.outputs_dir(config), time_zone=config.sync.time_zone)
    if name == "mock":
        return MockCalendarSink(
            time_zone=config.sync.time_zone, failure_rate=config.sync.mock_failure_rate
        )
    raise ValueError(f"Unknown sink: {name}")


def build_orchestrator(
    config: CrawlerConfig,
    repository: ConfigRepository,
    backend: KeyValueStore | None = None,
    scheduler: APSchedulerAdapter | None = None,
) -> ScrapeOrchestrator:
    """Construct every collaborator once and hand them over by constructor."""

    backend = backend if backend is not None else build_backend(config, repository)
    signals = SignalBus(logger=component_logger("signals"))
    date_parser = DateFragmentParser(config.scrape.locale)
    fetcher = PageFetcher(
        config.scrape,
        logger=component_logger("fetcher"),
    )
    extractor = EventExtractor(
        date_parser,
        content_segments=config.scrape.content_segments,
        boilerplate_phrases=config.scrape.boilerplate_phrases,
        logger=component_logger("extractor"),
    )
    validator = EventValidator(date_parser, logger=component_logger("validator"))
    dispatcher = BatchSyncDispatcher(
        build_sink(config, repository),
        batch_size=config.sync.batch_size,
        batch_delay=config.sync.batch_delay,
        signals=signals,
        logger=component_logger("dispatcher"),
    )
    return ScrapeOrchestrator(
        fetcher=fetcher,
        extractor=extractor,
        validator=validator,
        cache=TTLCache(backend, logger=component_logger("cache")),
        history=HistoryStore(backend, max_size=config.history.max_size, logger=component_logger("history")),
        settings=SettingsStore(backend, logger=component_logger("settings")),
        dispatcher=dispatcher,
        scheduler=scheduler if scheduler is not None else APSchedulerAdapter(),
        signals=signals,
        target_url=config.scrape.target_url,
        cache_ttl=timedelta(minutes=config.cache.ttl_minutes),
        logger=component_logger("orchestrator"),
    )


__all__ = [
    "AUTO_SCRAPE_JOB_ID",
    "SCRAPED_EVENTS_KEY",
    "ScrapeOrchestrator",
    "ScrapeState",
    "build_backend",
    "build_orchestrator",
    "build_sink",
]
