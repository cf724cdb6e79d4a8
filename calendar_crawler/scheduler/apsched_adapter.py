"""APScheduler wrapper exposing the polling helpers the orchestrator needs."""

from __future__ import annotations

from typing import Any, Callable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..logging_conf import component_logger


class APSchedulerAdapter:
    """Manage interval jobs on a background scheduler.

    Jobs run with ``max_instances=1`` and ``coalesce=True``: a slow tick is
    never overlapped by the next one, and missed ticks collapse into one run.
    """

    def __init__(self, scheduler: BackgroundScheduler | None = None) -> None:
        self.scheduler = scheduler or BackgroundScheduler()
        self.logger = component_logger("scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self, wait: bool = False) -> None:
        if self.started:
            self.scheduler.shutdown(wait=wait)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def add_interval_job(self, job_id: str, func: Callable[[], Any], minutes: float) -> None:
        if minutes <= 0:
            raise ValueError("interval must be > 0 minutes")
        self.scheduler.add_job(
            func,
            trigger=IntervalTrigger(minutes=minutes),
            id=job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.start()
        self.logger.info("job_scheduled", job_id=job_id, interval_minutes=minutes)

    def remove_job(self, job_id: str) -> bool:
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            self.logger.warning("job_remove_failed", job_id=job_id)
            return False
        self.logger.info("job_removed", job_id=job_id)
        return True

    def list_jobs(self) -> list[dict]:
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run_time": getattr(job, "next_run_time", None),
                    "trigger": str(job.trigger),
                }
            )
        return jobs


__all__ = ["APSchedulerAdapter"]
