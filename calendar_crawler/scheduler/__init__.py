"""Background scheduling for periodic scraping."""

from .apsched_adapter import APSchedulerAdapter

__all__ = ["APSchedulerAdapter"]
