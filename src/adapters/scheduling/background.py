"""
Background scheduling adapters - Implement Clock and Ticker protocols.

Recurring timers are interval jobs on a shared APScheduler
BackgroundScheduler owned by the application lifespan. Each job runs at
most one instance at a time; missed runs are coalesced.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler

logger = logging.getLogger(__name__)


class SystemClock:
    """UTC wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ScheduledJob:
    """Cancellable handle for one interval job."""

    def __init__(self, job: Job) -> None:
        self._job = job
        self._cancelled = False

    @property
    def job_id(self) -> str:
        return self._job.id

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Remove the job. Safe to call twice or from inside the job itself."""
        self._cancelled = True
        try:
            self._job.remove()
        except JobLookupError:
            pass


class SchedulerTicker:
    """
    Implements Ticker protocol on an APScheduler scheduler.

    Uses structural subtyping - no explicit inheritance from Protocol.
    The scheduler's lifecycle (start/shutdown) belongs to the caller.
    """

    def __init__(self, scheduler: BaseScheduler) -> None:
        self._scheduler = scheduler

    def every(self, interval_seconds: float, callback: Callable[[], None]) -> ScheduledJob:
        job = self._scheduler.add_job(
            callback,
            "interval",
            seconds=interval_seconds,
            max_instances=1,
            coalesce=True,
        )
        logger.debug("Scheduled job %s every %ss", job.id, interval_seconds)
        return ScheduledJob(job)
