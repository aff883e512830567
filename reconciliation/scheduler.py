"""
Delayed task scheduler.

Runs a callable once after a fixed delay, keyed so a pending task can be
replaced or cancelled. Used for abandoned-cart reminders.

Design decisions:
- Backed by an APScheduler BackgroundScheduler with one "date" job per key
- Scheduling a key that is already pending replaces the earlier job
- Job exceptions are logged by APScheduler and don't affect other jobs
- No persistence: the in-memory job store is lost when the process exits
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler

logger = logging.getLogger("scheduler")


class DelayedTaskScheduler:
    """
    Fire-once jobs keyed by a caller-chosen id.

    Example usage:
        scheduler = DelayedTaskScheduler()
        scheduler.schedule("cart-abc", 3600, send_reminder, cart)
        scheduler.cancel("cart-abc")
    """

    def __init__(self, scheduler: Optional[BaseScheduler] = None):
        self._scheduler = scheduler or BackgroundScheduler(timezone=timezone.utc)
        self._scheduler.start()

    def schedule(self, key: str, delay_seconds: float, func: Callable[..., Any], *args: Any) -> Job:
        """
        Run func(*args) after delay_seconds.

        Raises:
            RuntimeError: if the scheduler has been shut down.
        """
        if not self._scheduler.running:
            raise RuntimeError("Scheduler is shut down")

        run_at = datetime.now(timezone.utc) + timedelta(seconds=delay_seconds)
        replacing = self._scheduler.get_job(key) is not None
        job = self._scheduler.add_job(
            func,
            "date",
            run_date=run_at,
            args=args,
            id=key,
            name=key,
            replace_existing=True,
            misfire_grace_time=None,
        )
        if replacing:
            logger.info(f"Replaced pending job {key}")
        logger.info(f"Scheduled job {key} in {delay_seconds:.0f}s (at {run_at:%H:%M:%S})")
        return job

    def cancel(self, key: str) -> bool:
        """Cancel a pending job. Returns False if nothing was pending."""
        try:
            self._scheduler.remove_job(key)
        except JobLookupError:
            return False
        logger.info(f"Cancelled job {key}")
        return True

    def pending(self) -> list[Job]:
        return self._scheduler.get_jobs()

    def shutdown(self) -> int:
        """Drop every pending job and stop. Returns the number dropped."""
        if not self._scheduler.running:
            return 0
        dropped = len(self._scheduler.get_jobs())
        self._scheduler.shutdown(wait=False)
        if dropped:
            logger.warning(f"Scheduler shut down with {dropped} pending job(s) dropped")
        return dropped
