"""
Scheduler and Tracker Timers

Runs session tracker timers as APScheduler jobs:
- Tick and heartbeat as interval jobs while a session is active
- Timeout warning and auto-end as one-shot date jobs while auto-paused

Execution Context:
    The scheduler runs IN-PROCESS with FastAPI and shares its event loop.
    It is started/stopped via FastAPI's lifespan context manager in
    studyflow/main.py. Tracker callbacks are coroutines and run directly on
    the loop.

Job IDs:
    Each tracker owns a SchedulerTimers with a unique owner prefix, so job ids
    look like "tracker:<user_id>:<instance>:heartbeat". The instance suffix
    keeps a replacement tracker for the same user from sharing job ids with
    the one it replaces. Adding a job with an existing id replaces it; at most
    one job per timer name per tracker is live.

Limitations:
    - Single instance only: trackers live in process memory, so multiple
      backend replicas would each track their own users independently.

Usage:
    # Automatic (via FastAPI lifespan in main.py):
    start_scheduler()  # On app startup
    stop_scheduler()   # On app shutdown

    timers = tracker_timers(user_id)
    timers.every("heartbeat", 30, tracker_heartbeat)
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from studyflow.config import yaml_config
from studyflow.services.study.ports import TimerBackend, TimerCallback

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler(timezone=timezone.utc)

MISFIRE_GRACE_TIME: int = yaml_config.get("scheduler", {}).get("misfire_grace_time", 30)


def _default_scheduler() -> AsyncIOScheduler:
    return scheduler


class SchedulerTimers(TimerBackend):
    """Named tracker timers backed by jobs on an AsyncIOScheduler."""

    def __init__(self, owner: str, scheduler: Optional[AsyncIOScheduler] = None):
        """
        Args:
            owner: Unique prefix for this tracker's job ids
            scheduler: Scheduler to add jobs to (defaults to the global one)
        """
        self.owner = owner
        self.scheduler = scheduler if scheduler is not None else _default_scheduler()
        self._armed: set[str] = set()

    def job_id(self, name: str) -> str:
        return f"{self.owner}:{name}"

    def every(self, name: str, seconds: float, callback: TimerCallback) -> None:
        self.scheduler.add_job(
            callback,
            IntervalTrigger(seconds=seconds),
            id=self.job_id(name),
            name=self.job_id(name),
            replace_existing=True,
            misfire_grace_time=MISFIRE_GRACE_TIME,
            coalesce=True,
            max_instances=1,
        )
        self._armed.add(name)

    def once(self, name: str, seconds: float, callback: TimerCallback) -> None:
        async def fire() -> None:
            self._armed.discard(name)
            await callback()

        run_date = datetime.now(timezone.utc) + timedelta(seconds=seconds)
        self.scheduler.add_job(
            fire,
            DateTrigger(run_date=run_date),
            id=self.job_id(name),
            name=self.job_id(name),
            replace_existing=True,
            misfire_grace_time=MISFIRE_GRACE_TIME,
        )
        self._armed.add(name)

    def cancel(self, name: str) -> None:
        self._armed.discard(name)
        try:
            self.scheduler.remove_job(self.job_id(name))
        except JobLookupError:
            # Already fired or never armed
            pass

    def armed(self) -> set[str]:
        return set(self._armed)


def tracker_timers(user_id: str) -> SchedulerTimers:
    """Timers for one tracker instance, on the global scheduler."""
    return SchedulerTimers(f"tracker:{user_id}:{uuid.uuid4().hex[:8]}")


def start_scheduler() -> None:
    """Start the scheduler."""
    if scheduler.running:
        logger.warning("Scheduler already running")
        return

    scheduler.start()
    logger.info("Scheduler started")


def stop_scheduler() -> None:
    """Stop the scheduler gracefully."""
    if not scheduler.running:
        logger.warning("Scheduler not running")
        return

    scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")


def get_scheduled_jobs() -> list[dict]:
    """Get list of scheduled jobs with their next run times."""
    jobs = []
    for job in scheduler.get_jobs():
        jobs.append(
            {
                "id": job.id,
                "name": job.name,
                "next_run": (
                    job.next_run_time.isoformat() if job.next_run_time else None
                ),
                "trigger": str(job.trigger),
            }
        )
    return jobs
