"""Services package for study session tracking, review scheduling and timers."""

from studyflow.services.scheduler import (
    SchedulerTimers,
    get_scheduled_jobs,
    start_scheduler,
    stop_scheduler,
    tracker_timers,
)

__all__ = [
    "SchedulerTimers",
    "get_scheduled_jobs",
    "start_scheduler",
    "stop_scheduler",
    "tracker_timers",
]
