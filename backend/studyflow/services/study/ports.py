"""
Ports (interfaces) for study tracking.

These define the contracts the session tracker and review scheduler depend on.
Services depend on these abstractions, not on SQLAlchemy or APScheduler.

Implementations:
    - SqlSessionStore / SqlReviewStore (studyflow.services.study.sql_stores)
    - SchedulerTimers (studyflow.services.scheduler)
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Optional

from studyflow.enums.study import ActivityType
from studyflow.models.study import ReviewState, SessionFields, StudySessionRecord

TimerCallback = Callable[[], Awaitable[None]]
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class SessionStore(ABC):
    """
    Durable storage for study session records.

    Every write is a partial update keyed by session id; the tracker never
    reads a session back while it owns it.
    """

    @abstractmethod
    async def create_session(
        self,
        user_id: str,
        activity_type: ActivityType,
        start_time: datetime,
    ) -> str:
        """
        Create an active session record.

        Returns:
            The new session id.
        """
        pass

    @abstractmethod
    async def update_session(self, session_id: str, fields: SessionFields) -> None:
        """
        Apply a partial update (duration, is_active, activity_type, counters,
        end_time, paused_duration_ms, notes).
        """
        pass

    @abstractmethod
    async def end_active_sessions(self, user_id: str, ended_at: datetime) -> int:
        """
        Close sessions still flagged active for the user.

        Returns:
            Number of sessions closed.
        """
        pass

    @abstractmethod
    async def list_sessions(
        self, user_id: str, limit: int = 20
    ) -> list[StudySessionRecord]:
        """List the user's most recent sessions, newest first."""
        pass


class ReviewStore(ABC):
    """Durable storage for per-user, per-item review state."""

    @abstractmethod
    async def get_review_state(
        self, item_id: str, user_id: str
    ) -> Optional[ReviewState]:
        """Return the stored state, or None if the item was never reviewed."""
        pass

    @abstractmethod
    async def upsert_review_state(
        self, item_id: str, user_id: str, state: ReviewState
    ) -> None:
        """Update the stored state, inserting it if absent."""
        pass

    @abstractmethod
    async def update_item_due_metadata(
        self,
        item_id: str,
        last_reviewed: datetime,
        next_due: datetime,
    ) -> None:
        """Update the denormalised last/next review columns on the item itself."""
        pass

    @abstractmethod
    async def list_due(
        self, user_id: str, now: datetime, limit: int
    ) -> list[tuple[str, ReviewState]]:
        """Return (item_id, state) pairs due at or before now, most overdue first."""
        pass


class TimerBackend(ABC):
    """
    Named timers owned by a single tracker.

    Arming a name that is already armed replaces it, so at most one timer per
    name is live. Cancelling an unknown or already-fired name is a no-op.
    """

    @abstractmethod
    def every(self, name: str, seconds: float, callback: TimerCallback) -> None:
        """Run callback every `seconds` until cancelled."""
        pass

    @abstractmethod
    def once(self, name: str, seconds: float, callback: TimerCallback) -> None:
        """Run callback once after `seconds` unless cancelled first."""
        pass

    @abstractmethod
    def cancel(self, name: str) -> None:
        pass

    @abstractmethod
    def armed(self) -> set[str]:
        """Names of timers currently armed."""
        pass

    def cancel_all(self) -> None:
        for name in list(self.armed()):
            self.cancel(name)
