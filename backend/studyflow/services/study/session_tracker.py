"""
Study Session Tracker

One tracker per user keeps at most one logical study session, pausing and
resuming it from navigation, page visibility and activity signals, and ending
it on request or after prolonged inactivity.

States:
    IDLE ──study route──▶ ACTIVE ──leave route / hidden──▶ AUTO_PAUSED
                            ▲  │                              │
              toggle_pause  │  │ toggle_pause   route / activity / toggle
                            │  ▼                              │
                         MANUALLY_PAUSED ◀────────────────────┘ (to ACTIVE)

    ACTIVE / AUTO_PAUSED / MANUALLY_PAUSED ──end──▶ ENDING ──cleanup──▶ ENDED → IDLE
    AUTO_PAUSED for 30 minutes ──▶ ENDING (closing note "auto-ended due to inactivity")

Timers (owned by the tracker, armed only in the state that needs them):
    tick             every 1s while ACTIVE (status refresh)
    heartbeat        every 30s while ACTIVE (best-effort duration write)
    timeout_warning  once after 25 min in AUTO_PAUSED
    auto_end         once after 30 min in AUTO_PAUSED

Signals are handled strictly in arrival order: each handler reads the clock on
entry and then runs under a FIFO lock. Session creation is the only store call
the tracker awaits; every other write goes through the WriteDispatcher.

Usage:
    tracker = SessionTracker(user_id, SqlSessionStore(async_session_maker),
                             SchedulerTimers(f"tracker:{user_id}"))
    await tracker.on_route_changed("/flashcards/42")
    cleanup = await tracker.end_session()
    summary = await cleanup()
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime
from functools import partial
from typing import Any, Optional, Union

from studyflow.config.settings import settings
from studyflow.enums.study import ActivityType, TrackerState
from studyflow.models.study import SessionCounters, SessionSummary, TrackerStatus
from studyflow.services.study.ports import Clock, SessionStore, TimerBackend, utc_now
from studyflow.services.study.routes import StudyRouteClassifier
from studyflow.services.study.write_dispatch import WriteDispatcher

logger = logging.getLogger(__name__)

TICK = "tick"
HEARTBEAT = "heartbeat"
TIMEOUT_WARNING = "timeout_warning"
AUTO_END = "auto_end"

AUTO_END_NOTE = "auto-ended due to inactivity"

StatusListener = Callable[[TrackerStatus], None]
Cleanup = Callable[[], Awaitable[Optional[SessionSummary]]]


def _millis(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() * 1000)


async def _no_session() -> None:
    return None


class SessionTracker:
    """
    Study session state machine for a single user.

    All signal handlers are coroutines and must be called from the event
    loop that owns the tracker's timers.
    """

    def __init__(
        self,
        user_id: str,
        store: SessionStore,
        timers: TimerBackend,
        clock: Clock = utc_now,
        routes: Optional[StudyRouteClassifier] = None,
        dispatcher: Optional[WriteDispatcher] = None,
        tick_seconds: Optional[float] = None,
        heartbeat_seconds: Optional[float] = None,
        warning_minutes: Optional[float] = None,
        auto_end_minutes: Optional[float] = None,
        on_change: Optional[StatusListener] = None,
        on_timeout_warning: Optional[StatusListener] = None,
    ):
        """
        Initialize the tracker in IDLE.

        Args:
            user_id: Owning user
            store: Session persistence
            timers: Timer backend; every timer it holds belongs to this tracker
            clock: Time source
            routes: Study route classifier (defaults to configured prefixes)
            dispatcher: Write queue (defaults to a new one per tracker)
            tick_seconds: Status refresh interval (settings default 1s)
            heartbeat_seconds: Heartbeat interval (settings default 30s)
            warning_minutes: AUTO_PAUSED time before the warning (default 25)
            auto_end_minutes: AUTO_PAUSED time before auto-end (default 30)
            on_change: Called with a status snapshot on ticks and transitions
            on_timeout_warning: Called when the inactivity warning is raised
        """
        self.user_id = user_id
        self.store = store
        self.timers = timers
        self.clock = clock
        self.routes = routes or StudyRouteClassifier()
        self.dispatcher = dispatcher or WriteDispatcher(f"tracker:{user_id}")
        self.tick_seconds = tick_seconds or settings.SESSION_TICK_SECONDS
        self.heartbeat_seconds = heartbeat_seconds or settings.SESSION_HEARTBEAT_SECONDS
        self.warning_seconds = (
            warning_minutes or settings.SESSION_TIMEOUT_WARNING_MINUTES
        ) * 60
        self.auto_end_seconds = (
            auto_end_minutes or settings.SESSION_AUTO_END_MINUTES
        ) * 60
        self.on_change = on_change
        self.on_timeout_warning = on_timeout_warning

        self._lock = asyncio.Lock()
        self._current_path: Optional[str] = None
        self._visible = True
        self._closed = False
        self._reset()

    # -------------------------------------------------------------------------
    # Read-only state
    # -------------------------------------------------------------------------

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def is_active(self) -> bool:
        return self._state == TrackerState.ACTIVE

    @property
    def is_paused(self) -> bool:
        return self._state.is_paused

    @property
    def current_activity_type(self) -> Optional[ActivityType]:
        return self._activity_type

    @property
    def show_timeout_warning(self) -> bool:
        return self._show_timeout_warning

    @property
    def paused_duration_ms(self) -> int:
        return self._paused_ms

    @property
    def counters(self) -> dict[str, int]:
        return dict(self._counters)

    @property
    def elapsed_seconds(self) -> int:
        return self.elapsed_ms() // 1000

    def elapsed_ms(self, now: Optional[datetime] = None) -> int:
        """
        Study time so far: (now - start) - paused time.

        While paused the reference point is the pause start, so the value is
        frozen. Once an end is requested the locked final duration is returned.
        """
        if self._final_seconds is not None:
            return self._final_seconds * 1000
        if self._started_at is None:
            return 0

        reference = self._pause_start or now or self.clock()
        return max(0, _millis(self._started_at, reference) - self._paused_ms)

    def is_on_study_route(self) -> bool:
        return self._visible and self.routes.is_study_route(self._current_path)

    def status(self) -> TrackerStatus:
        """Snapshot of the tracker for the client."""
        return TrackerStatus(
            user_id=self.user_id,
            session_id=self._session_id,
            state=self._state,
            is_active=self.is_active,
            is_paused=self.is_paused,
            elapsed_seconds=self.elapsed_seconds,
            current_activity_type=self._activity_type,
            show_timeout_warning=self._show_timeout_warning,
            is_on_study_route=self.is_on_study_route(),
            counters=dict(self._counters),
        )

    # -------------------------------------------------------------------------
    # Signals
    # -------------------------------------------------------------------------

    async def on_route_changed(self, path: str) -> TrackerState:
        """
        Handle a navigation change.

        Starts a session from IDLE on a study route, auto-pauses when leaving
        one, resumes an auto-paused session on return and records activity
        type changes. A manually paused session only records the new path.
        """
        now = self.clock()
        async with self._lock:
            if self._closed:
                return self._state
            self._current_path = path
            if self._state in (TrackerState.ENDING, TrackerState.ENDED):
                return self._state

            in_study = self.is_on_study_route()
            activity = self.routes.activity_type(path)

            if self._state == TrackerState.IDLE:
                if in_study:
                    await self._begin(now, activity)
            elif self._state == TrackerState.ACTIVE:
                if in_study:
                    self._switch_activity(activity)
                else:
                    self._pause(now, TrackerState.AUTO_PAUSED)
            elif self._state == TrackerState.AUTO_PAUSED:
                if in_study:
                    self._enter_active(now)
                    self._switch_activity(activity)

            self._notify()
            return self._state

    async def on_user_activity(self) -> TrackerState:
        """
        Click/keystroke/scroll signal: resumes an auto-paused session on a
        study route. Activity implies the page is visible.
        """
        now = self.clock()
        async with self._lock:
            if self._closed:
                return self._state
            if self._state == TrackerState.AUTO_PAUSED and self.routes.is_study_route(
                self._current_path
            ):
                self._visible = True
                self._enter_active(now)
                self._notify()
            return self._state

    async def on_visibility_changed(self, visible: bool) -> TrackerState:
        """A hidden page auto-pauses an active session; showing it again resumes."""
        now = self.clock()
        async with self._lock:
            if self._closed:
                return self._state
            self._visible = visible
            if self._state == TrackerState.ACTIVE and not visible:
                self._pause(now, TrackerState.AUTO_PAUSED)
            elif self._state == TrackerState.AUTO_PAUSED and self.is_on_study_route():
                self._enter_active(now)
            self._notify()
            return self._state

    async def start_session(self) -> Optional[str]:
        """
        Explicitly start a session from IDLE.

        Uses the activity type of the last reported route. Returns the
        session id, or None if creation failed.
        """
        now = self.clock()
        async with self._lock:
            if self._closed:
                return None
            if self._state != TrackerState.IDLE:
                logger.debug(f"start_session ignored for user {self.user_id}: {self._state.value}")
                return self._session_id

            await self._begin(now, self.routes.activity_type(self._current_path))
            self._notify()
            return self._session_id

    async def toggle_pause(self) -> TrackerState:
        """
        Explicit pause/resume.

        ACTIVE pauses manually and MANUALLY_PAUSED resumes. AUTO_PAUSED
        resumes only while on a visible study route.
        """
        now = self.clock()
        async with self._lock:
            if self._closed:
                return self._state
            if self._state == TrackerState.ACTIVE:
                self._pause(now, TrackerState.MANUALLY_PAUSED)
            elif self._state == TrackerState.MANUALLY_PAUSED:
                self._enter_active(now)
            elif self._state == TrackerState.AUTO_PAUSED and self.is_on_study_route():
                self._enter_active(now)
            else:
                logger.debug(f"toggle_pause ignored for user {self.user_id}: {self._state.value}")
            self._notify()
            return self._state

    async def update_session_activity(
        self, counters: Union[SessionCounters, Mapping[str, Any]]
    ) -> bool:
        """
        Merge activity counters into the session.

        Returns:
            True if the update was queued, False if no session is active.
        """
        if not isinstance(counters, SessionCounters):
            counters = SessionCounters.model_validate(dict(counters))
        fields = counters.as_fields()

        async with self._lock:
            if self._closed:
                return False
            if self._state != TrackerState.ACTIVE:
                logger.info(
                    f"Counter update ignored for user {self.user_id}: "
                    f"session is {self._state.value}"
                )
                return False

            self._counters.update(fields)
            if fields:
                self._dispatch("counters", dict(fields))
            self._notify()
            return True

    def dismiss_timeout_warning(self) -> None:
        self._show_timeout_warning = False
        self._notify()

    async def end_session(self) -> Cleanup:
        """
        Request the end of the current session.

        The final duration is locked now; the finalisation write is queued
        and all timers are cancelled before it is issued.

        Returns:
            Cleanup coroutine function. Awaiting it waits for the final write
            and returns the tracker to IDLE, yielding a SessionSummary (None if
            there was no session).
        """
        now = self.clock()
        async with self._lock:
            return self._request_end(now)

    async def close(self) -> Optional[SessionSummary]:
        """Finalise any open session and stop the write queue."""
        now = self.clock()
        async with self._lock:
            self._closed = True
            cleanup = self._request_end(now)

        summary = await cleanup()
        self.timers.cancel_all()
        await self.dispatcher.close()
        logger.info(f"Session tracker closed for user {self.user_id}")
        return summary

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    async def _begin(self, now: datetime, activity: ActivityType) -> bool:
        if self._closed:
            return False

        try:
            closed = await self.store.end_active_sessions(self.user_id, now)
            if closed:
                logger.info(f"Closed {closed} stale active session(s) for user {self.user_id}")
        except Exception as e:
            logger.warning(f"Stale session cleanup failed for user {self.user_id}: {e}")

        try:
            session_id = await self.store.create_session(self.user_id, activity, now)
        except Exception as e:
            logger.error(f"Failed to create study session for user {self.user_id}: {e}")
            return False

        self._reset()
        self._session_id = session_id
        self._activity_type = activity
        self._started_at = now
        self._enter_active(now)

        logger.info(
            f"Started study session {session_id} for user {self.user_id} ({activity.value})"
        )
        return True

    def _enter_active(self, now: datetime) -> None:
        if self._pause_start is not None:
            self._paused_ms += max(0, _millis(self._pause_start, now))
            self._pause_start = None

        self.timers.cancel(TIMEOUT_WARNING)
        self.timers.cancel(AUTO_END)
        self._show_timeout_warning = False

        previous = self._state
        self._state = TrackerState.ACTIVE
        self.timers.every(TICK, self.tick_seconds, self._on_tick)
        self.timers.every(HEARTBEAT, self.heartbeat_seconds, self._on_heartbeat)

        if previous != TrackerState.IDLE:
            logger.info(f"Session {self._session_id} resumed from {previous.value}")

    def _pause(self, now: datetime, paused_state: TrackerState) -> None:
        self._pause_start = now
        self._state = paused_state
        self.timers.cancel(TICK)
        self.timers.cancel(HEARTBEAT)

        if paused_state == TrackerState.AUTO_PAUSED:
            self.timers.once(TIMEOUT_WARNING, self.warning_seconds, self._on_timeout_warning)
            self.timers.once(AUTO_END, self.auto_end_seconds, self._on_auto_end)

        logger.info(f"Session {self._session_id} {paused_state.value}")

    def _switch_activity(self, activity: ActivityType) -> None:
        if activity == self._activity_type:
            return
        self._activity_type = activity
        self._dispatch("activity_type", {"activity_type": activity.value})

    def _request_end(self, now: datetime, closing_note: Optional[str] = None) -> Cleanup:
        if self._state == TrackerState.ENDING:
            return self._pending_cleanup
        if not self._state.has_session:
            return _no_session

        # Timers go first so nothing can write after the final record
        self.timers.cancel_all()

        final_seconds = self.elapsed_ms(now) // 1000
        paused_ms = self._paused_ms
        if self._pause_start is not None:
            paused_ms += max(0, _millis(self._pause_start, now))

        self._final_seconds = final_seconds
        self._show_timeout_warning = False
        self._state = TrackerState.ENDING

        session_id = self._session_id
        counters = dict(self._counters)
        fields: dict[str, Any] = {
            "duration": final_seconds,
            "is_active": False,
            "end_time": now,
            "paused_duration_ms": paused_ms,
            **counters,
        }
        if closing_note:
            fields["notes"] = closing_note

        written = self.dispatcher.submit(
            session_id,
            "finalize",
            partial(self.store.update_session, session_id, fields),
            seal=True,
        )
        logger.info(
            f"Ending session {session_id} for user {self.user_id}: {final_seconds}s"
            + (f" ({closing_note})" if closing_note else "")
        )

        started_at = self._started_at
        activity = self._activity_type
        summary: Optional[SessionSummary] = None

        async def cleanup() -> Optional[SessionSummary]:
            nonlocal summary
            if summary is None:
                persisted = await written
                if not persisted:
                    logger.error(f"Final write for session {session_id} was not saved")
                summary = SessionSummary(
                    session_id=session_id,
                    duration_seconds=final_seconds,
                    paused_duration_ms=paused_ms,
                    activity_type=activity,
                    started_at=started_at,
                    ended_at=now,
                    counters=counters,
                    closing_note=closing_note,
                    persisted=persisted,
                )
                self._finish(session_id)
            return summary

        self._pending_cleanup = cleanup
        self._notify()
        return cleanup

    def _finish(self, session_id: str) -> None:
        if self._state != TrackerState.ENDING or self._session_id != session_id:
            return
        self._state = TrackerState.ENDED
        logger.info(f"Session {session_id} ended")
        self._reset()
        self._notify()

    def _reset(self) -> None:
        self._state = TrackerState.IDLE
        self._session_id: Optional[str] = None
        self._activity_type: Optional[ActivityType] = None
        self._started_at: Optional[datetime] = None
        self._pause_start: Optional[datetime] = None
        self._paused_ms = 0
        self._counters: dict[str, int] = {}
        self._final_seconds: Optional[int] = None
        self._show_timeout_warning = False
        self._pending_cleanup: Optional[Cleanup] = None

    # -------------------------------------------------------------------------
    # Timer callbacks
    # -------------------------------------------------------------------------

    async def _on_tick(self) -> None:
        if self._state == TrackerState.ACTIVE:
            self._notify()

    async def _on_heartbeat(self) -> None:
        if self._state != TrackerState.ACTIVE or self._session_id is None:
            return
        self._dispatch(
            "heartbeat",
            {
                "duration": self.elapsed_seconds,
                "is_active": True,
                "paused_duration_ms": self._paused_ms,
            },
        )

    async def _on_timeout_warning(self) -> None:
        if self._state != TrackerState.AUTO_PAUSED:
            return
        self._show_timeout_warning = True
        logger.info(f"Session {self._session_id} inactive, auto-end pending")
        if self.on_timeout_warning is not None:
            self._call_listener(self.on_timeout_warning)
        self._notify()

    async def _on_auto_end(self) -> None:
        now = self.clock()
        async with self._lock:
            if self._state != TrackerState.AUTO_PAUSED:
                return
            cleanup = self._request_end(now, closing_note=AUTO_END_NOTE)
        await cleanup()

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _dispatch(self, label: str, fields: dict[str, Any]) -> None:
        session_id = self._session_id
        self.dispatcher.submit(
            session_id, label, partial(self.store.update_session, session_id, fields)
        )

    def _notify(self) -> None:
        if self.on_change is not None:
            self._call_listener(self.on_change)

    def _call_listener(self, listener: StatusListener) -> None:
        try:
            listener(self.status())
        except Exception:
            logger.exception(f"Status listener failed for user {self.user_id}")
