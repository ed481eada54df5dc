"""
Shared Test Fixtures and Configuration

This module provides pytest fixtures used across the unit tests:
- A settable clock and a timer backend that fires as that clock advances
- In-memory session and review stores with failure injection
- A session tracker wired to the fakes
"""

import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Generator, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Add the backend directory to the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load .env file from project root BEFORE any fixtures run
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

from studyflow.enums.study import ActivityType  # noqa: E402
from studyflow.models.study import ReviewState, StudySessionRecord  # noqa: E402
from studyflow.services.study.ports import (  # noqa: E402
    ReviewStore,
    SessionStore,
    TimerBackend,
    TimerCallback,
)
from studyflow.services.study.routes import StudyRouteClassifier  # noqa: E402
from studyflow.services.study.session_tracker import SessionTracker  # noqa: E402

T0 = datetime(2025, 3, 1, 9, 0, 0, tzinfo=timezone.utc)

STUDY_PREFIXES = ["/flashcards", "/notes", "/quiz", "/quizzes", "/study"]


# ============================================================================
# Environment Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> Generator[None, None, None]:
    """
    Set up test environment variables before any tests run.

    Overrides any values from .env files to ensure test isolation.
    """
    original_env = os.environ.copy()

    test_env = {
        "POSTGRES_HOST": os.environ.get("POSTGRES_HOST", "localhost"),
        "POSTGRES_PORT": os.environ.get("POSTGRES_PORT", "5432"),
        "POSTGRES_USER": os.environ.get("POSTGRES_TEST_USER", "testuser"),
        "POSTGRES_PASSWORD": os.environ.get("POSTGRES_TEST_PASSWORD", "testpass"),
        "POSTGRES_DB": os.environ.get("POSTGRES_TEST_DB", "testdb"),
        "DEBUG": "true",
    }
    os.environ.update(test_env)

    yield

    os.environ.clear()
    os.environ.update(original_env)


# ============================================================================
# Time Fakes
# ============================================================================


class FakeClock:
    """Clock whose time only moves when a test moves it."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class ManualTimers(TimerBackend):
    """
    Timer backend driven by a FakeClock.

    advance() moves the clock forward and runs every timer that falls due on
    the way, in due-time order, with the clock set to each timer's due time.
    """

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.jobs: dict[str, dict[str, Any]] = {}
        self.fired: list[str] = []

    def every(self, name: str, seconds: float, callback: TimerCallback) -> None:
        self.jobs[name] = {
            "due": self.clock() + timedelta(seconds=seconds),
            "interval": seconds,
            "callback": callback,
        }

    def once(self, name: str, seconds: float, callback: TimerCallback) -> None:
        self.jobs[name] = {
            "due": self.clock() + timedelta(seconds=seconds),
            "interval": None,
            "callback": callback,
        }

    def cancel(self, name: str) -> None:
        self.jobs.pop(name, None)

    def armed(self) -> set[str]:
        return set(self.jobs)

    async def advance(self, seconds: float) -> None:
        target = self.clock() + timedelta(seconds=seconds)
        while True:
            due = [(job["due"], name) for name, job in self.jobs.items() if job["due"] <= target]
            if not due:
                break
            when, name = min(due)
            job = self.jobs[name]
            self.clock.now = when
            if job["interval"]:
                job["due"] = when + timedelta(seconds=job["interval"])
            else:
                del self.jobs[name]
            self.fired.append(name)
            await job["callback"]()
        self.clock.now = target


# ============================================================================
# In-Memory Stores
# ============================================================================


class InMemorySessionStore(SessionStore):
    """Session store keeping rows in a dict; every write is recorded."""

    def __init__(self):
        self.sessions: dict[str, dict[str, Any]] = {}
        self.created: list[str] = []
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.fail_create = False
        self.fail_update = False
        self.fail_end_active = False
        self.release_updates: Optional[asyncio.Event] = None

    async def create_session(
        self, user_id: str, activity_type: ActivityType, start_time: datetime
    ) -> str:
        if self.fail_create:
            raise ConnectionError("session store unavailable")

        session_id = f"session-{len(self.created) + 1}"
        self.sessions[session_id] = {
            "id": session_id,
            "user_id": user_id,
            "activity_type": ActivityType(activity_type).value,
            "start_time": start_time,
            "end_time": None,
            "duration": 0,
            "paused_duration_ms": 0,
            "is_active": True,
            "notes": None,
        }
        self.created.append(session_id)
        return session_id

    async def update_session(self, session_id: str, fields: dict[str, Any]) -> None:
        if self.release_updates is not None:
            await self.release_updates.wait()
        if self.fail_update:
            raise ConnectionError("session store unavailable")
        self.updates.append((session_id, dict(fields)))
        self.sessions[session_id].update(fields)

    async def end_active_sessions(self, user_id: str, ended_at: datetime) -> int:
        if self.fail_end_active:
            raise ConnectionError("session store unavailable")

        closed = 0
        for row in self.sessions.values():
            if row["user_id"] == user_id and row["is_active"]:
                row.update(is_active=False, end_time=ended_at, notes="closed as stale")
                closed += 1
        return closed

    async def list_sessions(self, user_id: str, limit: int = 20) -> list[StudySessionRecord]:
        rows = [row for row in self.sessions.values() if row["user_id"] == user_id]
        rows.sort(key=lambda row: row["start_time"], reverse=True)
        return [StudySessionRecord(**row) for row in rows[:limit]]

    def updates_for(self, session_id: str, label_field: Optional[str] = None) -> list[dict]:
        """Writes for a session, optionally only those containing label_field."""
        return [
            fields
            for sid, fields in self.updates
            if sid == session_id and (label_field is None or label_field in fields)
        ]


class InMemoryReviewStore(ReviewStore):
    """Review store keeping states in a dict, with per-operation failures."""

    def __init__(self):
        self.states: dict[tuple[str, str], ReviewState] = {}
        self.item_metadata: dict[str, tuple[datetime, datetime]] = {}
        self.fail_get = False
        self.fail_upsert = False
        self.fail_metadata = False

    async def get_review_state(self, item_id: str, user_id: str) -> Optional[ReviewState]:
        if self.fail_get:
            raise ConnectionError("review store unavailable")
        return self.states.get((item_id, user_id))

    async def upsert_review_state(self, item_id: str, user_id: str, state: ReviewState) -> None:
        if self.fail_upsert:
            raise ConnectionError("review store unavailable")
        self.states[(item_id, user_id)] = state

    async def update_item_due_metadata(
        self, item_id: str, last_reviewed: datetime, next_due: datetime
    ) -> None:
        if self.fail_metadata:
            raise ConnectionError("item table unavailable")
        self.item_metadata[item_id] = (last_reviewed, next_due)

    async def list_due(
        self, user_id: str, now: datetime, limit: int
    ) -> list[tuple[str, ReviewState]]:
        due = [
            (item_id, state)
            for (item_id, uid), state in self.states.items()
            if uid == user_id and state.next_review_at is not None and state.next_review_at <= now
        ]
        due.sort(key=lambda pair: pair[1].next_review_at)
        return due[:limit]


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def timers(clock: FakeClock) -> ManualTimers:
    return ManualTimers(clock)


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def review_store() -> InMemoryReviewStore:
    return InMemoryReviewStore()


@pytest.fixture
def route_classifier() -> StudyRouteClassifier:
    return StudyRouteClassifier(STUDY_PREFIXES)


@pytest_asyncio.fixture
async def tracker(session_store, timers, clock, route_classifier):
    """Session tracker for user-1 with default timings, closed after the test."""
    tracker = SessionTracker(
        "user-1",
        session_store,
        timers,
        clock=clock,
        routes=route_classifier,
        tick_seconds=1,
        heartbeat_seconds=30,
        warning_minutes=25,
        auto_end_minutes=30,
    )
    yield tracker
    await tracker.close()


@pytest.fixture
def mock_db_session() -> MagicMock:
    """
    Create a mock database session for unit testing.
    """
    mock = MagicMock()
    mock.execute = AsyncMock()
    mock.commit = AsyncMock()
    mock.rollback = AsyncMock()
    mock.close = AsyncMock()
    mock.add = MagicMock()
    return mock


@pytest.fixture
def mock_session_factory(mock_db_session: MagicMock) -> MagicMock:
    """
    Session factory whose context manager yields mock_db_session.
    """
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=mock_db_session)
    context.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=context)
