"""
Unit tests for TrackerRegistry.

Tests singleton-per-user handles, reference counting and shutdown.
"""

import asyncio

import pytest

from studyflow.enums.study import TrackerState
from studyflow.services.study.session_tracker import SessionTracker
from studyflow.services.study.tracker_registry import TrackerRegistry
from tests.conftest import ManualTimers


@pytest.fixture
def registry(session_store, clock, route_classifier):
    def create_tracker(user_id: str) -> SessionTracker:
        return SessionTracker(
            user_id,
            session_store,
            ManualTimers(clock),
            clock=clock,
            routes=route_classifier,
        )

    return TrackerRegistry(create_tracker)


class TestAcquire:
    """Tests for acquiring tracker handles."""

    @pytest.mark.asyncio
    async def test_same_user_shares_tracker(self, registry):
        first = await registry.acquire("user-1")
        second = await registry.acquire("user-1")

        assert first is second
        assert registry.ref_count("user-1") == 2
        await registry.close_all()

    @pytest.mark.asyncio
    async def test_users_get_separate_trackers(self, registry):
        first = await registry.acquire("user-1")
        second = await registry.acquire("user-2")

        assert first is not second
        assert registry.active_users() == ["user-1", "user-2"]
        await registry.close_all()

    @pytest.mark.asyncio
    async def test_concurrent_connections_start_one_session(self, registry, session_store):
        trackers = await asyncio.gather(
            registry.acquire("user-1"),
            registry.acquire("user-1"),
        )

        await asyncio.gather(
            *(tracker.on_route_changed("/flashcards") for tracker in trackers)
        )

        assert session_store.created == ["session-1"]
        await registry.close_all()


class TestRelease:
    """Tests for releasing handles."""

    @pytest.mark.asyncio
    async def test_tracker_survives_until_last_release(self, registry, session_store):
        tracker = await registry.acquire("user-1")
        await registry.acquire("user-1")
        await tracker.on_route_changed("/flashcards")

        assert await registry.release("user-1") is False
        assert tracker.state == TrackerState.ACTIVE

        assert await registry.release("user-1") is True
        assert registry.get("user-1") is None
        assert tracker.state == TrackerState.IDLE
        assert session_store.sessions["session-1"]["is_active"] is False

    @pytest.mark.asyncio
    async def test_release_unknown_user(self, registry):
        assert await registry.release("nobody") is False

    @pytest.mark.asyncio
    async def test_reacquire_after_release_creates_new_tracker(self, registry):
        first = await registry.acquire("user-1")
        await registry.release("user-1")

        second = await registry.acquire("user-1")

        assert second is not first
        await registry.close_all()


class TestCloseAll:
    """Tests for shutdown."""

    @pytest.mark.asyncio
    async def test_close_all_finalises_sessions(self, registry, session_store):
        for user_id in ("user-1", "user-2"):
            tracker = await registry.acquire(user_id)
            await tracker.on_route_changed("/notes")

        await registry.close_all()

        assert registry.active_users() == []
        assert all(not row["is_active"] for row in session_store.sessions.values())
