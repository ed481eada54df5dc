"""
Study Session API Router

Endpoints that drive a user's session tracker. The client connects once per
open tab, forwards navigation, visibility and activity signals, and issues
explicit start/pause/end requests.

Endpoints (all under /api/sessions/{user_id}):
- POST /connect - Acquire the user's tracker (shared across tabs)
- POST /disconnect - Release a handle; the last release finalises the session
- POST /route - Report the current route
- POST /activity - Report user activity (resumes an auto-paused session)
- POST /visibility - Report page visibility
- POST /start - Explicitly start a session
- POST /pause - Toggle pause/resume
- POST /end - End the session and return its summary
- PATCH /counters - Merge activity counters into the active session
- POST /dismiss-warning - Hide the inactivity warning
- GET /status - Tracker status
- GET /history - Recent sessions from the store
"""

import logging

from fastapi import APIRouter, Depends, Query

from studyflow.config.settings import settings
from studyflow.dependencies import get_session_store, get_tracker, get_tracker_registry
from studyflow.middleware.error_handling import NotFoundError
from studyflow.models.study import (
    RouteChange,
    SessionCounters,
    SessionSummary,
    StudySessionRecord,
    TrackerStatus,
    VisibilityChange,
)
from studyflow.services.study import SessionStore, SessionTracker, TrackerRegistry

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/sessions", tags=["sessions"])


# ===========================================
# Connection Endpoints
# ===========================================


@router.post("/{user_id}/connect", response_model=TrackerStatus)
async def connect(
    user_id: str,
    registry: TrackerRegistry = Depends(get_tracker_registry),
) -> TrackerStatus:
    """
    Acquire the user's session tracker.

    A second connection for the same user shares the existing tracker.
    """
    tracker = await registry.acquire(user_id)
    return tracker.status()


@router.post("/{user_id}/disconnect")
async def disconnect(
    user_id: str,
    registry: TrackerRegistry = Depends(get_tracker_registry),
) -> dict:
    """Release one handle; the tracker is closed when none remain."""
    if registry.get(user_id) is None:
        raise NotFoundError(
            f"No session tracker connected for user {user_id}",
            details={"user_id": user_id},
        )

    closed = await registry.release(user_id)
    return {
        "user_id": user_id,
        "closed": closed,
        "handles": registry.ref_count(user_id),
    }


# ===========================================
# Signal Endpoints
# ===========================================


@router.post("/{user_id}/route", response_model=TrackerStatus)
async def route_changed(
    request: RouteChange,
    tracker: SessionTracker = Depends(get_tracker),
) -> TrackerStatus:
    """Report a navigation change."""
    await tracker.on_route_changed(request.path)
    return tracker.status()


@router.post("/{user_id}/activity", response_model=TrackerStatus)
async def user_activity(
    tracker: SessionTracker = Depends(get_tracker),
) -> TrackerStatus:
    """Report a click, keystroke, scroll or mouse movement."""
    await tracker.on_user_activity()
    return tracker.status()


@router.post("/{user_id}/visibility", response_model=TrackerStatus)
async def visibility_changed(
    request: VisibilityChange,
    tracker: SessionTracker = Depends(get_tracker),
) -> TrackerStatus:
    """Report that the page was hidden or shown."""
    await tracker.on_visibility_changed(request.visible)
    return tracker.status()


# ===========================================
# Session Control Endpoints
# ===========================================


@router.post("/{user_id}/start", response_model=TrackerStatus)
async def start_session(
    tracker: SessionTracker = Depends(get_tracker),
) -> TrackerStatus:
    """Explicitly start a session (no-op if one is already running)."""
    await tracker.start_session()
    return tracker.status()


@router.post("/{user_id}/pause", response_model=TrackerStatus)
async def toggle_pause(
    tracker: SessionTracker = Depends(get_tracker),
) -> TrackerStatus:
    """Pause an active session, or resume a paused one."""
    await tracker.toggle_pause()
    return tracker.status()


@router.post("/{user_id}/end", response_model=SessionSummary)
async def end_session(
    user_id: str,
    tracker: SessionTracker = Depends(get_tracker),
) -> SessionSummary:
    """
    End the current session.

    The duration is locked when the request arrives; the response is returned
    once the final write has completed or failed.
    """
    cleanup = await tracker.end_session()
    summary = await cleanup()

    if summary is None:
        raise NotFoundError(
            f"No study session in progress for user {user_id}",
            details={"user_id": user_id},
        )
    return summary


@router.patch("/{user_id}/counters")
async def update_counters(
    counters: SessionCounters,
    tracker: SessionTracker = Depends(get_tracker),
) -> dict:
    """
    Merge activity counters into the active session.

    Ignored (updated=false) when no session is active.
    """
    updated = await tracker.update_session_activity(counters)
    return {"updated": updated, "status": tracker.status()}


@router.post("/{user_id}/dismiss-warning", response_model=TrackerStatus)
async def dismiss_timeout_warning(
    tracker: SessionTracker = Depends(get_tracker),
) -> TrackerStatus:
    """Hide the inactivity warning (the auto-end timer keeps running)."""
    tracker.dismiss_timeout_warning()
    return tracker.status()


# ===========================================
# Read Endpoints
# ===========================================


@router.get("/{user_id}/status", response_model=TrackerStatus)
async def get_status(
    tracker: SessionTracker = Depends(get_tracker),
) -> TrackerStatus:
    """Get the tracker status."""
    return tracker.status()


@router.get("/{user_id}/history", response_model=list[StudySessionRecord])
async def get_history(
    user_id: str,
    limit: int = Query(
        settings.SESSION_HISTORY_DEFAULT_LIMIT, ge=1, le=200, description="Maximum sessions"
    ),
    store: SessionStore = Depends(get_session_store),
) -> list[StudySessionRecord]:
    """Get the user's most recent sessions, newest first."""
    return await store.list_sessions(user_id, limit=limit)
