"""
FastAPI Dependencies

Common dependencies for the tracker registry, stores and review service.
Tests replace these through app.dependency_overrides.
"""

from fastapi import Depends, Request

from studyflow.db.base import async_session_maker
from studyflow.middleware.error_handling import NotFoundError, ServiceError
from studyflow.services.study import (
    ReviewService,
    SessionStore,
    SessionTracker,
    SqlReviewStore,
    SqlSessionStore,
    TrackerRegistry,
)


def get_tracker_registry(request: Request) -> TrackerRegistry:
    """
    Get the application's tracker registry.

    Raises:
        ServiceError: 503 if the application has not started tracking
    """
    registry = getattr(request.app.state, "tracker_registry", None)
    if registry is None:
        raise ServiceError("Session tracking is not available", status_code=503)
    return registry


async def get_tracker(
    user_id: str,
    registry: TrackerRegistry = Depends(get_tracker_registry),
) -> SessionTracker:
    """
    Get the connected tracker for a user.

    Raises:
        NotFoundError: If the user has no connected tracker
    """
    tracker = registry.get(user_id)
    if tracker is None:
        raise NotFoundError(
            f"No session tracker connected for user {user_id}",
            details={"user_id": user_id},
        )
    return tracker


def get_session_store() -> SessionStore:
    return SqlSessionStore(async_session_maker)


def get_review_service() -> ReviewService:
    return ReviewService(SqlReviewStore(async_session_maker))
