"""Pydantic models for the application."""

from studyflow.models.base import (
    StrictRequest,
    StrictResponse,
)
from studyflow.models.study import (
    DueReview,
    ReviewRequest,
    ReviewResponse,
    ReviewState,
    RouteChange,
    SessionCounters,
    SessionSummary,
    StudySessionRecord,
    TrackerStatus,
    VisibilityChange,
)

__all__ = [
    "StrictRequest",
    "StrictResponse",
    "DueReview",
    "ReviewRequest",
    "ReviewResponse",
    "ReviewState",
    "RouteChange",
    "SessionCounters",
    "SessionSummary",
    "StudySessionRecord",
    "TrackerStatus",
    "VisibilityChange",
]
