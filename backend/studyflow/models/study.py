"""
Study Tracking API Models (Pydantic)

Request/response schemas for:
- Spaced repetition review state (SM-2)
- Session tracker status, counters and end-of-session summaries
- Study session history

ARCHITECTURE NOTE:
    This file contains PYDANTIC models for API validation.
    There is a corresponding SQLAlchemy file: studyflow/db/models.py

    Data flows: API Request → Pydantic → Service → SQLAlchemy → Database

API Contract:
    Request models use StrictRequest (extra="forbid") to reject unknown fields.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, TYPE_CHECKING

from pydantic import Field

from studyflow.enums.study import ActivityType, TrackerState
from studyflow.models.base import StrictRequest, StrictResponse

if TYPE_CHECKING:
    from studyflow.db.models import FlashcardProgress


# ===========================================
# Spaced Repetition Models
# ===========================================


class ReviewState(StrictResponse):
    """
    SM-2 scheduling state of one item for one user.

    A missing record is equivalent to ReviewState() - ease 2.5, interval 0,
    repetition 0, never reviewed.
    """

    ease_factor: float = Field(2.5, ge=1.3, description="Interval growth multiplier")
    interval: int = Field(0, ge=0, description="Current interval in days")
    repetition: int = Field(0, ge=0, description="Consecutive passing reviews")
    last_reviewed_at: Optional[datetime] = None
    next_review_at: Optional[datetime] = None
    last_score: Optional[int] = Field(None, ge=0, le=5)

    @classmethod
    def from_db_record(cls, record: FlashcardProgress) -> ReviewState:
        """
        Create a ReviewState from a user_flashcard_progress row.

        Null columns (rows written by older clients) fall back to the
        first-review defaults.
        """
        return cls(
            ease_factor=record.ease_factor if record.ease_factor is not None else 2.5,
            interval=record.interval or 0,
            repetition=record.repetition or 0,
            last_reviewed_at=record.last_reviewed_at,
            next_review_at=record.next_review_at,
            last_score=record.last_score,
        )


class ReviewRequest(StrictRequest):
    """
    Request to record a review score for an item.

    Scores follow the SM-2 scale: 0-2 failed recall, 3 correct with serious
    difficulty, 4 correct after hesitation, 5 perfect recall.
    """

    item_id: str = Field(..., min_length=1, description="Flashcard (item) ID")
    user_id: str = Field(..., min_length=1, description="Reviewing user")
    score: int = Field(..., ge=0, le=5, description="Recall score (0-5)")


class ReviewResponse(StrictResponse):
    """Result of recording a review."""

    item_id: str
    user_id: str
    previous_state: Optional[ReviewState] = Field(
        None, description="State before the review (None on first review)"
    )
    state: ReviewState
    passed: bool = Field(description="Whether the score met the pass threshold")
    item_metadata_updated: bool = Field(
        description="Whether the item's own last/next review columns were updated"
    )


class DueReview(StrictResponse):
    """An item whose next review is due."""

    item_id: str
    state: ReviewState


# ===========================================
# Session Tracker Models
# ===========================================


class SessionCounters(StrictRequest):
    """
    Partial activity counters for the current session.

    Only fields that are set are written; unset fields keep their stored value.
    """

    cards_reviewed: Optional[int] = Field(None, ge=0)
    cards_correct: Optional[int] = Field(None, ge=0)
    quiz_score: Optional[int] = Field(None, ge=0)
    quiz_total_questions: Optional[int] = Field(None, ge=0)
    notes_created: Optional[int] = Field(None, ge=0)
    notes_reviewed: Optional[int] = Field(None, ge=0)

    def as_fields(self) -> dict[str, int]:
        """Return only the counters that were provided."""
        return self.model_dump(exclude_none=True)


class RouteChange(StrictRequest):
    """Navigation signal from the client."""

    path: str = Field(..., description="Current route path, e.g. /flashcards/42")


class VisibilityChange(StrictRequest):
    """Page visibility signal from the client."""

    visible: bool


class TrackerStatus(StrictResponse):
    """Read-only view of a session tracker, as rendered by the client."""

    user_id: str
    session_id: Optional[str] = None
    state: TrackerState
    is_active: bool
    is_paused: bool
    elapsed_seconds: int
    current_activity_type: Optional[ActivityType] = None
    show_timeout_warning: bool = False
    is_on_study_route: bool = False
    counters: dict[str, int] = Field(default_factory=dict)


class SessionSummary(StrictResponse):
    """
    Summary of a finalised session.

    duration_seconds is the value locked when the end was requested (or, for
    an auto-timeout, when the pause began); it never changes afterwards.
    """

    session_id: str
    duration_seconds: int
    paused_duration_ms: int
    activity_type: ActivityType
    started_at: datetime
    ended_at: datetime
    counters: dict[str, int] = Field(default_factory=dict)
    closing_note: Optional[str] = None
    persisted: bool = Field(description="Whether the final write succeeded")


class StudySessionRecord(StrictResponse):
    """A stored study session, as listed in session history."""

    id: str
    user_id: str
    activity_type: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    paused_duration_ms: int = 0
    is_active: bool
    cards_reviewed: int = 0
    cards_correct: int = 0
    quiz_score: int = 0
    quiz_total_questions: int = 0
    notes_created: int = 0
    notes_reviewed: int = 0
    notes: Optional[str] = None

    @property
    def accuracy(self) -> Optional[float]:
        if not self.cards_reviewed:
            return None
        return self.cards_correct / self.cards_reviewed


SessionFields = dict[str, Any]
"""Partial column update for a study_sessions row."""
