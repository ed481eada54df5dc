"""
SQLAlchemy Database Models

These models define the PostgreSQL schema for study tracking and
spaced repetition review scheduling.

Tables:
- study_sessions: Timed study sessions written by the session tracker
- flashcards: Studyable items (only the review metadata columns are used here)
- user_flashcard_progress: SM-2 review state per user × flashcard

ARCHITECTURE NOTE:
    This file contains SQLALCHEMY models for database persistence.
    The corresponding Pydantic models live in studyflow/models/study.py.

    Data flows: Service Layer → Pydantic → SQLAlchemy → Database
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from studyflow.db.base import Base


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class StudySession(Base):
    """
    Timed study sessions.

    One row per tracked session. The tracker creates the row when the user
    enters a study context, updates it with heartbeats and counters while the
    session runs, and finalises it (is_active=False, end_time set) exactly once.

    Attributes:
        id: Opaque UUID string assigned at creation.
        user_id: Owning user.
        activity_type: One of ActivityType values (general, flashcard_study, ...).
        start_time: When the session started.
        end_time: When the session was finalised. Null while active.
        duration: Elapsed study seconds, excluding paused time.
        paused_duration_ms: Accumulated paused time in milliseconds.
        is_active: True until the session is finalised.
        cards_reviewed, cards_correct, quiz_score, quiz_total_questions,
        notes_created, notes_reviewed: Running activity counters.
        notes: Free-text closing note (e.g. "auto-ended due to inactivity").
        updated_at: Last write time.
    """

    __tablename__ = "study_sessions"
    __table_args__ = (Index("ix_study_sessions_user_active", "user_id", "is_active"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), index=True)

    activity_type: Mapped[str] = mapped_column(String(32), default="general")
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    duration: Mapped[Optional[int]] = mapped_column(Integer)
    paused_duration_ms: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Counters
    cards_reviewed: Mapped[int] = mapped_column(Integer, default=0)
    cards_correct: Mapped[int] = mapped_column(Integer, default=0)
    quiz_score: Mapped[int] = mapped_column(Integer, default=0)
    quiz_total_questions: Mapped[int] = mapped_column(Integer, default=0)
    notes_created: Mapped[int] = mapped_column(Integer, default=0)
    notes_reviewed: Mapped[int] = mapped_column(Integer, default=0)

    notes: Mapped[Optional[str]] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )


class Flashcard(Base):
    """
    Studyable flashcards.

    Card content is managed elsewhere; the review scheduler only maintains the
    denormalised last_reviewed_at / next_review_at pair for list views.
    """

    __tablename__ = "flashcards"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    front: Mapped[str] = mapped_column(Text, default="")
    back: Mapped[str] = mapped_column(Text, default="")

    last_reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True)
    )
    next_review_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


class FlashcardProgress(Base):
    """
    SM-2 review state for one user and one flashcard.

    Attributes:
        ease_factor: Interval growth multiplier, never below 1.3.
        interval: Current interval in days.
        repetition: Consecutive passing reviews (reset to 0 on a failed review).
        last_reviewed_at: When the last review happened.
        next_review_at: When the card is next due.
        last_score: Score (0-5) of the last review.
    """

    __tablename__ = "user_flashcard_progress"
    __table_args__ = (
        UniqueConstraint("flashcard_id", "user_id", name="uq_progress_card_user"),
        Index("ix_progress_user_due", "user_id", "next_review_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    flashcard_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("flashcards.id", ondelete="CASCADE")
    )
    user_id: Mapped[str] = mapped_column(String(64))

    ease_factor: Mapped[float] = mapped_column(Float, default=2.5)
    interval: Mapped[int] = mapped_column(Integer, default=0)
    repetition: Mapped[int] = mapped_column(Integer, default=0)
    last_reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True)
    )
    next_review_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    last_score: Mapped[Optional[int]] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )
