"""
SQLAlchemy implementations of the study stores.

Tracker writes run outside any request, so each store operation opens its own
session from the session factory and commits it.

Usage:
    from studyflow.db.base import async_session_maker

    session_store = SqlSessionStore(async_session_maker)
    review_store = SqlReviewStore(async_session_maker)
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studyflow.db.models import Flashcard, FlashcardProgress, StudySession
from studyflow.enums.study import ActivityType
from studyflow.models.study import ReviewState, SessionFields, StudySessionRecord
from studyflow.services.study.ports import ReviewStore, SessionStore

logger = logging.getLogger(__name__)

STALE_SESSION_NOTE = "closed as stale"

# Columns the tracker may write through update_session
SESSION_UPDATE_COLUMNS = frozenset(
    {
        "activity_type",
        "duration",
        "end_time",
        "is_active",
        "paused_duration_ms",
        "notes",
        "cards_reviewed",
        "cards_correct",
        "quiz_score",
        "quiz_total_questions",
        "notes_created",
        "notes_reviewed",
    }
)


class SqlSessionStore(SessionStore):
    """Session store backed by the study_sessions table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create_session(
        self,
        user_id: str,
        activity_type: ActivityType,
        start_time: datetime,
    ) -> str:
        async with self.session_factory() as db:
            record = StudySession(
                id=str(uuid.uuid4()),
                user_id=user_id,
                activity_type=ActivityType(activity_type).value,
                start_time=start_time,
                duration=0,
                paused_duration_ms=0,
                is_active=True,
            )
            db.add(record)
            await db.commit()
            return record.id

    async def update_session(self, session_id: str, fields: SessionFields) -> None:
        unknown = set(fields) - SESSION_UPDATE_COLUMNS
        if unknown:
            raise ValueError(f"Unknown session fields: {sorted(unknown)}")
        if not fields:
            return

        values = dict(fields)
        if isinstance(values.get("activity_type"), ActivityType):
            values["activity_type"] = values["activity_type"].value

        async with self.session_factory() as db:
            result = await db.execute(
                update(StudySession)
                .where(StudySession.id == session_id)
                .values(**values)
            )
            await db.commit()

        if result.rowcount == 0:
            logger.warning(f"Session {session_id} not found for update")

    async def end_active_sessions(self, user_id: str, ended_at: datetime) -> int:
        async with self.session_factory() as db:
            result = await db.execute(
                update(StudySession)
                .where(StudySession.user_id == user_id, StudySession.is_active.is_(True))
                .values(is_active=False, end_time=ended_at, notes=STALE_SESSION_NOTE)
            )
            await db.commit()
        return result.rowcount or 0

    async def list_sessions(
        self, user_id: str, limit: int = 20
    ) -> list[StudySessionRecord]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(StudySession)
                .where(StudySession.user_id == user_id)
                .order_by(StudySession.start_time.desc())
                .limit(limit)
            )
            rows = result.scalars().all()

        return [
            StudySessionRecord(
                id=row.id,
                user_id=row.user_id,
                activity_type=row.activity_type,
                start_time=row.start_time,
                end_time=row.end_time,
                duration=row.duration,
                paused_duration_ms=row.paused_duration_ms or 0,
                is_active=row.is_active,
                cards_reviewed=row.cards_reviewed or 0,
                cards_correct=row.cards_correct or 0,
                quiz_score=row.quiz_score or 0,
                quiz_total_questions=row.quiz_total_questions or 0,
                notes_created=row.notes_created or 0,
                notes_reviewed=row.notes_reviewed or 0,
                notes=row.notes,
            )
            for row in rows
        ]


class SqlReviewStore(ReviewStore):
    """Review store backed by user_flashcard_progress and flashcards."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_review_state(
        self, item_id: str, user_id: str
    ) -> Optional[ReviewState]:
        async with self.session_factory() as db:
            record = await self._get_progress(db, item_id, user_id)
            if record is None:
                return None
            return ReviewState.from_db_record(record)

    async def upsert_review_state(
        self, item_id: str, user_id: str, state: ReviewState
    ) -> None:
        async with self.session_factory() as db:
            record = await self._get_progress(db, item_id, user_id)
            if record is None:
                record = FlashcardProgress(flashcard_id=item_id, user_id=user_id)
                db.add(record)

            record.ease_factor = state.ease_factor
            record.interval = state.interval
            record.repetition = state.repetition
            record.last_reviewed_at = state.last_reviewed_at
            record.next_review_at = state.next_review_at
            record.last_score = state.last_score

            await db.commit()

    async def update_item_due_metadata(
        self,
        item_id: str,
        last_reviewed: datetime,
        next_due: datetime,
    ) -> None:
        async with self.session_factory() as db:
            result = await db.execute(
                update(Flashcard)
                .where(Flashcard.id == item_id)
                .values(last_reviewed_at=last_reviewed, next_review_at=next_due)
            )
            await db.commit()

        if result.rowcount == 0:
            raise LookupError(f"Flashcard {item_id} not found")

    async def list_due(
        self, user_id: str, now: datetime, limit: int
    ) -> list[tuple[str, ReviewState]]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(FlashcardProgress)
                .where(
                    FlashcardProgress.user_id == user_id,
                    FlashcardProgress.next_review_at <= now,
                )
                .order_by(FlashcardProgress.next_review_at.asc())
                .limit(limit)
            )
            rows = result.scalars().all()

        return [(row.flashcard_id, ReviewState.from_db_record(row)) for row in rows]

    @staticmethod
    async def _get_progress(
        db: AsyncSession, item_id: str, user_id: str
    ) -> Optional[FlashcardProgress]:
        result = await db.execute(
            select(FlashcardProgress).where(
                FlashcardProgress.flashcard_id == item_id,
                FlashcardProgress.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()
