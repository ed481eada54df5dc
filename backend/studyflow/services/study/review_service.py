"""
Review Scheduling Service

Service layer that integrates the SM-2 scheduler with the review store.
Handles review recording, state lookup and due-item queries.

Failure policy:
- Reading the prior state fails open: the review is scheduled from defaults.
- Writing the new state is the one write whose failure is surfaced
  (PersistenceError), since losing it would corrupt the learning schedule.
- The item's denormalised due metadata is best-effort.

Usage:
    from studyflow.services.study import ReviewService

    service = ReviewService(SqlReviewStore(async_session_maker))
    result = await service.record_review(item_id, user_id, score=4)
"""

import logging
from typing import Optional

from studyflow.config.settings import settings
from studyflow.middleware.error_handling import PersistenceError, ValidationError
from studyflow.models.study import DueReview, ReviewResponse, ReviewState
from studyflow.services.study.ports import Clock, ReviewStore, utc_now
from studyflow.services.study.sm2 import MAX_SCORE, MIN_SCORE, SM2Scheduler, create_scheduler

logger = logging.getLogger(__name__)


class ReviewService:
    """
    Service for recording reviews with SM-2 scheduling.

    Provides:
    - Review recording (load → compute → upsert → item metadata)
    - Review state lookup
    - Due review listing
    """

    def __init__(
        self,
        store: ReviewStore,
        scheduler: Optional[SM2Scheduler] = None,
        clock: Clock = utc_now,
    ):
        """
        Initialize the review service.

        Args:
            store: Review state persistence
            scheduler: SM-2 scheduler (defaults to one built from settings)
            clock: Time source for review timestamps
        """
        self.store = store
        self.scheduler = scheduler or create_scheduler()
        self.clock = clock

    async def record_review(
        self, item_id: str, user_id: str, score: int
    ) -> ReviewResponse:
        """
        Record a review score and reschedule the item.

        Args:
            item_id: Reviewed item (flashcard) ID
            user_id: Reviewing user
            score: Recall score, integer 0-5

        Returns:
            Review response with the previous and new state

        Raises:
            ValidationError: If score is not an integer from 0 to 5
            PersistenceError: If the new review state could not be written
        """
        if isinstance(score, bool) or not isinstance(score, int) or not (
            MIN_SCORE <= score <= MAX_SCORE
        ):
            raise ValidationError(
                f"Score must be an integer from {MIN_SCORE} to {MAX_SCORE}",
                details={"score": score},
            )

        now = self.clock()
        prior = await self._load_prior_state(item_id, user_id)
        new_state = self.scheduler.review(prior, score, review_time=now)

        try:
            await self.store.upsert_review_state(item_id, user_id, new_state)
        except Exception as e:
            logger.error(
                f"Failed to save review state for item {item_id} (user {user_id}): {e}"
            )
            raise PersistenceError(
                "Your progress may not have been saved.",
                details={"item_id": item_id, "user_id": user_id},
            ) from e

        metadata_updated = await self._update_item_metadata(item_id, new_state)

        logger.info(
            f"Reviewed item {item_id} for user {user_id}: score={score}, "
            f"repetition={new_state.repetition}, next due in {new_state.interval} days"
        )

        return ReviewResponse(
            item_id=item_id,
            user_id=user_id,
            previous_state=prior,
            state=new_state,
            passed=self.scheduler.is_pass(score),
            item_metadata_updated=metadata_updated,
        )

    async def get_review_state(
        self, item_id: str, user_id: str
    ) -> Optional[ReviewState]:
        """Get the stored review state, or None if never reviewed."""
        return await self.store.get_review_state(item_id, user_id)

    async def get_due_reviews(
        self, user_id: str, limit: Optional[int] = None
    ) -> list[DueReview]:
        """
        List items due for review, most overdue first.

        Args:
            user_id: User whose reviews to list
            limit: Maximum items (defaults to settings.REVIEW_DUE_DEFAULT_LIMIT)
        """
        if limit is None:
            limit = settings.REVIEW_DUE_DEFAULT_LIMIT

        due = await self.store.list_due(user_id, self.clock(), limit)
        return [DueReview(item_id=item_id, state=state) for item_id, state in due]

    async def _load_prior_state(
        self, item_id: str, user_id: str
    ) -> Optional[ReviewState]:
        """Load the prior state; a failed read falls back to defaults (None)."""
        try:
            return await self.store.get_review_state(item_id, user_id)
        except Exception as e:
            logger.warning(
                f"Could not load review state for item {item_id} (user {user_id}), "
                f"scheduling from defaults: {e}"
            )
            return None

    async def _update_item_metadata(self, item_id: str, state: ReviewState) -> bool:
        """Best-effort update of the item's last/next review columns."""
        try:
            await self.store.update_item_due_metadata(
                item_id, state.last_reviewed_at, state.next_review_at
            )
            return True
        except Exception as e:
            logger.warning(f"Failed to update due metadata for item {item_id}: {e}")
            return False
