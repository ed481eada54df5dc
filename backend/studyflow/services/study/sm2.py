"""
SM-2 Spaced Repetition Algorithm

Pure scheduling calculation for flashcard reviews. Given the prior review
state of an item (or none, for a first review) and a recall score from 0 to 5,
computes the next repetition count, ease factor, interval and due date.

Algorithm (prior ease E, interval I, repetition R, score S):
    1. S < 3 (failed recall):  R ← 0, I ← 1
    2. S ≥ 3:                  R ← R + 1
                               I ← 1 if R == 1, 6 if R == 2, else round(I × E)
    3. E ← max(1.3, E + (0.1 − (5 − S) × (0.08 + (5 − S) × 0.02)))
    4. next due ← now + I days

The interval uses the ease factor from BEFORE this review. Rounding is
half-up (15.5 → 16), not Python's round-half-even.

Usage:
    from studyflow.services.study.sm2 import create_scheduler

    scheduler = create_scheduler()
    new_state = scheduler.review(prior_state, score=4)
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from studyflow.config.settings import settings
from studyflow.models.study import ReviewState

logger = logging.getLogger(__name__)

MIN_SCORE = 0
MAX_SCORE = 5


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (for value >= 0)."""
    return math.floor(value + 0.5)


class SM2Scheduler:
    """
    SM-2 scheduler.

    Attributes:
        default_ease: Ease factor assumed for never-reviewed items (2.5)
        min_ease: Lower bound for the ease factor (1.3)
        pass_threshold: Lowest score that counts as successful recall (3)
    """

    def __init__(
        self,
        default_ease: float = 2.5,
        min_ease: float = 1.3,
        pass_threshold: int = 3,
    ):
        self.default_ease = default_ease
        self.min_ease = min_ease
        self.pass_threshold = pass_threshold

    def initial_state(self) -> ReviewState:
        """State of an item that has never been reviewed."""
        return ReviewState(ease_factor=self.default_ease, interval=0, repetition=0)

    def is_pass(self, score: int) -> bool:
        return score >= self.pass_threshold

    def next_ease(self, ease: float, score: int) -> float:
        """
        Apply the SM-2 ease adjustment.

        A perfect score adds 0.1; a score of 4 leaves the ease unchanged; lower
        scores reduce it, bounded below by min_ease.
        """
        miss = MAX_SCORE - score
        return max(self.min_ease, ease + (0.1 - miss * (0.08 + miss * 0.02)))

    def review(
        self,
        prior: Optional[ReviewState],
        score: int,
        review_time: Optional[datetime] = None,
    ) -> ReviewState:
        """
        Compute the state after reviewing an item.

        Args:
            prior: State before this review, or None for a first review.
            score: Recall score, integer 0-5.
            review_time: When the review happened (defaults to now, UTC).

        Returns:
            New ReviewState with last_reviewed_at = review_time and
            next_review_at = review_time + interval days.

        Raises:
            ValueError: If score is outside 0-5.
        """
        if (
            isinstance(score, bool)
            or not isinstance(score, int)
            or not MIN_SCORE <= score <= MAX_SCORE
        ):
            raise ValueError(f"Score must be an integer from 0 to 5, got {score!r}")

        now = review_time or datetime.now(timezone.utc)
        state = prior or self.initial_state()

        ease = state.ease_factor
        interval = state.interval
        repetition = state.repetition

        if not self.is_pass(score):
            repetition = 0
            interval = 1
        else:
            repetition += 1
            if repetition == 1:
                interval = 1
            elif repetition == 2:
                interval = 6
            else:
                interval = round_half_up(interval * ease)

        ease = self.next_ease(ease, score)

        logger.debug(
            f"SM-2 review score={score}: rep {state.repetition}->{repetition}, "
            f"interval {state.interval}->{interval}d, ease {state.ease_factor:.2f}->{ease:.2f}"
        )

        return ReviewState(
            ease_factor=ease,
            interval=interval,
            repetition=repetition,
            last_reviewed_at=now,
            next_review_at=now + timedelta(days=interval),
            last_score=score,
        )


def create_scheduler(
    default_ease: Optional[float] = None,
    min_ease: Optional[float] = None,
    pass_threshold: Optional[int] = None,
) -> SM2Scheduler:
    """
    Factory function to create an SM2Scheduler from settings.

    Explicit arguments override the SM2_* settings.
    """
    return SM2Scheduler(
        default_ease=default_ease if default_ease is not None else settings.SM2_DEFAULT_EASE,
        min_ease=min_ease if min_ease is not None else settings.SM2_MIN_EASE,
        pass_threshold=(
            pass_threshold if pass_threshold is not None else settings.SM2_PASS_THRESHOLD
        ),
    )
