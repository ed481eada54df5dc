"""
Unit tests for the SM-2 scheduler.

Tests the pure scheduling calculation: repetition and interval progression,
ease factor adjustment and bounds, rounding and due-date computation.
"""

from datetime import timedelta

import pytest

from studyflow.models.study import ReviewState
from studyflow.services.study.sm2 import SM2Scheduler, create_scheduler, round_half_up
from tests.conftest import T0


@pytest.fixture
def scheduler() -> SM2Scheduler:
    return SM2Scheduler()


class TestRounding:
    """Interval rounding is half-up, not banker's rounding."""

    def test_half_rounds_up(self):
        assert round_half_up(15.5) == 16
        assert round_half_up(2.5) == 3

    def test_below_half_rounds_down(self):
        assert round_half_up(16.2) == 16
        assert round_half_up(0.49) == 0


class TestPassingReviews:
    """Tests for the repetition/interval ladder on passing scores."""

    def test_first_review_from_defaults(self, scheduler):
        state = scheduler.review(None, 5, review_time=T0)

        assert state.repetition == 1
        assert state.interval == 1
        assert state.ease_factor == pytest.approx(2.6)
        assert state.last_score == 5

    def test_three_perfect_reviews(self, scheduler):
        first = scheduler.review(None, 5, review_time=T0)
        second = scheduler.review(first, 5, review_time=T0)
        third = scheduler.review(second, 5, review_time=T0)

        assert (second.repetition, second.interval) == (2, 6)
        assert (third.repetition, third.interval) == (3, 16)
        assert first.ease_factor < second.ease_factor < third.ease_factor

    def test_interval_uses_ease_before_review(self, scheduler):
        prior = ReviewState(ease_factor=2.8, interval=16, repetition=3)

        state = scheduler.review(prior, 3, review_time=T0)

        # 16 × 2.8 = 44.8, even though the new ease drops to 2.66
        assert state.interval == 45
        assert state.ease_factor == pytest.approx(2.66)

    def test_score_four_keeps_ease(self, scheduler):
        prior = ReviewState(ease_factor=2.2, interval=6, repetition=2)

        state = scheduler.review(prior, 4, review_time=T0)

        assert state.ease_factor == pytest.approx(2.2)
        assert state.interval == 13  # 6 × 2.2 = 13.2

    def test_due_date_is_interval_days_ahead(self, scheduler):
        prior = ReviewState(ease_factor=2.5, interval=6, repetition=2)

        state = scheduler.review(prior, 5, review_time=T0)

        assert state.last_reviewed_at == T0
        assert state.next_review_at == T0 + timedelta(days=15)


class TestFailingReviews:
    """Tests for failed recall (score below 3)."""

    @pytest.mark.parametrize("score", [0, 1, 2])
    def test_failure_resets_progress(self, scheduler, score):
        prior = ReviewState(ease_factor=2.5, interval=40, repetition=7)

        state = scheduler.review(prior, score, review_time=T0)

        assert state.repetition == 0
        assert state.interval == 1
        assert state.next_review_at == T0 + timedelta(days=1)

    def test_score_two_lowers_ease(self, scheduler):
        state = scheduler.review(None, 2, review_time=T0)

        assert state.ease_factor == pytest.approx(2.18)

    def test_ease_never_below_minimum(self, scheduler):
        state = None
        for _ in range(10):
            state = scheduler.review(state, 0, review_time=T0)
            assert state.ease_factor >= 1.3

        assert state.ease_factor == pytest.approx(1.3)

    def test_pass_after_failure_restarts_ladder(self, scheduler):
        failed = scheduler.review(
            ReviewState(ease_factor=2.5, interval=20, repetition=4), 1, review_time=T0
        )

        state = scheduler.review(failed, 4, review_time=T0)

        assert state.repetition == 1
        assert state.interval == 1


class TestScoreValidation:
    """Scores outside the 0-5 integer range are rejected."""

    @pytest.mark.parametrize("score", [-1, 6, 3.5, True, "4"])
    def test_invalid_scores(self, scheduler, score):
        with pytest.raises(ValueError):
            scheduler.review(None, score, review_time=T0)

    def test_is_pass_threshold(self, scheduler):
        assert scheduler.is_pass(3)
        assert not scheduler.is_pass(2)


class TestCreateScheduler:
    """Tests for the settings-backed factory."""

    def test_defaults_from_settings(self):
        scheduler = create_scheduler()

        assert scheduler.default_ease == 2.5
        assert scheduler.min_ease == 1.3
        assert scheduler.pass_threshold == 3

    def test_overrides(self):
        scheduler = create_scheduler(default_ease=2.0, min_ease=1.5)

        assert scheduler.initial_state().ease_factor == 2.0
        assert scheduler.next_ease(1.5, 0) == 1.5
