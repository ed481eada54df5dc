"""
Review API Router

Endpoints for SM-2 spaced repetition reviews.

Endpoints:
- POST /api/review/rate - Submit a review score (0-5) and reschedule the item
- GET /api/review/state - Get an item's review state for a user
- GET /api/review/due - Get items due for review
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from studyflow.dependencies import get_review_service
from studyflow.middleware.error_handling import NotFoundError
from studyflow.models.study import DueReview, ReviewRequest, ReviewResponse, ReviewState
from studyflow.services.study import ReviewService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/review", tags=["review"])


@router.post("/rate", response_model=ReviewResponse)
async def rate_item(
    request: ReviewRequest,
    service: ReviewService = Depends(get_review_service),
) -> ReviewResponse:
    """
    Submit a review score for an item.

    SM-2 scores:
    - 0-2: Failed recall, repetition resets and the item is due tomorrow
    - 3: Correct with serious difficulty
    - 4: Correct after hesitation
    - 5: Perfect recall

    Returns the new scheduling state. A 503 response means the new state was
    not saved.
    """
    return await service.record_review(request.item_id, request.user_id, request.score)


@router.get("/state", response_model=ReviewState)
async def get_review_state(
    item_id: str = Query(..., min_length=1, description="Item ID"),
    user_id: str = Query(..., min_length=1, description="User ID"),
    service: ReviewService = Depends(get_review_service),
) -> ReviewState:
    """Get the review state of an item for a user."""
    state = await service.get_review_state(item_id, user_id)

    if state is None:
        raise NotFoundError(
            "Item has not been reviewed",
            details={"item_id": item_id, "user_id": user_id},
        )
    return state


@router.get("/due", response_model=list[DueReview])
async def get_due_reviews(
    user_id: str = Query(..., min_length=1, description="User ID"),
    limit: Optional[int] = Query(None, ge=1, le=200, description="Maximum items to return"),
    service: ReviewService = Depends(get_review_service),
) -> list[DueReview]:
    """Get items due for review, most overdue first."""
    return await service.get_due_reviews(user_id, limit=limit)
