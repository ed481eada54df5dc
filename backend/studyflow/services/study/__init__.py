"""
Study Tracking Services

Session tracking and spaced repetition review scheduling:
- SessionTracker: per-user study session state machine
- TrackerRegistry: one reference-counted tracker per user
- WriteDispatcher: ordered fire-and-forget session writes
- SM2Scheduler / ReviewService: SM-2 review scheduling and persistence
- SqlSessionStore / SqlReviewStore: SQLAlchemy-backed stores
"""

from studyflow.services.study.ports import (
    Clock,
    ReviewStore,
    SessionStore,
    TimerBackend,
    utc_now,
)
from studyflow.services.study.review_service import ReviewService
from studyflow.services.study.routes import StudyRouteClassifier
from studyflow.services.study.session_tracker import AUTO_END_NOTE, SessionTracker
from studyflow.services.study.sm2 import SM2Scheduler, create_scheduler
from studyflow.services.study.sql_stores import SqlReviewStore, SqlSessionStore
from studyflow.services.study.tracker_registry import TrackerRegistry
from studyflow.services.study.write_dispatch import WriteDispatcher

__all__ = [
    "AUTO_END_NOTE",
    "Clock",
    "ReviewService",
    "ReviewStore",
    "SM2Scheduler",
    "SessionStore",
    "SessionTracker",
    "SqlReviewStore",
    "SqlSessionStore",
    "StudyRouteClassifier",
    "TimerBackend",
    "TrackerRegistry",
    "WriteDispatcher",
    "create_scheduler",
    "utc_now",
]
