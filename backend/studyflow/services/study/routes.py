"""
Study route classification.

Decides whether a client route is a study context and which activity type a
session on that route records. Matching is a plain path-prefix test.
"""

from typing import Optional, Sequence

from studyflow.config.settings import settings
from studyflow.enums.study import ActivityType

# Checked in order; first match wins
ACTIVITY_PREFIXES: tuple[tuple[str, ActivityType], ...] = (
    ("/flashcards", ActivityType.FLASHCARD_STUDY),
    ("/notes", ActivityType.NOTE_REVIEW),
    ("/quiz", ActivityType.QUIZ_TAKING),
)


class StudyRouteClassifier:
    """Classifies route paths against the configured study prefixes."""

    def __init__(self, prefixes: Optional[Sequence[str]] = None):
        self.prefixes = tuple(
            prefixes if prefixes is not None else settings.STUDY_ROUTE_PREFIXES
        )

    def is_study_route(self, path: Optional[str]) -> bool:
        if not path:
            return False
        return any(path.startswith(prefix) for prefix in self.prefixes)

    def activity_type(self, path: Optional[str]) -> ActivityType:
        """Activity type for a route; unknown routes are GENERAL."""
        if path:
            for prefix, activity in ACTIVITY_PREFIXES:
                if path.startswith(prefix):
                    return activity
        return ActivityType.GENERAL
