"""
Study Tracking Enums

Defines enums for the study session tracker state machine and the
activity classification of study sessions.
"""

from enum import Enum


class ActivityType(str, Enum):
    """
    What the user is doing during a study session.

    Derived from the route the user is on; see StudyRouteClassifier.
    """

    GENERAL = "general"
    FLASHCARD_STUDY = "flashcard_study"
    NOTE_REVIEW = "note_review"
    QUIZ_TAKING = "quiz_taking"


class TrackerState(str, Enum):
    """
    Session tracker states.

    State transitions:
    - IDLE → ACTIVE (entered a study route, or explicit start)
    - ACTIVE → AUTO_PAUSED (left the study route or page hidden)
    - AUTO_PAUSED → ACTIVE (back on a study route, or user activity there)
    - ACTIVE ⇄ MANUALLY_PAUSED (explicit pause/resume only)
    - AUTO_PAUSED → ENDING (auto-timeout after SESSION_AUTO_END_MINUTES)
    - any session state → ENDING (explicit end)
    - ENDING → ENDED → IDLE (cleanup continuation)
    """

    IDLE = "idle"  # No session
    ACTIVE = "active"  # Clock advancing
    AUTO_PAUSED = "auto_paused"  # Clock frozen, paused by navigation
    MANUALLY_PAUSED = "manually_paused"  # Clock frozen, paused by the user
    ENDING = "ending"  # Final duration locked, final write in flight
    ENDED = "ended"  # Finalised, no further mutation

    @property
    def has_session(self) -> bool:
        """True for states that own a live (not yet finalised) session."""
        return self in (
            TrackerState.ACTIVE,
            TrackerState.AUTO_PAUSED,
            TrackerState.MANUALLY_PAUSED,
        )

    @property
    def is_paused(self) -> bool:
        return self in (TrackerState.AUTO_PAUSED, TrackerState.MANUALLY_PAUSED)
