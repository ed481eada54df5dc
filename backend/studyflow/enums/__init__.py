"""
Centralized enum definitions for the application.

Usage:
    from studyflow.enums import ActivityType, TrackerState

    # Or import from the specific module
    from studyflow.enums.study import TrackerState
"""

from studyflow.enums.study import (
    ActivityType,
    TrackerState,
)

__all__ = [
    "ActivityType",
    "TrackerState",
]
