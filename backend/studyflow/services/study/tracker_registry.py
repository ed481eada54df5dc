"""
Per-user session tracker registry.

Holds at most one SessionTracker per user. Every client connection acquires a
handle; a duplicate connection for the same user shares the existing tracker
instead of creating a second one, so only one set of timers and one session
can be live per user. The tracker is closed when the last handle is released.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Optional

from studyflow.services.study.session_tracker import SessionTracker

logger = logging.getLogger(__name__)

TrackerFactory = Callable[[str], SessionTracker]


class TrackerRegistry:
    """Reference-counted singleton-per-user tracker handles."""

    def __init__(self, factory: TrackerFactory):
        self._factory = factory
        self._trackers: dict[str, SessionTracker] = {}
        self._refs: dict[str, int] = {}
        self._lock = asyncio.Lock()

    def get(self, user_id: str) -> Optional[SessionTracker]:
        return self._trackers.get(user_id)

    def ref_count(self, user_id: str) -> int:
        return self._refs.get(user_id, 0)

    def active_users(self) -> list[str]:
        return sorted(self._trackers)

    async def acquire(self, user_id: str) -> SessionTracker:
        """Return the user's tracker, creating it on first acquisition."""
        async with self._lock:
            tracker = self._trackers.get(user_id)
            if tracker is None:
                tracker = self._factory(user_id)
                self._trackers[user_id] = tracker
                self._refs[user_id] = 0
                logger.info(f"Created session tracker for user {user_id}")
            self._refs[user_id] += 1

            if self._refs[user_id] > 1:
                logger.debug(
                    f"Reusing session tracker for user {user_id} "
                    f"({self._refs[user_id]} handles)"
                )
            return tracker

    async def release(self, user_id: str) -> bool:
        """
        Drop one handle.

        Returns:
            True if this was the last handle and the tracker was closed.
        """
        async with self._lock:
            if user_id not in self._trackers:
                logger.warning(f"Release for user {user_id} without a tracker")
                return False

            self._refs[user_id] -= 1
            if self._refs[user_id] > 0:
                return False

            tracker = self._trackers.pop(user_id)
            del self._refs[user_id]

        await tracker.close()
        return True

    async def close_all(self) -> None:
        """Close every tracker regardless of outstanding handles (shutdown)."""
        async with self._lock:
            trackers = list(self._trackers.values())
            self._trackers.clear()
            self._refs.clear()

        for tracker in trackers:
            try:
                await tracker.close()
            except Exception as e:
                logger.error(f"Failed to close tracker for user {tracker.user_id}: {e}")

        if trackers:
            logger.info(f"Closed {len(trackers)} session tracker(s)")
