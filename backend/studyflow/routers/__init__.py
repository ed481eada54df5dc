"""API Routers package."""

from studyflow.routers import health as health_router
from studyflow.routers import review as review_router
from studyflow.routers import sessions as sessions_router

__all__ = ["health_router", "review_router", "sessions_router"]
