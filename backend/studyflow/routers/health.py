"""
Health Check Endpoints

Provides health check endpoints for monitoring and orchestration.

Endpoints:
- GET /api/health - Basic health check
- GET /api/health/detailed - Detailed health with dependency checks
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.config import settings
from studyflow.db.base import get_db
from studyflow.services.scheduler import get_scheduled_jobs, scheduler

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("")
async def health_check():
    """
    Basic health check.

    Returns a simple status response indicating the API is running.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
    }


@router.get("/detailed")
async def detailed_health_check(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Detailed health check with dependency status.

    Checks:
    - PostgreSQL database connectivity
    - Timer scheduler state
    - Connected session trackers
    """
    health = {"status": "healthy", "service": settings.APP_NAME, "dependencies": {}}

    # Check PostgreSQL
    try:
        await db.execute(text("SELECT 1"))
        health["dependencies"]["postgres"] = {"status": "healthy"}
    except Exception as e:
        health["dependencies"]["postgres"] = {"status": "unhealthy", "error": str(e)}
        health["status"] = "degraded"

    # Check scheduler
    if scheduler.running:
        health["dependencies"]["scheduler"] = {
            "status": "healthy",
            "job_count": len(get_scheduled_jobs()),
        }
    else:
        health["dependencies"]["scheduler"] = {
            "status": "unhealthy",
            "error": "Scheduler not running",
        }
        health["status"] = "degraded"

    registry = getattr(request.app.state, "tracker_registry", None)
    health["trackers"] = len(registry.active_users()) if registry is not None else 0

    return health
