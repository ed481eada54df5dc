"""
StudyFlow API

FastAPI application wiring: logging, CORS, error handling, routers and the
lifespan that owns the timer scheduler and the session tracker registry.

Run:
    uvicorn studyflow.main:app --app-dir backend
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studyflow.config import settings
from studyflow.db.base import async_session_maker, init_db
from studyflow.middleware import setup_error_handling
from studyflow.routers import health_router, review_router, sessions_router
from studyflow.services.scheduler import start_scheduler, stop_scheduler, tracker_timers
from studyflow.services.study import SessionTracker, SqlSessionStore, TrackerRegistry

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries unless debugging
    if not debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
        logging.getLogger("apscheduler").setLevel(logging.WARNING)


def build_tracker_registry() -> TrackerRegistry:
    """Registry whose trackers persist through SQL and time through the scheduler."""
    store = SqlSessionStore(async_session_maker)

    def create_tracker(user_id: str) -> SessionTracker:
        return SessionTracker(user_id, store, tracker_timers(user_id))

    return TrackerRegistry(create_tracker)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await init_db()
    except Exception as e:
        logger.error(f"Database initialisation failed: {e}")

    start_scheduler()
    app.state.tracker_registry = build_tracker_registry()
    logger.info(f"{settings.APP_NAME} started")

    yield

    await app.state.tracker_registry.close_all()
    stop_scheduler()
    logger.info(f"{settings.APP_NAME} stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    setup_logging(settings.DEBUG)

    app = FastAPI(title=f"{settings.APP_NAME} API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    setup_error_handling(app, debug=settings.DEBUG)

    app.include_router(health_router.router)
    app.include_router(sessions_router.router)
    app.include_router(review_router.router)

    return app


app = create_app()
