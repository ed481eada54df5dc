"""
Middleware Package

Provides FastAPI middleware for error handling and the service exceptions
it translates into JSON error responses.

Usage:
    from studyflow.middleware import setup_error_handling, NotFoundError

    setup_error_handling(app, debug=settings.DEBUG)
"""

from studyflow.middleware.error_handling import (
    ErrorHandlingMiddleware,
    NotFoundError,
    PersistenceError,
    ServiceError,
    ValidationError,
    setup_error_handling,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "NotFoundError",
    "PersistenceError",
    "ServiceError",
    "ValidationError",
    "setup_error_handling",
]
