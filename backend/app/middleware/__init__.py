"""
Middleware Package

Provides FastAPI middleware and helpers for:
- Error handling (structured JSON errors with correlation IDs)
- Endpoint error wrapping

Usage:
    from app.middleware import setup_error_handling, handle_endpoint_errors

    setup_error_handling(app, debug=settings.DEBUG)
"""

from app.middleware.error_handling import (
    ConflictError,
    ErrorHandlingMiddleware,
    NotFoundError,
    ServiceError,
    ValidationError,
    handle_endpoint_errors,
    setup_error_handling,
)

__all__ = [
    "ConflictError",
    "ErrorHandlingMiddleware",
    "NotFoundError",
    "ServiceError",
    "ValidationError",
    "handle_endpoint_errors",
    "setup_error_handling",
]
