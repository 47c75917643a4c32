"""
Tracking Errors

Exceptions raised by the tracking services. They extend the API's
ServiceError hierarchy so routers need no translation layer.
"""

from app.middleware.error_handling import ConflictError, NotFoundError, ValidationError


class NoActiveSessionError(ConflictError):
    """End or page change requested while nothing is active."""

    error_code = "no_active_session"


class SessionNotFoundError(NotFoundError):
    error_code = "session_not_found"


class ResourceNotFoundError(NotFoundError):
    error_code = "resource_not_found"


class GoalNotFoundError(NotFoundError):
    error_code = "goal_not_found"


class InvalidPageError(ValidationError):
    """Page number below 1 or beyond the resource's known page count."""

    error_code = "invalid_page"
