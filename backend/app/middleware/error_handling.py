"""
Error Handling

Provides consistent, informative error responses across the API.

Features:
- Standardized error response format
- Correlation IDs for log tracking
- Sanitized responses (hides internal details outside debug mode)
- Custom exception classes for different error types
- Endpoint decorator that turns unexpected failures into logged 500s

Usage:
    from app.middleware.error_handling import (
        ServiceError,
        handle_endpoint_errors,
        setup_error_handling,
    )

    setup_error_handling(app, debug=settings.DEBUG)

    @router.get("/thing")
    @handle_endpoint_errors("Get thing")
    async def get_thing(): ...

How Exception Interception Works:
    ServiceError subclasses raised anywhere below a route are converted by
    an exception handler registered on the app, so their status code and
    error code reach the client unchanged.

    Anything else bubbles up through `call_next()` into
    ErrorHandlingMiddleware.dispatch(), which logs it with a correlation
    ID and returns a sanitized 500.

    Exception handling hierarchy:
        - HTTPException: Re-raised for FastAPI's built-in handler
        - ServiceError: Custom exceptions → structured JSON response
        - Exception: Catch-all for unexpected errors → sanitized response
"""

import functools
import logging
import traceback
from datetime import datetime, timezone
from typing import Callable, Optional
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


# =============================================================================
# Custom Exceptions
# =============================================================================


class ServiceError(Exception):
    """
    Base exception for service errors.

    Provides consistent error handling with:
    - HTTP status code
    - Error code for categorization
    - Optional details for debugging

    Example:
        raise ServiceError("Database connection failed", status_code=503)
    """

    status_code: int = 500
    error_code: str = "service_error"

    def __init__(
        self,
        message: str,
        status_code: int = None,
        error_code: str = None,
        details: dict = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code:
            self.status_code = status_code
        if error_code:
            self.error_code = error_code
        self.details = details


class ValidationError(ServiceError):
    """
    Data validation error.

    Raised when input data fails validation.
    """

    status_code = 422
    error_code = "validation_error"


class NotFoundError(ServiceError):
    """
    Resource not found error.

    Raised when a requested entity doesn't exist.
    """

    status_code = 404
    error_code = "not_found"


class ConflictError(ServiceError):
    """
    State conflict error.

    Raised when a request is valid but the current state does not allow it.
    """

    status_code = 409
    error_code = "conflict"


# =============================================================================
# Error Handling Middleware
# =============================================================================


def _error_content(
    error_code: str,
    message: str,
    error_id: str,
    details: Optional[dict] = None,
) -> dict:
    return {
        "error": error_code,
        "message": message,
        "error_id": error_id,
        "details": details,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def _log_service_error(error_id: str, e: ServiceError, request: Request) -> None:
    # 4xx are client mistakes, not server faults
    level = logging.WARNING if e.status_code < 500 else logging.ERROR
    logger.log(
        level,
        f"[{error_id}] {e.error_code}: {e.message}",
        extra={
            "error_id": error_id,
            "error_code": e.error_code,
            "path": request.url.path,
            "method": request.method,
            "details": e.details,
        },
    )


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Global error handling middleware.

    - Catches unhandled exceptions
    - Logs with correlation ID
    - Returns consistent error format
    - Hides internal details outside debug mode
    """

    def __init__(self, app, debug: bool = False):
        """
        Initialize middleware.

        Args:
            app: FastAPI/Starlette application
            debug: Whether to include stack traces in responses
        """
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        """Process request and handle any errors."""
        error_id = str(uuid4())[:8]

        try:
            response = await call_next(request)
            return response

        except HTTPException:
            # Let FastAPI handle HTTP exceptions
            raise

        except ServiceError as e:
            _log_service_error(error_id, e, request)
            return JSONResponse(
                status_code=e.status_code,
                content=_error_content(e.error_code, e.message, error_id, e.details),
            )

        except Exception as e:
            # Log full traceback for unexpected errors
            logger.error(
                f"[{error_id}] Unhandled error: {type(e).__name__}: {e}",
                extra={
                    "error_id": error_id,
                    "path": request.url.path,
                    "method": request.method,
                    "traceback": traceback.format_exc(),
                },
            )

            details = None
            if self.debug:
                details = {
                    "exception": type(e).__name__,
                    "message": str(e),
                    "traceback": traceback.format_exc(),
                }

            return JSONResponse(
                status_code=500,
                content=_error_content(
                    "internal_server_error",
                    "An unexpected error occurred",
                    error_id,
                    details,
                ),
            )


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Convert a ServiceError raised by a route into the standard format."""
    error_id = str(uuid4())[:8]
    _log_service_error(error_id, exc, request)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_content(exc.error_code, exc.message, error_id, exc.details),
    )


# =============================================================================
# Setup Function
# =============================================================================


def setup_error_handling(app: FastAPI, debug: bool = False) -> None:
    """
    Configure error handling on the FastAPI app.

    Args:
        app: FastAPI application instance
        debug: Whether to include stack traces in responses
    """
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_middleware(ErrorHandlingMiddleware, debug=debug)
    logger.info(f"Error handling middleware enabled (debug={debug})")


# =============================================================================
# Helper Functions
# =============================================================================


def handle_endpoint_errors(operation: str) -> Callable:
    """
    Decorator for route handlers.

    HTTPException and ServiceError pass through untouched so their status
    codes survive. Any other exception is logged with the operation name
    and re-raised as a 500.

    Args:
        operation: Human-readable operation name used in logs

    Example:
        @router.get("/streak")
        @handle_endpoint_errors("Get streak")
        async def get_streak(...): ...
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except (HTTPException, ServiceError):
                raise
            except Exception as e:
                logger.error(f"{operation} failed: {e}", exc_info=True)
                raise HTTPException(
                    status_code=500, detail=f"{operation} failed"
                ) from e

        return wrapper

    return decorator
