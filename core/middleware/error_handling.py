"""
Error handling middleware with error sanitization.

Maps review engine exceptions and infrastructure failures onto the
structured ``{"error": {code, message, path, method}}`` envelope.
"""

import logging
import traceback
from typing import Any, Callable
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import SQLAlchemyError, IntegrityError, OperationalError
from redis.exceptions import RedisError, ConnectionError as RedisConnectionError
import re

from core.errors import (
    BulkTransactionError,
    NormalizationInProgressError,
    NotificationDeliveryError,
    ReviewEngineError,
    ReviewValidationError,
)

logger = logging.getLogger(__name__)

# Patterns for sensitive data that should never be logged
SENSITIVE_PATTERNS = [
    re.compile(r'password["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'token["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'api[_-]?key["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'secret["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'authorization["\s:]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'postgres(?:ql)?(?:\+\w+)?://[^\s"]+', re.IGNORECASE),  # DSN with credentials
]

REVIEW_ERROR_STATUS = {
    ReviewValidationError: status.HTTP_400_BAD_REQUEST,
    NormalizationInProgressError: status.HTTP_409_CONFLICT,
    NotificationDeliveryError: status.HTTP_502_BAD_GATEWAY,
    BulkTransactionError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def sanitize_error_message(message: str) -> str:
    """
    Remove sensitive information from error messages.

    Args:
        message: Original error message

    Returns:
        Sanitized error message
    """
    sanitized = message
    for pattern in SENSITIVE_PATTERNS:
        sanitized = pattern.sub('[REDACTED]', sanitized)
    return sanitized


def get_safe_error_details(exc: Exception, include_details: bool = False) -> dict[str, Any]:
    """
    Extract safe error details without exposing sensitive information.

    Args:
        exc: The exception to extract details from
        include_details: Whether to include the traceback (only in dev)

    Returns:
        Dictionary with safe error details
    """
    details = {
        "type": type(exc).__name__,
        "message": sanitize_error_message(str(exc)),
    }

    if include_details:
        details["traceback"] = traceback.format_exc()

    return details


def review_error_status(exc: ReviewEngineError) -> int:
    for exc_type, status_code in REVIEW_ERROR_STATUS.items():
        if isinstance(exc, exc_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def review_error_response(exc: ReviewEngineError, path: str, method: str) -> JSONResponse:
    """
    Build the error envelope for a review engine exception.

    A failed bulk transaction also reports zero successes at the top level,
    matching the shape of a normal bulk result.
    """
    status_code = review_error_status(exc)
    content: dict[str, Any] = {
        "error": {
            "code": exc.code,
            "message": sanitize_error_message(exc.message),
            "path": path,
            "method": method,
        }
    }
    if exc.details:
        content["error"]["details"] = exc.details

    if isinstance(exc, BulkTransactionError):
        content.update(success=False, success_count=0, failure_count=0, total=0)

    if status_code >= 500:
        logger.error(f"Review engine error: {method} {path} - {exc.code}: {exc.message}")
    else:
        logger.warning(f"Review engine error: {method} {path} - {exc.code}: {exc.message}")

    return JSONResponse(status_code=status_code, content=content)


class ErrorHandlingMiddleware:
    """
    Error handling middleware.

    Features:
    - Sanitizes error messages to prevent sensitive data leakage
    - Maps review engine and infrastructure errors to structured responses
    - Logs errors with appropriate severity
    """

    def __init__(self, app: Callable, debug: bool = False):
        """
        Initialize error handling middleware.

        Args:
            app: The ASGI application
            debug: Whether to include detailed error information
        """
        self.app = app
        self.debug = debug

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            await self.app(scope, receive, send)
        except Exception as exc:
            response = await self._handle_exception(exc, scope)
            await response(scope, receive, send)

    async def _handle_exception(self, exc: Exception, scope: dict) -> Response:
        """
        Handle different types of exceptions and return appropriate responses.

        Args:
            exc: The exception to handle
            scope: ASGI scope for context

        Returns:
            JSONResponse with error details
        """
        request_path = scope.get("path", "unknown")
        request_method = scope.get("method", "unknown")

        if isinstance(exc, ReviewEngineError):
            return review_error_response(exc, request_path, request_method)

        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        error_code = "INTERNAL_SERVER_ERROR"
        message = "An unexpected error occurred"
        details = None

        if isinstance(exc, StarletteHTTPException):
            status_code = exc.status_code
            error_code = "HTTP_EXCEPTION"
            message = sanitize_error_message(exc.detail)
            logger.warning(
                f"HTTP exception: {request_method} {request_path} - "
                f"Status: {status_code}, Message: {message}"
            )

        elif isinstance(exc, RequestValidationError):
            status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
            error_code = "VALIDATION_ERROR"
            message = "Request validation failed"
            details = format_validation_errors(exc)
            logger.warning(
                f"Validation error: {request_method} {request_path} - "
                f"Errors: {details}"
            )

        elif isinstance(exc, IntegrityError):
            status_code = status.HTTP_409_CONFLICT
            error_code = "INTEGRITY_ERROR"
            message = "Database integrity constraint violated"
            if self.debug:
                details = get_safe_error_details(exc, include_details=True)
            logger.error(
                f"Database integrity error: {request_method} {request_path}",
                exc_info=not self.debug
            )

        elif isinstance(exc, OperationalError):
            status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            error_code = "DATABASE_ERROR"
            message = "Database service temporarily unavailable"
            logger.error(
                f"Database operational error: {request_method} {request_path}",
                exc_info=True
            )

        elif isinstance(exc, SQLAlchemyError):
            error_code = "DATABASE_ERROR"
            message = "A database error occurred"
            if self.debug:
                details = get_safe_error_details(exc, include_details=True)
            logger.error(
                f"SQLAlchemy error: {request_method} {request_path}",
                exc_info=not self.debug
            )

        elif isinstance(exc, RedisConnectionError):
            status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            error_code = "CACHE_ERROR"
            message = "Lock service temporarily unavailable"
            logger.error(
                f"Redis connection error: {request_method} {request_path}",
                exc_info=True
            )

        elif isinstance(exc, RedisError):
            error_code = "CACHE_ERROR"
            message = "A lock service error occurred"
            logger.error(
                f"Redis error: {request_method} {request_path}",
                exc_info=not self.debug
            )

        else:
            if self.debug:
                details = get_safe_error_details(exc, include_details=True)
            logger.error(
                f"Unhandled exception: {request_method} {request_path} - "
                f"{type(exc).__name__}: {sanitize_error_message(str(exc))}",
                exc_info=True
            )

        error_response = {
            "error": {
                "code": error_code,
                "message": message,
                "path": request_path,
                "method": request_method,
            }
        }

        if details is not None:
            error_response["error"]["details"] = details

        if "headers" in scope:
            headers = dict(scope["headers"])
            request_id = headers.get(b"x-request-id")
            if request_id:
                error_response["error"]["request_id"] = request_id.decode()

        return JSONResponse(
            status_code=status_code,
            content=error_response,
        )


def format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """Flatten pydantic errors into field/message/type entries."""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": sanitize_error_message(error["msg"]),
            "type": error["type"],
        })
    return errors


def setup_error_handlers(app):
    """
    Set up exception handlers for FastAPI application.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(ReviewEngineError)
    async def review_engine_exception_handler(request: Request, exc: ReviewEngineError):
        """Handle review engine errors."""
        return review_error_response(exc, str(request.url.path), request.method)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "code": "HTTP_EXCEPTION",
                    "message": sanitize_error_message(str(exc.detail)),
                    "path": str(request.url.path),
                    "method": request.method,
                }
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors."""
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": {
                    "code": "VALIDATION_ERROR",
                    "message": "Request validation failed",
                    "path": str(request.url.path),
                    "method": request.method,
                    "details": format_validation_errors(exc),
                }
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Handle all other exceptions."""
        logger.error(
            f"Unhandled exception: {request.method} {request.url.path} - "
            f"{type(exc).__name__}: {sanitize_error_message(str(exc))}",
            exc_info=True
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_SERVER_ERROR",
                    "message": "An unexpected error occurred",
                    "path": str(request.url.path),
                    "method": request.method,
                }
            },
        )
