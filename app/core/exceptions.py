"""Grading error taxonomy and the HTTP handlers that render it."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import (
    HTTPException as StarletteHTTPException,
    RequestValidationError,
)

from app.core.response import error_response, validation_error_response

logger = logging.getLogger(__name__)


class GradingError(Exception):
    """Base exception for grading operations that must be rejected."""

    status_code = 400
    error_code = "GRADING_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class GradingValidationError(GradingError):
    """Raised for malformed grading requests, e.g. a score outside [0, max_score]."""

    status_code = 400
    error_code = "VALIDATION_ERROR"


class NotFoundError(GradingError):
    """Raised when a referenced answer, submission, score or question is absent."""

    status_code = 404
    error_code = "NOT_FOUND"


class PersistenceFailure(GradingError):
    """Raised when the backing store rejects a write. Never retried here."""

    status_code = 500
    error_code = "PERSISTENCE_FAILURE"


def register_exception_handlers(app: FastAPI) -> None:
    """Install the error-envelope handlers on an application."""

    @app.exception_handler(GradingError)
    async def grading_exception_handler(request: Request, exc: GradingError):
        logger.warning(
            f"Grading Error: {exc.error_code} - {exc.message}",
            extra={
                "status_code": exc.status_code,
                "error_code": exc.error_code,
                "path": request.url.path,
                "method": request.method,
            },
        )
        return error_response(
            exc.message, status_code=exc.status_code, error_code=exc.error_code
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions with logging"""
        # exc.detail might be a dict or str
        msg = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

        logger.warning(
            f"HTTP Exception: {exc.status_code} - {msg}",
            extra={
                "status_code": exc.status_code,
                "path": request.url.path,
                "method": request.method,
                "client_ip": request.client.host if request.client else None
            }
        )

        return error_response(msg, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Structured validation errors"""
        error_count = len(exc.errors())
        logger.warning(
            f"Validation Error: {error_count} field(s) failed validation",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error_count": error_count,
            }
        )

        return validation_error_response(exc.errors(), status_code=422)
