"""
Application error taxonomy.

Services raise these; the handlers registered in ``fintrack.main`` render
them as ``{"success": false, "error": {...}}`` with a stable code.
"""

from datetime import datetime, timezone

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
import structlog

logger = structlog.get_logger(__name__)


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "APP_ERROR"

    def __init__(self, message: str, error_code: str = None, status_code: int = None):
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    """Malformed or out-of-range input."""
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "VALIDATION_ERROR"


class AuthenticationError(AppError):
    """Missing, invalid or expired credential."""
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "UNAUTHENTICATED"


class AccessDeniedError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "ACCESS_DENIED"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"


class ConflictError(AppError):
    """Uniqueness or overlap violation."""
    status_code = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"


def error_body(message: str, code: str, status_code: int) -> dict:
    return {
        "success": False,
        "error": {
            "message": message,
            "code": code,
            "status_code": status_code,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    }


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    logger.warning(
        "request_failed",
        path=request.url.path,
        method=request.method,
        code=exc.error_code,
        message=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.error_code, exc.status_code),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(message, ValidationError.error_code, status.HTTP_400_BAD_REQUEST),
    )


def is_unique_violation(exc: IntegrityError) -> bool:
    """True for duplicate keys (PostgreSQL SQLSTATE 23505 or SQLite's UNIQUE message)."""
    if getattr(exc.orig, "pgcode", None) == "23505":
        return True
    return "UNIQUE constraint failed" in str(exc.orig)


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    db = getattr(request.state, "db", None)
    if db is not None:
        db.rollback()
    logger.warning("integrity_error", path=request.url.path, error=str(exc.orig))
    if is_unique_violation(exc):
        message, code = "A record with this information already exists", "DUPLICATE_ENTRY"
    else:
        message, code = "The operation conflicts with related records", "CONSTRAINT_VIOLATION"
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=error_body(message, code, status.HTTP_409_CONFLICT),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path, method=request.method)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(
            "Internal server error",
            "INTERNAL_ERROR",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        ),
    )
