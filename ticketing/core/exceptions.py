"""
Application error taxonomy and global exception handlers.

Every caller-facing failure is an :class:`AppError` carrying an explicit
:class:`ErrorKind`.  The HTTP boundary maps kinds to status codes through a
single table, so every endpoint answers with the same ``{error, message}``
shape and nothing leaks a stack trace to the client.
"""

from __future__ import annotations

import enum
import logging
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    CAPACITY = "capacity"
    EVENT_STATUS = "event_status"
    INTERNAL = "internal"


# kind -> (HTTP status, error label)
_ERROR_RESPONSES: dict[ErrorKind, tuple[int, str]] = {
    ErrorKind.VALIDATION: (400, "Validation error"),
    ErrorKind.AUTHENTICATION: (401, "Unauthorized"),
    ErrorKind.AUTHORIZATION: (403, "Forbidden"),
    ErrorKind.NOT_FOUND: (404, "Not found"),
    ErrorKind.CONFLICT: (409, "Conflict"),
    ErrorKind.CAPACITY: (400, "Bad request"),
    ErrorKind.EVENT_STATUS: (400, "Bad request"),
    ErrorKind.INTERNAL: (500, "Internal server error"),
}


class ConfigurationError(RuntimeError):
    """Unrecoverable misconfiguration detected while building the app."""


class AppError(Exception):
    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def status_code(self) -> int:
        return _ERROR_RESPONSES[self.kind][0]

    @property
    def label(self) -> str:
        return _ERROR_RESPONSES[self.kind][1]


class ValidationError(AppError):
    kind = ErrorKind.VALIDATION


class AuthenticationError(AppError):
    kind = ErrorKind.AUTHENTICATION


class TokenExpiredError(AuthenticationError):
    def __init__(self, message: str = "Token expired") -> None:
        super().__init__(message)


class TokenInvalidError(AuthenticationError):
    def __init__(self, message: str = "Invalid token") -> None:
        super().__init__(message)


class AuthorizationError(AppError):
    kind = ErrorKind.AUTHORIZATION


class NotFoundError(AppError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(AppError):
    kind = ErrorKind.CONFLICT


class CapacityError(AppError):
    kind = ErrorKind.CAPACITY

    def __init__(self, available: int, requested: int) -> None:
        super().__init__(
            f"Not enough tickets available. Available: {available}, Requested: {requested}"
        )
        self.available = available
        self.requested = requested


class EventStatusError(AppError):
    kind = ErrorKind.EVENT_STATUS

    def __init__(self, status: str) -> None:
        super().__init__(f"Cannot purchase tickets for {status} event")
        self.status = status


class InternalError(AppError):
    kind = ErrorKind.INTERNAL


def _error_body(label: str, message: str) -> dict[str, str]:
    return {"error": label, "message": message}


async def _app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    if exc.kind is ErrorKind.INTERNAL:
        logger.error("Internal error: %s", exc.message, exc_info=exc.__cause__ or exc)
    headers = {"WWW-Authenticate": "Bearer"} if exc.kind is ErrorKind.AUTHENTICATION else None
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.label, exc.message),
        headers=headers,
    )


async def _validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        details.append({"field": field, "message": err.get("msg", "Invalid value")})
    message = details[0]["message"] if details else "Invalid request"
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    body = _error_body("Validation error", message)
    body["details"] = details  # type: ignore[assignment]
    return JSONResponse(status_code=400, content=body)


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    label = HTTPStatus(exc.status_code).phrase
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(label, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def _integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    logger.error("Database integrity error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=409,
        content=_error_body("Conflict", "Database constraint violation"),
    )


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content=_error_body("Internal server error", "Internal database error"),
    )


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content=_error_body("Internal server error", "An unexpected error occurred"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(AppError, _app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
