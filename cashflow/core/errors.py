"""Application errors and the JSON error envelope."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .logger import get_logger

LOGGER = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class FieldError:
    """A single field level validation message."""

    field: str
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


class AppError(Exception):
    """Base class for errors rendered as ``{"error": {...}}`` responses."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Iterable[FieldError] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: tuple[FieldError, ...] = tuple(details or ())

    def to_payload(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = [detail.as_dict() for detail in self.details]
        return {"error": body}


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, [FieldError(field, message)])


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    @classmethod
    def for_entity(cls, entity: str, identifier: object) -> "NotFoundError":
        return cls(f"{entity} with id '{identifier}' not found")


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class DatabaseError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "DATABASE_ERROR"


def error_response(
    status_code: int,
    code: str,
    message: str,
    details: Iterable[FieldError] | None = None,
) -> JSONResponse:
    body: dict[str, Any] = {"code": code, "message": message}
    details = list(details or ())
    if details:
        body["details"] = [detail.as_dict() for detail in details]
    return JSONResponse(status_code=status_code, content={"error": body})


def _field_name(location: tuple[Any, ...]) -> str:
    # Drop the "body"/"query"/"path" prefix FastAPI puts in front of the field path.
    parts = [str(part) for part in location if part not in {"body", "query", "path", "form"}]
    return ".".join(parts) or "request"


async def _handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        LOGGER.info(
            "%s %s rejected with %s: %s",
            request.method,
            request.url.path,
            exc.code,
            exc.message,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        FieldError(_field_name(tuple(item.get("loc", ()))), str(item.get("msg", "Invalid value")))
        for item in exc.errors()
    ]
    LOGGER.info("Request validation failed for %s %s", request.method, request.url.path)
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        ValidationError.code,
        "Request validation failed",
        details,
    )


async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    codes = {
        status.HTTP_401_UNAUTHORIZED: UnauthorizedError.code,
        status.HTTP_403_FORBIDDEN: ForbiddenError.code,
        status.HTTP_404_NOT_FOUND: NotFoundError.code,
        status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
        status.HTTP_409_CONFLICT: ConflictError.code,
    }
    code = codes.get(exc.status_code, "HTTP_ERROR")
    return error_response(exc.status_code, code, str(exc.detail))


async def _handle_database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    LOGGER.exception("Database error on %s %s", request.method, request.url.path)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        DatabaseError.code,
        "A database error occurred",
    )


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    LOGGER.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR",
        "An unexpected error occurred",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure as the JSON error envelope."""

    app.add_exception_handler(AppError, _handle_app_error)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)
    app.add_exception_handler(SQLAlchemyError, _handle_database_error)
    app.add_exception_handler(Exception, _handle_unexpected)


__all__ = [
    "AppError",
    "ConflictError",
    "DatabaseError",
    "FieldError",
    "ForbiddenError",
    "NotFoundError",
    "UnauthorizedError",
    "ValidationError",
    "error_response",
    "register_exception_handlers",
]
