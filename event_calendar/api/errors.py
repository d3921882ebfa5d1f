from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from event_calendar.services.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ServiceError,
    StorageUnavailableError,
    ValidationError,
)

logger = structlog.get_logger()


def envelope(
    success: bool,
    message: str | None = None,
    data: Any = None,
    errors: list[dict[str, str]] | None = None,
    count: int | None = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {"success": success}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    if errors is not None:
        body["errors"] = errors
    if count is not None:
        body["count"] = count
    return body


def status_for_service_error(err: ServiceError) -> int:
    if isinstance(err, ValidationError):
        return 400
    if isinstance(err, ForbiddenError):
        return 403
    if isinstance(err, NotFoundError):
        return 404
    if isinstance(err, ConflictError):
        return 409
    if isinstance(err, StorageUnavailableError):
        return 503
    return 500


def response_from_service_error(err: ServiceError) -> JSONResponse:
    status = status_for_service_error(err)
    errors = [e.as_dict() for e in err.errors] if isinstance(err, ValidationError) else None
    message = err.message if status != 500 else "Internal server error"
    return JSONResponse(status_code=status, content=envelope(False, message, errors=errors))


async def _service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if isinstance(exc, StorageUnavailableError):
        logger.warning("storage_unavailable", code=exc.code, path=request.url.path)
    return response_from_service_error(exc)


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=envelope(False, message),
        headers=getattr(exc, "headers", None),
    )


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc) or "request", "message": err.get("msg", "invalid")})
    return JSONResponse(
        status_code=400,
        content=envelope(False, "Validation failed", errors=errors),
    )


async def _database_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("database_unavailable", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=503,
        content=envelope(False, "Database connection not available. Please try again later."),
    )


async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", method=request.method, path=request.url.path)
    return JSONResponse(status_code=500, content=envelope(False, "Internal server error"))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, _service_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    for exc_type in (OperationalError, InterfaceError, DisconnectionError):
        app.add_exception_handler(exc_type, _database_unavailable_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)
