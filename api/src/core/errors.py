"""JSON error envelope shared by every handler.

All errors leave the API as::

    {"error": true, "message": ..., "status_code": ..., "request_id": ...}

Stack traces and driver messages are logged, never returned.
"""

from typing import Any

import structlog
from cassandra import DriverException, OperationTimedOut
from cassandra.cluster import NoHostAvailable
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.core.context import get_request_id


logger = structlog.get_logger(__name__)

DATABASE_UNAVAILABLE = "Banco de dados indisponivel. Tente novamente."
UNEXPECTED_ERROR = "An unexpected error occurred. Please try again later."


def error_response(
    request: Request,
    status_code: int,
    message: Any,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> ORJSONResponse:
    request_id = getattr(request.state, "request_id", None) or get_request_id()
    return ORJSONResponse(
        status_code=status_code,
        content={
            "error": True,
            "message": message,
            "status_code": status_code,
            "request_id": request_id,
            **extra,
        },
        headers=headers,
    )


async def http_error(request: Request, exc: StarletteHTTPException) -> ORJSONResponse:
    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=str(exc.detail),
        path=request.url.path,
    )
    message = exc.detail
    if exc.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR:
        message = "Internal server error"
    elif not isinstance(message, dict):
        message = str(message)
    return error_response(
        request, exc.status_code, message, headers=getattr(exc, "headers", None)
    )


async def validation_error(
    request: Request, exc: RequestValidationError
) -> ORJSONResponse:
    errors = exc.errors()
    logger.warning("validation_error", errors=errors, path=request.url.path)
    return error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        details=[
            {
                "field": ".".join(str(part) for part in err.get("loc", [])),
                "message": err.get("msg", "Invalid value"),
            }
            for err in errors
        ],
    )


async def database_error(request: Request, exc: Exception) -> ORJSONResponse:
    """Cassandra unreachable or timed out: retryable, so 503."""
    logger.error(
        "database_unavailable",
        error_type=type(exc).__name__,
        error_message=str(exc),
        path=request.url.path,
    )
    return error_response(request, status.HTTP_503_SERVICE_UNAVAILABLE, DATABASE_UNAVAILABLE)


async def unexpected_error(request: Request, exc: Exception) -> ORJSONResponse:
    logger.exception(
        "unhandled_exception",
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
    )
    return error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, UNEXPECTED_ERROR)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_error)
    app.add_exception_handler(RequestValidationError, validation_error)
    for driver_error in (DriverException, OperationTimedOut, NoHostAvailable):
        app.add_exception_handler(driver_error, database_error)
    app.add_exception_handler(Exception, unexpected_error)
