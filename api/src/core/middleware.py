"""Per-request logging context and access log."""

import re
import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.core.context import clear_context, set_course_id, set_request_id, set_trace_id


logger = structlog.get_logger(__name__)

# Matches /v1/courses/<uuid>/... and /ws/courses/<uuid>/...
_COURSE_IN_PATH = re.compile(r"/courses/([0-9a-fA-F-]{36})(?:/|$)")


def extract_course_id(path: str) -> str | None:
    match = _COURSE_IN_PATH.search(path)
    return match.group(1).lower() if match else None


def trace_id_from_headers(request: Request) -> str | None:
    """X-Trace-ID, else the trace-id field of a W3C traceparent."""
    explicit = request.headers.get("X-Trace-ID")
    if explicit:
        return explicit
    fields = request.headers.get("traceparent", "").split("-")
    return fields[1] if len(fields) == 4 else None


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds request, trace and course ids for every log line of a request.

    The request id is echoed back in ``X-Request-ID``.
    """

    def __init__(
        self,
        app: ASGIApp,
        log_requests: bool = True,
        exclude_paths: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.log_requests = log_requests
        self.exclude_paths = tuple(exclude_paths or ("/health",))

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        started = time.perf_counter()
        path = request.url.path

        request_id = set_request_id(request.headers.get("X-Request-ID"))
        request.state.request_id = request_id
        set_trace_id(trace_id_from_headers(request))
        set_course_id(extract_course_id(path))

        access_log = self.log_requests and not path.startswith(self.exclude_paths)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                "request_failed",
                method=request.method,
                path=path,
                error_type=type(e).__name__,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            clear_context()
            raise

        if access_log:
            log = logger.warning if response.status_code >= 400 else logger.info
            log(
                "request_completed",
                method=request.method,
                path=path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
        response.headers["X-Request-ID"] = request_id
        clear_context()
        return response
