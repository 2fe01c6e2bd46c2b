# sophub/middleware/request_logging.py
from __future__ import annotations

import logging
import time
import uuid
from typing import Iterable, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from sophub.services.audit import ip_from_request

logger = logging.getLogger("sophub.request")

QUIET_PATHS: Tuple[str, ...] = (
    "/api/healthz",
    "/api/readyz",
    "/docs",
    "/redoc",
    "/openapi.json",
)


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One log line per request (method, path, status, duration, trace id).
    Every response carries X-Request-ID; health and docs paths are not logged.
    """

    def __init__(self, app, quiet_paths: Iterable[str] = QUIET_PATHS):
        super().__init__(app)
        self.quiet_paths = tuple(quiet_paths)

    def _is_quiet(self, request: Request) -> bool:
        if request.method.upper() == "OPTIONS":
            return True
        return request.url.path.startswith(self.quiet_paths)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        trace_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.trace_id = trace_id
        quiet = self._is_quiet(request)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            if not quiet:
                logger.exception(
                    "request CRASH %s %s ip=%s dur_ms=%s trace_id=%s",
                    request.method,
                    request.url.path,
                    ip_from_request(request) or "unknown",
                    int((time.perf_counter() - started) * 1000),
                    trace_id,
                )
            raise

        response.headers["X-Request-ID"] = trace_id
        if quiet:
            return response

        logger.log(
            level_for_status(response.status_code),
            "request %s %s -> %s ip=%s dur_ms=%s trace_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            ip_from_request(request) or "unknown",
            int((time.perf_counter() - started) * 1000),
            trace_id,
        )
        return response
