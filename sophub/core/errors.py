# sophub/core/errors.py
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

log = logging.getLogger("sophub.errors")

CORRELATION_HEADERS = ("x-request-id", "x-correlation-id", "x-trace-id")


# -----------------------------
# Trace / request id helpers
# -----------------------------
def ensure_trace_id(request: Request) -> str:
    """
    Return a stable trace_id for this request: the value the request logger
    stored on request.state, an inbound correlation header, or a fresh id.
    """
    val = getattr(request.state, "trace_id", None)
    if val:
        return str(val)

    for h in CORRELATION_HEADERS:
        v = request.headers.get(h)
        if v:
            request.state.trace_id = v
            return v

    new_id = uuid.uuid4().hex
    request.state.trace_id = new_id
    return new_id


def error_payload(
    *,
    message: str,
    typ: str,
    status: int,
    trace_id: str,
    details: Optional[Any] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "ok": False,
        "error": {
            "type": typ,
            "message": message,
            "status": status,
            "trace_id": trace_id,
        },
    }
    if details is not None:
        body["error"]["details"] = details
    return body


def _json_error(request: Request, status_code: int, typ: str, message: str, details=None, headers=None):
    trace_id = ensure_trace_id(request)
    out_headers = dict(headers or {})
    out_headers["X-Request-ID"] = trace_id
    return JSONResponse(
        status_code=status_code,
        headers=out_headers,
        content=error_payload(
            message=message,
            typ=typ,
            status=status_code,
            trace_id=trace_id,
            details=details,
        ),
    )


def upstream_message(exc: SQLAlchemyError) -> str:
    """Human-readable text of a database error (driver message when available)."""
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


# -----------------------------
# Install / register handlers
# -----------------------------
def register_exception_handlers(app: FastAPI) -> None:
    """
    Registers consistent JSON error handlers:
      - HTTPException          → its status (400 validation, 404 not found, 501 export, ...)
      - RequestValidationError → 422
      - SQLAlchemyError        → 503, upstream message surfaced verbatim
      - anything else          → 500
    """

    @app.exception_handler(HTTPException)
    async def http_exc_handler(request: Request, exc: HTTPException):
        status_code = int(exc.status_code)
        message = exc.detail if isinstance(exc.detail, str) else "HTTP error"
        details = exc.detail if isinstance(exc.detail, dict) else None

        level = logging.ERROR if status_code >= 500 else logging.WARNING
        log.log(
            level,
            "HTTPException %s %s -> %s | trace_id=%s | detail=%r",
            request.method,
            request.url.path,
            status_code,
            ensure_trace_id(request),
            exc.detail,
        )
        return _json_error(request, status_code, "http_error", message, details, exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        log.warning(
            "ValidationError %s %s -> 422 | trace_id=%s | errors=%s",
            request.method,
            request.url.path,
            ensure_trace_id(request),
            errors,
        )
        return _json_error(
            request, 422, "validation_error", "Validation failed.", jsonable_errors(errors)
        )

    @app.exception_handler(SQLAlchemyError)
    async def upstream_exc_handler(request: Request, exc: SQLAlchemyError):
        message = upstream_message(exc)
        log.error(
            "Database error %s %s -> 503 | trace_id=%s | %s",
            request.method,
            request.url.path,
            ensure_trace_id(request),
            message,
        )
        return _json_error(request, 503, "upstream_error", message)

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):
        # Full traceback to server logs; generic message to client
        log.exception(
            "Unhandled exception %s %s -> 500 | trace_id=%s",
            request.method,
            request.url.path,
            ensure_trace_id(request),
        )
        return _json_error(request, 500, "internal_error", "Internal server error.")


def jsonable_errors(errors):
    """pydantic error dicts may carry exception objects under 'ctx'."""
    out = []
    for err in errors:
        item = dict(err)
        ctx = item.get("ctx")
        if isinstance(ctx, dict):
            item["ctx"] = {k: str(v) for k, v in ctx.items()}
        out.append(item)
    return out
