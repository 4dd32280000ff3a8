"""
FastAPI exception handlers and middleware.

Converts all AppError subclasses, rate-limit rejections and unexpected
exceptions into the same JSON error envelope. Injects correlation IDs
into every request and records request metrics.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Awaitable, Callable

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from ramsflow.config.logging_config import bind_request_context
from ramsflow.core.errors import AppError, ErrorCode
from ramsflow.core.metrics import REQUEST_COUNT, REQUEST_DURATION

_log = structlog.get_logger(__name__)

# Probes and scrapes are not worth a log line each
_QUIET_PATHS = frozenset({"/health", "/metrics"})


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Injects a correlation ID into every request/response cycle.

    The ID is taken from the ``X-Correlation-ID`` request header if
    present; otherwise a new UUID4 is generated. It is bound to the
    structlog context and copied into every audit event written while
    the request runs.
    """

    HEADER = "X-Correlation-ID"

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        correlation_id = request.headers.get(self.HEADER) or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        bind_request_context(
            correlation_id=correlation_id,
            method=request.method,
            path=request.url.path,
        )
        request.state.correlation_id = correlation_id

        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start

        route = getattr(request.scope.get("route"), "path", request.url.path)
        REQUEST_COUNT.labels(method=request.method, status=str(response.status_code)).inc()
        REQUEST_DURATION.labels(method=request.method, route=route).observe(elapsed)

        response.headers[self.HEADER] = correlation_id
        if request.url.path not in _QUIET_PATHS:
            _log.info(
                "request_completed",
                status_code=response.status_code,
                duration_ms=int(elapsed * 1000),
            )
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds security-relevant HTTP response headers to every response."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store"
        return response


# ── Exception handlers ────────────────────────────────────────────────── #


def _error_response(request: Request, status_code: int, content: dict) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=content,
        headers={"X-Correlation-ID": getattr(request.state, "correlation_id", "")},
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Convert a domain AppError to a structured JSON response."""
    log = _log.error if exc.http_status >= 500 else _log.warning
    log(
        "application_error",
        error_code=exc.code.value,
        message=exc.message,
        http_status=exc.http_status,
    )
    return _error_response(request, exc.http_status, exc.to_dict())


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    _log.warning("rate_limited", limit=str(exc.detail))
    error = AppError(
        ErrorCode.RATE_LIMITED,
        "Too many requests",
        http_status=429,
        detail={"limit": str(exc.detail)},
    )
    return _error_response(request, 429, error.to_dict())


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all handler for unexpected exceptions.

    Never leaks internal detail to the client.
    """
    _log.exception("unhandled_exception", exc_info=exc)
    error = AppError(ErrorCode.INTERNAL_ERROR, "An unexpected internal error occurred.")
    return _error_response(request, 500, error.to_dict())
