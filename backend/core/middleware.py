"""Request Middleware for Logging and Tracing

Every request gets a correlation id (taken from ``X-Correlation-ID`` when
the client sends one) that is bound into the structlog context, so mapper
and database events logged while the request is handled carry it too.
Query values are not logged, only their keys: request data reaches the
mapper unvalidated.
"""
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from core.errors.handlers import CORRELATION_HEADER
from core.logging import (
    generate_correlation_id,
    bind_context,
    clear_context,
    api_logger,
)

log = api_logger()

# Status of a response whose DTO failed validation
REJECTED_STATUS = 422


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Binds the correlation context and logs each request's outcome.

    Rejected DTOs are logged as ``request_rejected`` at info level; only
    server faults are logged as errors.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or generate_correlation_id()

        clear_context()
        bind_context(
            correlation_id=correlation_id,
            method=request.method,
            path=request.url.path,
        )

        start = time.perf_counter()
        log.debug(
            "request_started",
            query_keys=sorted(request.query_params.keys()) or None,
            content_type=request.headers.get("Content-Type"),
            content_length=request.headers.get("Content-Length"),
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            log.exception(
                "request_failed",
                error_type=type(exc).__name__,
                duration_ms=_elapsed_ms(start),
            )
            raise
        finally:
            duration_ms = _elapsed_ms(start)

        response.headers[CORRELATION_HEADER] = correlation_id
        status = response.status_code
        if status == REJECTED_STATUS:
            log.info("request_rejected", status=status, duration_ms=duration_ms)
        elif status >= 500:
            log.error("request_completed", status=status, duration_ms=duration_ms)
        else:
            log.info("request_completed", status=status, duration_ms=duration_ms)

        clear_context()
        return response
