"""FastAPI Exception Handlers

Turns the three failure shapes the API produces into JSON responses:

- ``AppErrorException``: an AppError raised from route or mapper code,
  rendered with ``AppError.to_dict`` and the status of its code
- ``DtoValidationError``: a rejected DTO, rendered as the 422 failure
  payload (field, expected/received type, per-field messages)
- anything else: Starlette/FastAPI exceptions mapped onto the taxonomy,
  unexpected exceptions become E9001
"""
from __future__ import annotations

from dataclasses import replace

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.logging import get_logger

from .types import AppError, ErrorCode, ErrorContext

log = get_logger("errors.handlers")

CORRELATION_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"

_STATUS_CODES = {
    400: ErrorCode.E2000_VALIDATION_GENERIC,
    404: ErrorCode.E4010_NOT_FOUND,
    422: ErrorCode.E2000_VALIDATION_GENERIC,
}


class AppErrorException(Exception):
    """Carries an AppError through code that raises instead of returning Result."""

    def __init__(self, error: AppError):
        self.error = error
        super().__init__(str(error))


def _request_context(request: Request, origin: str) -> ErrorContext:
    context = ErrorContext(origin=origin, request_id=request.headers.get(REQUEST_ID_HEADER))
    correlation_id = request.headers.get(CORRELATION_HEADER)
    return replace(context, correlation_id=correlation_id) if correlation_id else context


def result_to_response(error: AppError) -> JSONResponse:
    """Log ``error`` and render it with its code's HTTP status."""
    status_code = error.code.http_status
    emit = log.error if status_code >= 500 else log.warning
    emit(
        "error_response",
        error_code=error.code.name,
        category=error.code.category,
        message=error.message,
        origin=error.context.origin,
        correlation_id=error.context.correlation_id,
        metadata=error.metadata,
    )
    return JSONResponse(status_code=status_code, content=error.to_dict())


async def app_error_handler(request: Request, exc: AppErrorException) -> JSONResponse:
    error = exc.error.with_context(
        correlation_id=request.headers.get(CORRELATION_HEADER),
        request_id=request.headers.get(REQUEST_ID_HEADER),
    )
    return result_to_response(error)


async def dto_validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render a rejected DTO as the 422 failure payload.

    A rejected DTO is the client's mistake and is logged at info level.
    """
    log.info(
        "dto_validation_rejected",
        field=exc.field,
        expected_type=exc.expected_type,
        received_type=exc.received_type,
        error_fields=list(exc.errors),
        correlation_id=request.headers.get(CORRELATION_HEADER, ""),
    )
    return JSONResponse(
        status_code=ErrorCode.E2030_DTO_VALIDATION_FAILED.http_status,
        content=exc.to_payload(),
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Wrap Starlette's HTTP errors (404 routes, 405 methods, explicit raises)."""
    status_code = exc.status_code
    code = _STATUS_CODES.get(status_code) or (
        ErrorCode.E9001_UNEXPECTED_ERROR if status_code >= 500 else ErrorCode.E9000_INTERNAL_GENERIC
    )
    error = AppError(
        code=code,
        message=str(exc.detail) if exc.detail else f"HTTP {status_code}",
        context=_request_context(request, "http"),
    )

    response = result_to_response(error)
    # Not every status has its own code; the response keeps the raised one
    response.status_code = status_code
    return response


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """FastAPI's own parameter validation: path params and non-DTO bodies."""
    details = []
    for err in exc.errors():
        location = [str(part) for part in err.get("loc", ())[1:]]
        details.append({
            "field": ".".join(location) or None,
            "message": err.get("msg", ""),
            "type": err.get("type", ""),
        })

    error = AppError(
        code=ErrorCode.E2000_VALIDATION_GENERIC,
        message="Request validation failed",
        context=_request_context(request, "request_validation"),
        metadata={"details": details},
    )
    return result_to_response(error)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception(
        "unhandled_exception",
        error_type=type(exc).__name__,
        error_message=str(exc),
        path=request.url.path,
    )
    error = AppError(
        code=ErrorCode.E9001_UNEXPECTED_ERROR,
        message="An unexpected error occurred",
        context=_request_context(request, "unhandled"),
        cause=exc,
    )
    return result_to_response(error)


def register_error_handlers(app: FastAPI) -> None:
    """Install every handler above on ``app``."""
    from mapper.errors import DtoValidationError

    app.add_exception_handler(AppErrorException, app_error_handler)
    app.add_exception_handler(DtoValidationError, dto_validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


def raise_error(error: AppError) -> None:
    """Leave a handler early with ``error`` as the response.

        if payload is None:
            raise_error(invalid_json("empty body").error)
    """
    raise AppErrorException(error)


def raise_result(result) -> None:
    """Raise the carried error when ``result`` is Err; no-op for Ok."""
    if result.is_err():
        raise AppErrorException(result.unwrap_err())
