"""Monadic Error Handling Types

Result/Either types for deterministic, composable error propagation. The
mapper uses them wherever a failure is an expected outcome that must be
returned as data (coercion attempts, presence lookups) rather than raised.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Generic, NoReturn, TypeVar, Union, final
from uuid import uuid4

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E", bound="AppError")


class ErrorCode(Enum):
    """Error code taxonomy.

    E2xxx: client data the API cannot accept
    E4xxx: persistence
    E9xxx: internal faults and programming mistakes
    """
    # Validation (E2xxx)
    E2000_VALIDATION_GENERIC = 2000
    E2002_INVALID_FORMAT = 2002
    E2004_INVALID_TYPE = 2004
    E2021_INVALID_JSON = 2021
    E2030_DTO_VALIDATION_FAILED = 2030

    # Database (E4xxx)
    E4000_DATABASE_GENERIC = 4000
    E4002_QUERY_FAILED = 4002
    E4010_NOT_FOUND = 4010

    # Internal (E9xxx)
    E9000_INTERNAL_GENERIC = 9000
    E9001_UNEXPECTED_ERROR = 9001
    E9004_CONFIGURATION_ERROR = 9004

    @property
    def http_status(self) -> int:
        if self in _STATUS_OVERRIDES:
            return _STATUS_OVERRIDES[self]
        return _CATEGORY_STATUS.get(self.category, 500)

    @property
    def category(self) -> str:
        return {2: "validation", 4: "database"}.get(self.value // 1000, "internal")


_STATUS_OVERRIDES = {
    ErrorCode.E2030_DTO_VALIDATION_FAILED: 422,
    ErrorCode.E4010_NOT_FOUND: 404,
}

_CATEGORY_STATUS = {"validation": 400, "database": 503}


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """Where and when an error happened; correlation id ties it to a request."""
    correlation_id: str = field(default_factory=lambda: str(uuid4())[:8])
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    origin: str = ""
    request_id: str | None = None


@dataclass(frozen=True, slots=True)
class AppError:
    """Error value carried by Err and AppErrorException.

    ``metadata`` holds structured detail for logs and the response body;
    ``cause`` keeps the original exception out of the serialized form.
    """
    code: ErrorCode
    message: str
    context: ErrorContext = field(default_factory=ErrorContext)
    metadata: dict = field(default_factory=dict)
    cause: Exception | None = None

    def with_context(self, **kwargs) -> AppError:
        """Copy with request tracing fields filled in."""
        context = replace(
            self.context,
            correlation_id=kwargs.get("correlation_id") or self.context.correlation_id,
            origin=kwargs.get("origin", self.context.origin),
            request_id=kwargs.get("request_id", self.context.request_id),
        )
        return replace(self, context=context)

    def to_dict(self) -> dict:
        """Response body: the code in both forms, message and trace fields."""
        body = {
            "code": self.code.name,
            "code_num": self.code.value,
            "category": self.code.category,
            "message": self.message,
            "metadata": self.metadata,
            "correlation_id": self.context.correlation_id,
            "timestamp": self.context.timestamp.isoformat(),
        }
        return {"error": body}

    def __str__(self) -> str:
        return f"{self.code.name}: {self.message} [{self.context.correlation_id}]"


@final
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Success variant of Result."""
    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def unwrap_err(self) -> NoReturn:
        raise ValueError(f"Called unwrap_err on Ok: {self.value!r}")

    def map(self, f: Callable[[T], U]) -> Result[U, AppError]:
        return Ok(f(self.value))

    def and_then(self, f: Callable[[T], Result[U, AppError]]) -> Result[U, AppError]:
        return f(self.value)


@final
@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Failure variant of Result. Carries an AppError."""
    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> NoReturn:
        raise ValueError(f"Called unwrap on Err: {self.error}")

    def unwrap_or(self, default: T) -> T:
        return default

    def unwrap_err(self) -> E:
        return self.error

    def map(self, f: Callable[[T], U]) -> Result[U, E]:
        return self  # type: ignore

    def and_then(self, f: Callable[[T], Result[U, E]]) -> Result[U, E]:
        return self  # type: ignore


Result = Union[Ok[T], Err[E]]


def from_exception(
    exc: Exception,
    code: ErrorCode = ErrorCode.E9001_UNEXPECTED_ERROR,
    message: str | None = None,
    origin: str = "",
    **metadata,
) -> Err[AppError]:
    """Convert exception to Err, keeping it as the cause."""
    return Err(AppError(
        code=code,
        message=message or str(exc),
        context=ErrorContext(origin=origin),
        metadata=metadata,
        cause=exc,
    ))


def try_result(
    f: Callable[[], T],
    code: ErrorCode = ErrorCode.E9001_UNEXPECTED_ERROR,
    origin: str = "",
    catch: tuple[type[Exception], ...] = (Exception,),
) -> Result[T, AppError]:
    """Run ``f`` and wrap its outcome.

    Only exceptions listed in ``catch`` become Err; anything else
    propagates.
    """
    try:
        return Ok(f())
    except catch as e:
        return from_exception(e, code=code, origin=origin)
