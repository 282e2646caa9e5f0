"""Result-based error handling.

Expected failures (a value that will not coerce, a row that is missing, a
query that fails) travel as ``Err[AppError]`` values; route code converts
them to HTTP responses with ``raise_result``. Exceptions are reserved for
faults and for the mapper's own 422/500 signals.

    from core.errors import Ok, Err, raise_result
    from core.database import fetch_one

    result = fetch_one(session, User, user_id)
    match result:
        case Ok(user):
            log.info("user_loaded", user_id=user.id)
        case Err(error):
            log.warning("user_missing", code=error.code.name)
    raise_result(result)
"""
from .types import (
    AppError,
    Err,
    ErrorCode,
    ErrorContext,
    Ok,
    Result,
    from_exception,
    try_result,
)
from .builders import (
    configuration_error,
    db_error,
    internal_error,
    invalid_json,
    invalid_type,
    not_found,
    unparseable,
    validation_error,
)
from .handlers import (
    AppErrorException,
    raise_error,
    raise_result,
    register_error_handlers,
    result_to_response,
)

__all__ = [
    "AppError",
    "AppErrorException",
    "Err",
    "ErrorCode",
    "ErrorContext",
    "Ok",
    "Result",
    "configuration_error",
    "db_error",
    "from_exception",
    "internal_error",
    "invalid_json",
    "invalid_type",
    "not_found",
    "raise_error",
    "raise_result",
    "register_error_handlers",
    "result_to_response",
    "try_result",
    "unparseable",
    "validation_error",
]
