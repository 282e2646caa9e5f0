"""Domain-Specific Error Builders

Ergonomic constructors for typed errors. Each builder creates an AppError
with the appropriate code and context, wrapped in Err. Metadata entries
that are None are dropped.
"""
from .types import AppError, ErrorCode, ErrorContext, Err


def _err(
    code: ErrorCode,
    message: str,
    origin: str = "",
    cause: Exception | None = None,
    **metadata,
) -> Err[AppError]:
    return Err(AppError(
        code=code,
        message=message,
        context=ErrorContext(origin=origin),
        metadata={k: v for k, v in metadata.items() if v is not None},
        cause=cause,
    ))


# =============================================================================
# Validation Errors (E2xxx)
# =============================================================================

def validation_error(
    message: str,
    *,
    code: ErrorCode = ErrorCode.E2000_VALIDATION_GENERIC,
    field: str | None = None,
    origin: str = "",
    **metadata,
) -> Err[AppError]:
    return _err(code, message, origin, field=field, **metadata)


def invalid_type(source_type: str, target_type: str, origin: str = "") -> Err[AppError]:
    """A value of ``source_type`` has no conversion to ``target_type``."""
    return validation_error(
        f"Cannot coerce {source_type} to {target_type}",
        code=ErrorCode.E2004_INVALID_TYPE,
        origin=origin,
        source_type=source_type,
        target_type=target_type,
    )


def unparseable(text: str, target_type: str, origin: str = "") -> Err[AppError]:
    """A string whose content does not parse as ``target_type``."""
    return validation_error(
        f"Cannot coerce '{text[:50]}' to {target_type}",
        code=ErrorCode.E2002_INVALID_FORMAT,
        origin=origin,
        target_type=target_type,
    )


def invalid_json(message: str, origin: str = "") -> Err[AppError]:
    return validation_error(
        f"Invalid JSON: {message}",
        code=ErrorCode.E2021_INVALID_JSON,
        origin=origin,
    )


# =============================================================================
# Database Errors (E4xxx)
# =============================================================================

def db_error(
    message: str,
    *,
    code: ErrorCode = ErrorCode.E4000_DATABASE_GENERIC,
    table: str | None = None,
    query: str | None = None,
    origin: str = "",
    cause: Exception | None = None,
    **metadata,
) -> Err[AppError]:
    # Statements can be long; the start is enough to identify them
    return _err(
        code, message, origin, cause,
        table=table,
        query=query[:200] if query else None,
        **metadata,
    )


def not_found(entity: str, id: int | str | None = None, origin: str = "") -> Err[AppError]:
    message = f"{entity} not found" if id is None else f"{entity} not found: {id}"
    return db_error(
        message,
        code=ErrorCode.E4010_NOT_FOUND,
        entity=entity,
        entity_id=None if id is None else str(id),
        origin=origin,
    )


# =============================================================================
# Internal Errors (E9xxx)
# =============================================================================

def internal_error(
    message: str,
    *,
    code: ErrorCode = ErrorCode.E9001_UNEXPECTED_ERROR,
    origin: str = "",
    cause: Exception | None = None,
    **metadata,
) -> Err[AppError]:
    return _err(code, message, origin, cause, **metadata)


def configuration_error(message: str, origin: str = "", **metadata) -> Err[AppError]:
    """Programming mistake in how a DTO or rule is declared."""
    return internal_error(
        message,
        code=ErrorCode.E9004_CONFIGURATION_ERROR,
        origin=origin,
        **metadata,
    )
