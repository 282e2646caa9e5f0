"""Structured Logging for the DTO Mapper

structlog on top of the stdlib ``logging`` tree, so uvicorn, SQLAlchemy and
the mapper all render through one formatter: colored console output in
development, one JSON object per line when ``LOG_JSON`` is set.

Request-scoped fields (correlation id, method, path) are bound with
``bind_context`` by the request middleware and merged into every event.
Raw request payloads reach the logs through validation failures, so values
under credential-like keys are replaced before rendering.
"""
import logging
import sys
from uuid import uuid4

import structlog
from structlog.types import EventDict, Processor

SERVICE_NAME = "dto-mapper"
SERVICE_VERSION = "0.1.0"

REDACTED = "[REDACTED]"

SENSITIVE_KEYS = frozenset({
    "password",
    "password_confirmation",
    "token",
    "secret",
    "authorization",
    "cookie",
})

# Third-party loggers that are noisy below WARNING
_QUIET_LOGGERS = (
    "uvicorn.access",
    "httpcore",
    "httpx",
    "python_multipart",
    "sqlalchemy.pool",
)

_MAX_REDACT_DEPTH = 5


def redact(obj, depth: int = 0):
    """Copy of ``obj`` with values under sensitive keys replaced."""
    if depth > _MAX_REDACT_DEPTH:
        return obj
    if isinstance(obj, dict):
        cleaned = {}
        for key, value in obj.items():
            if isinstance(key, str) and key.lower() in SENSITIVE_KEYS:
                cleaned[key] = REDACTED
            else:
                cleaned[key] = redact(value, depth + 1)
        return cleaned
    if isinstance(obj, (list, tuple)):
        return [redact(item, depth + 1) for item in obj]
    return obj


def _redact_event(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    return redact(event_dict)


def _stamp_service(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("version", SERVICE_VERSION)
    return event_dict


def shared_processors() -> list[Processor]:
    """Chain applied to structlog events and foreign stdlib records alike."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _stamp_service,
        _redact_event,
    ]


def _renderer(json_logs: bool) -> Processor:
    if json_logs:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True,
        exception_formatter=structlog.dev.plain_traceback,
    )


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_sql: bool = False,
) -> None:
    """Route structlog and stdlib logging through one stdout handler.

    Args:
        level: Root log level name; unknown names fall back to INFO.
        json_logs: Render JSON lines instead of colored console output.
        log_sql: Emit SQLAlchemy statements at DEBUG.
    """
    processors = shared_processors()

    structlog.configure(
        processors=[
            *processors,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(json_logs),
        ],
    ))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # uvicorn installs its own handlers; let records propagate to ours
    for name in ("uvicorn", "uvicorn.error"):
        logging.getLogger(name).handlers = []
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.DEBUG if log_sql else logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def generate_correlation_id() -> str:
    return str(uuid4())[:8]


def bind_context(**kwargs) -> None:
    """Attach fields to every event logged in the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


# =============================================================================
# Domain loggers
# =============================================================================

_domain_loggers: dict[str, structlog.stdlib.BoundLogger] = {}


def _domain(name: str) -> structlog.stdlib.BoundLogger:
    if name not in _domain_loggers:
        _domain_loggers[name] = get_logger(f"dto_mapper.{name}")
    return _domain_loggers[name]


def api_logger() -> structlog.stdlib.BoundLogger:
    """Route handlers and request middleware."""
    return _domain("api")


def mapper_logger() -> structlog.stdlib.BoundLogger:
    """Binding, resolution, validation and casting."""
    return _domain("mapper")


def db_logger() -> structlog.stdlib.BoundLogger:
    return _domain("db")
