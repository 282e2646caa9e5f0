"""Mapper Exceptions

Two failure kinds leave the pipeline:

- DtoValidationError: the client sent data that broke the DTO's rules.
  Rendered as a 422 with the field-level error map.
- DtoConfigurationError: the DTO or its rules are declared wrongly.
  A programming mistake, rendered as a 500 through the AppError handler.
"""
from __future__ import annotations

from typing import Any

from starlette.datastructures import UploadFile

from core.errors import AppErrorException, configuration_error

from .types import ValidationFailure


def describe_type(value: Any) -> str:
    """Name the runtime type of a raw value in rule vocabulary."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple, dict)):
        return "array"
    if isinstance(value, UploadFile):
        return "UploadFile"
    return type(value).__name__


class DtoValidationError(Exception):
    """Raised once per failed resolution with the full error map."""

    def __init__(
        self,
        field: str,
        value: Any,
        expected_type: str,
        failure: ValidationFailure,
        dto_type: type | None = None,
    ):
        self.field = field
        self.value = value
        self.expected_type = expected_type
        self.received_type = describe_type(value)
        self.failure = failure
        self.dto_type = dto_type
        super().__init__(
            f'Validation failed for field "{field}". '
            f"Expected type: {expected_type}, received: {self.received_type}"
        )

    @property
    def message(self) -> str:
        return str(self)

    @property
    def errors(self) -> dict[str, list[str]]:
        return self.failure.errors

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the 422 response."""
        return {
            "message": self.message,
            "errors": self.errors,
            "field": self.field,
            "expected_type": self.expected_type,
            "received_type": self.received_type,
        }


class DtoConfigurationError(AppErrorException):
    """A DTO type, rule or binding is declared incorrectly."""

    def __init__(self, message: str, **metadata):
        super().__init__(configuration_error(message, origin="mapper", **metadata).error)
