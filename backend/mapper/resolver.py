"""Resolver

Turns one raw data view into a populated DTO:

    check type -> pick view -> validate (optional) -> instantiate -> cast fields

The resolver holds no per-call state, so one instance can serve
concurrent requests.
"""
from __future__ import annotations

from typing import Any, Mapping, TypeVar

from core.config import settings
from core.logging import mapper_logger

from .caster import cast
from .contracts import DtoDescriptor, MappableDTO, descriptor_for
from .errors import DtoValidationError
from .paths import get_path
from .rules import ParsedRule
from .sources import RequestDataSource
from .types import MISSING, ResolutionOptions, ValidationFailure
from .validator import Validator

log = mapper_logger()

D = TypeVar("D", bound=MappableDTO)

TYPE_RULES = ("string", "integer", "numeric", "array", "boolean", "file", "image")

_DEFAULT_OPTIONS = ResolutionOptions()


def expected_type(rules: tuple[Any, ...]) -> str:
    """First type-indicating rule name in a field's declared rules."""
    for item in rules:
        if isinstance(item, ParsedRule):
            name = item.name
        elif isinstance(item, str):
            name = item.split(":", 1)[0].strip().lower()
        else:
            continue
        if name in TYPE_RULES:
            return name
    return "mixed"


def populate(dto_type: type[D], descriptor: DtoDescriptor, data: Mapping[str, Any]) -> D:
    """New instance, without __init__, with every declared field found in data."""
    instance = dto_type.__new__(dto_type)
    for name, declared in descriptor.fields.items():
        if name not in data:
            continue
        setattr(instance, name, cast(data[name], declared))
    return instance


def _failure_error(
    dto_type: type, descriptor: DtoDescriptor, data: Mapping[str, Any], failure: ValidationFailure
) -> DtoValidationError:
    field = failure.first_field or "unknown"
    declared = failure.declared_paths.get(field, field)
    value = get_path(data, field)
    return DtoValidationError(
        field=field,
        value=None if value is MISSING else value,
        expected_type=expected_type(descriptor.rules.get(declared, ())),
        failure=failure,
        dto_type=dto_type,
    )


def resolve(
    dto_type: type[D],
    data: Mapping[str, Any],
    options: ResolutionOptions = _DEFAULT_OPTIONS,
    validator: Validator | None = None,
) -> D:
    """Validate ``data`` against ``dto_type`` and build the instance.

    Raises:
        DtoConfigurationError: ``dto_type`` is not a MappableDTO or its
            rules are malformed.
        DtoValidationError: the data broke at least one rule.
    """
    descriptor = descriptor_for(dto_type)

    if options.validate:
        failure = (validator or Validator()).validate_descriptor(
            descriptor, data, options.stop_on_first_failure
        )
        if failure is not None:
            error = _failure_error(dto_type, descriptor, data, failure)
            log.info(
                "dto_validation_failed",
                dto=dto_type.__name__,
                field=error.field,
                expected_type=error.expected_type,
                received_type=error.received_type,
                failed_rules=failure.failed_rules,
            )
            raise error

    instance = populate(dto_type, descriptor, data)

    if settings.MAPPER_LOG_RESOLUTIONS:
        log.debug(
            "dto_resolved",
            dto=dto_type.__name__,
            validated=options.validate,
            fields=sorted(name for name in descriptor.fields if name in data),
        )
    return instance


class DtoResolver:
    """Resolves DTOs from the views of one request's data source."""

    __slots__ = ("source", "validator")

    def __init__(self, source: RequestDataSource, validator: Validator | None = None):
        self.source = source
        self.validator = validator or Validator()

    def resolve_from_payload(
        self, dto_type: type[D], options: ResolutionOptions = _DEFAULT_OPTIONS
    ) -> D:
        return resolve(dto_type, self.source.body_view(), options, self.validator)

    def resolve_from_query(
        self, dto_type: type[D], options: ResolutionOptions = _DEFAULT_OPTIONS
    ) -> D:
        return resolve(dto_type, self.source.query_view(), options, self.validator)
