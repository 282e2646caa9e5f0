"""Mapped-Object Contract

A DTO is a plain class deriving from ``MappableDTO``. Its public fields are
its type annotations; its rules, message overrides and attribute labels
come from three methods:

    class CreateUserDTO(MappableDTO):
        name: str
        age: int
        phone: str | None = None

        def rules(self):
            return {
                "name": "required|string|max:255",
                "age": "required|integer|min:18",
                "phone": ["nullable", "string", "regex:/^[0-9]{9,15}$/"],
            }

        def messages(self):
            return {"age.min": "You must be at least 18."}

        def attributes(self):
            return {"name": "full name"}

Everything the pipeline needs about a type is read once into a
``DtoDescriptor`` and cached for the life of the process.
"""
from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Mapping, Union, get_origin, get_type_hints

from .errors import DtoConfigurationError
from .rules import Rule

RuleItem = Union[str, Rule]
RuleSpec = Union[str, list, tuple]

_UNSET = object()


class MappableDTO(ABC):
    """Base class for every type the resolver can populate."""

    @abstractmethod
    def rules(self) -> dict[str, RuleSpec]:
        """Field-path to constraints (pipe string or list of rules)."""

    def messages(self) -> dict[str, str]:
        return {}

    def attributes(self) -> dict[str, str]:
        return {}

    @classmethod
    def descriptor(cls) -> DtoDescriptor:
        return descriptor_for(cls)

    def is_set(self, name: str) -> bool:
        """True when ``name`` was populated from request data."""
        return name in vars(self)

    def to_dict(self) -> dict[str, Any]:
        """Declared fields that hold a value; unset fields are left out."""
        out = {}
        for name in descriptor_for(type(self)).fields:
            value = getattr(self, name, _UNSET)
            if value is not _UNSET:
                out[name] = value
        return out

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in self.to_dict().items())
        return f"{type(self).__name__}({fields})"


@dataclass(frozen=True, slots=True)
class DtoDescriptor:
    """Cached, normalized view of one DTO type."""
    dto_type: type
    rules: dict[str, tuple[RuleItem, ...]]
    messages: dict[str, str] = field(default_factory=dict)
    attributes: dict[str, str] = field(default_factory=dict)
    fields: dict[str, Any] = field(default_factory=dict)


def is_mappable(candidate: Any) -> bool:
    return isinstance(candidate, type) and issubclass(candidate, MappableDTO)


def normalize_rules(path: str, spec: Any) -> tuple[RuleItem, ...]:
    """Split a pipe string or check a list of rules for one field-path."""
    if isinstance(spec, str):
        return tuple(part for part in (p.strip() for p in spec.split("|")) if part)
    if isinstance(spec, Rule):
        return (spec,)
    if isinstance(spec, (list, tuple)):
        items: list[RuleItem] = []
        for item in spec:
            if isinstance(item, Rule):
                items.append(item)
            elif isinstance(item, str):
                if item.strip():
                    items.append(item.strip())
            else:
                raise DtoConfigurationError(
                    f"Rule for '{path}' must be a string or Rule, got {type(item).__name__}",
                    field=path,
                )
        return tuple(items)
    raise DtoConfigurationError(
        f"Rules for '{path}' must be a string or a list, got {type(spec).__name__}",
        field=path,
    )


def _declared_fields(dto_type: type) -> dict[str, Any]:
    try:
        hints = get_type_hints(dto_type, include_extras=True)
    except (NameError, TypeError) as e:
        raise DtoConfigurationError(
            f"Cannot resolve field annotations of {dto_type.__name__}: {e}",
            dto=dto_type.__name__,
        ) from e
    return {
        name: hint
        for name, hint in hints.items()
        if not name.startswith("_") and get_origin(hint) is not ClassVar and hint is not ClassVar
    }


def _as_str_dict(dto_type: type, method: str, value: Any) -> dict[str, str]:
    if not isinstance(value, Mapping):
        raise DtoConfigurationError(
            f"{dto_type.__name__}.{method}() must return a dict, got {type(value).__name__}",
            dto=dto_type.__name__,
        )
    return {str(k): str(v) for k, v in value.items()}


def _build_descriptor(dto_type: type) -> DtoDescriptor:
    # Rule methods are read off an instance that never ran __init__
    try:
        probe = dto_type.__new__(dto_type)
    except TypeError as e:
        raise DtoConfigurationError(
            f"Cannot instantiate {dto_type.__name__}: {e}", dto=dto_type.__name__
        ) from e
    raw_rules = probe.rules()
    if not isinstance(raw_rules, Mapping):
        raise DtoConfigurationError(
            f"{dto_type.__name__}.rules() must return a dict, got {type(raw_rules).__name__}",
            dto=dto_type.__name__,
        )
    return DtoDescriptor(
        dto_type=dto_type,
        rules={str(path): normalize_rules(str(path), spec) for path, spec in raw_rules.items()},
        messages=_as_str_dict(dto_type, "messages", probe.messages()),
        attributes=_as_str_dict(dto_type, "attributes", probe.attributes()),
        fields=_declared_fields(dto_type),
    )


_descriptors: dict[type, DtoDescriptor] = {}
_descriptor_lock = threading.Lock()


def descriptor_for(dto_type: type) -> DtoDescriptor:
    """Descriptor of ``dto_type``, built on first use."""
    descriptor = _descriptors.get(dto_type)
    if descriptor is not None:
        return descriptor
    if not is_mappable(dto_type):
        raise DtoConfigurationError(
            f"DTO class {getattr(dto_type, '__name__', dto_type)!s} must implement MappableDTO",
        )
    with _descriptor_lock:
        descriptor = _descriptors.get(dto_type)
        if descriptor is None:
            descriptor = _build_descriptor(dto_type)
            _descriptors[dto_type] = descriptor
    return descriptor


def clear_descriptor_cache() -> None:
    with _descriptor_lock:
        _descriptors.clear()
