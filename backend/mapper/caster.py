"""Type Caster

Best-effort conversion of one raw request value to a field's declared
type. ``cast`` never raises: a value that cannot be converted is handed
back unchanged.

Coercions are CoercionRule objects returning a Result, so union types can
try each alternative in turn and keep the first Ok without using
exceptions for control flow.

Table:
    int   numeric truncation ("42" -> 42, "3.9" -> 3, 3.9 -> 3, True -> 1)
    float numeric parse
    str   string form of a scalar
    bool  "true"/"1"/"yes"/"on"/"y" -> True, "false"/"0"/"no"/"off"/"n"/"" -> False,
          numbers by non-zero; unrecognized tokens become False outside unions
"""
from __future__ import annotations

import collections.abc
import math
import types
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Annotated, Any, Generic, TypeVar, Union, get_args, get_origin

from starlette.datastructures import UploadFile

from core.errors import AppError, Err, Ok, Result, invalid_type, unparseable

from .rules import is_integer, is_numeric, parse_integer

T = TypeVar("T")

_NONE_TYPE = type(None)

_COLLECTION_ORIGINS = (
    list,
    tuple,
    set,
    frozenset,
    dict,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
    collections.abc.Set,
    collections.abc.Mapping,
    collections.abc.MutableMapping,
    collections.abc.Iterable,
    collections.abc.Collection,
)

_COLLECTION_VALUES = (list, tuple, set, frozenset, dict)


def _mismatch(value: Any, target: str) -> Err[AppError]:
    return invalid_type(type(value).__name__, target, origin="mapper.caster")


@dataclass(frozen=True, slots=True)
class CoercionRule(ABC, Generic[T]):
    """Converts a raw scalar into ``target_type`` or explains why not."""

    @property
    @abstractmethod
    def target_type(self) -> type[T]:
        """Type this rule coerces to."""

    @abstractmethod
    def coerce(self, value: Any) -> Result[T, AppError]:
        """Coerce value to target type. Returns Result."""

    def __call__(self, value: Any) -> Result[T, AppError]:
        return self.coerce(value)


@dataclass(frozen=True, slots=True)
class ToInt(CoercionRule[int]):
    """Numeric truncation toward zero."""

    @property
    def target_type(self) -> type[int]:
        return int

    def coerce(self, value: Any) -> Result[int, AppError]:
        if isinstance(value, bool):
            return Ok(int(value))
        if isinstance(value, int):
            return Ok(value)
        if isinstance(value, float):
            if not math.isfinite(value):
                return _mismatch(value, "int")
            return Ok(int(value))
        if isinstance(value, str) and is_numeric(value):
            text = value.strip()
            if is_integer(text):
                parsed = parse_integer(text)
                return parsed if parsed.is_ok() else unparseable(value, "int", origin="mapper.caster")
            number = float(text)
            if math.isfinite(number):
                return Ok(int(number))
        if isinstance(value, str):
            return unparseable(value, "int", origin="mapper.caster")
        return _mismatch(value, "int")


@dataclass(frozen=True, slots=True)
class ToFloat(CoercionRule[float]):
    """Numeric parse."""

    @property
    def target_type(self) -> type[float]:
        return float

    def coerce(self, value: Any) -> Result[float, AppError]:
        if isinstance(value, (bool, int, float)):
            return Ok(float(value))
        if isinstance(value, str) and is_numeric(value):
            number = float(value.strip())
            if math.isfinite(number):
                return Ok(number)
        if isinstance(value, str):
            return unparseable(value, "float", origin="mapper.caster")
        return _mismatch(value, "float")


@dataclass(frozen=True, slots=True)
class ToStr(CoercionRule[str]):
    """String form of a scalar; collections and files are refused."""

    @property
    def target_type(self) -> type[str]:
        return str

    def coerce(self, value: Any) -> Result[str, AppError]:
        if isinstance(value, str):
            return Ok(value)
        if isinstance(value, bool):
            return Ok("true" if value else "false")
        if isinstance(value, (int, float)):
            return Ok(str(value))
        return _mismatch(value, "str")


@dataclass(frozen=True, slots=True)
class ToBool(CoercionRule[bool]):
    """Permissive boolean tokens.

    Truthy: "true", "1", "yes", "on", "y"
    Falsy: "false", "0", "no", "off", "n", ""
    """
    true_values: frozenset[str] = frozenset({"true", "1", "yes", "on", "y"})
    false_values: frozenset[str] = frozenset({"false", "0", "no", "off", "n", ""})

    @property
    def target_type(self) -> type[bool]:
        return bool

    def coerce(self, value: Any) -> Result[bool, AppError]:
        if isinstance(value, bool):
            return Ok(value)
        if isinstance(value, (int, float)):
            return Ok(value != 0)
        if isinstance(value, str):
            lower = value.strip().lower()
            if lower in self.true_values:
                return Ok(True)
            if lower in self.false_values:
                return Ok(False)
            return unparseable(value, "bool", origin="mapper.caster")
        return _mismatch(value, "bool")


COERCIONS: dict[type, CoercionRule] = {
    int: ToInt(),
    float: ToFloat(),
    str: ToStr(),
    bool: ToBool(),
}


# ============================================================================
# Type inspection
# ============================================================================

def unwrap_annotated(declared: Any) -> Any:
    while get_origin(declared) is Annotated:
        declared = get_args(declared)[0]
    return declared


def is_union(declared: Any) -> bool:
    origin = get_origin(declared)
    return origin is Union or origin is types.UnionType


def _accepts_anything(declared: Any) -> bool:
    return declared is Any or declared is object


def is_nullable(declared: Any) -> bool:
    declared = unwrap_annotated(declared)
    if _accepts_anything(declared) or declared is None or declared is _NONE_TYPE:
        return True
    return is_union(declared) and any(is_nullable(arg) for arg in get_args(declared))


def _accepts_blob(declared: Any) -> bool:
    if _accepts_anything(declared):
        return True
    return isinstance(declared, type) and issubclass(UploadFile, declared)


def _is_collection(declared: Any) -> bool:
    origin = get_origin(declared) or declared
    return isinstance(origin, type) and origin in _COLLECTION_ORIGINS


# ============================================================================
# Casting
# ============================================================================

def try_cast(value: Any, declared: Any) -> Result[Any, AppError]:
    """Strict attempt: Ok with the converted value or Err when impossible."""
    declared = unwrap_annotated(declared)

    if is_union(declared):
        for alternative in get_args(declared):
            result = try_cast(value, alternative)
            if result.is_ok():
                return result
        return _mismatch(value, str(declared))

    if value is None:
        return Ok(None) if is_nullable(declared) else _mismatch(value, getattr(declared, "__name__", str(declared)))

    if declared is _NONE_TYPE or declared is None:
        return _mismatch(value, "None")

    if isinstance(value, UploadFile) and _accepts_blob(declared):
        return Ok(value)

    if _is_collection(declared):
        if isinstance(value, _COLLECTION_VALUES):
            return Ok(value)
        return _mismatch(value, getattr(get_origin(declared) or declared, "__name__", "collection"))

    if _accepts_anything(declared):
        return Ok(value)

    # already the exact declared type
    if isinstance(declared, type) and type(value) is declared:
        return Ok(value)

    coercion = COERCIONS.get(declared)
    if coercion is not None:
        return coercion(value)

    if isinstance(declared, type) and isinstance(value, declared):
        return Ok(value)
    return _mismatch(value, getattr(declared, "__name__", str(declared)))


def cast(value: Any, declared: Any) -> Any:
    """Convert ``value`` to ``declared`` where possible; never raises.

    Unions keep the first alternative that converts, or the original value
    when none does. Outside unions a failed conversion leaves the value
    unchanged, except ``bool``, which falls back to False.
    """
    target = unwrap_annotated(declared)
    return try_cast(value, target).unwrap_or(False if target is bool else value)
