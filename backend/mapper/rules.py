"""Rule Capability

Parses constraint strings such as ``"required|integer|min:18"`` and
evaluates them against raw request data.

The validator only depends on the ``RuleEvaluator`` protocol; ``RuleBook``
is the default implementation and covers the rule vocabulary the example
DTOs use:

- presence: required, required_if, required_unless, required_with,
  required_without, present, filled, accepted
- flow: nullable, sometimes, bail
- type: string, integer, numeric, boolean, array, file, image
- format: email, url, uuid, alpha, alpha_num, alpha_dash, regex, not_regex,
  digits, digits_between, date, date_format
- membership: in, not_in, mimes, mimetypes
- size: min, max, between, size, gt, gte, lt, lte
- comparison: confirmed, same, different, after, after_or_equal, before,
  before_or_equal
- database: unique, exists (through a ``PresenceVerifier``)

Custom checks subclass ``Rule`` and go straight into a rule list.
"""
from __future__ import annotations

import math
import mimetypes
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from typing import Any, Callable, Mapping, Protocol, runtime_checkable
from urllib.parse import urlparse

from starlette.datastructures import UploadFile

from core.database import count_where
from core.errors import AppError, Result, raise_result, try_result

from .errors import DtoConfigurationError
from .paths import get_path, split_path
from .types import MISSING

# Rules that steer evaluation and never fail on their own
META_RULES = frozenset({"nullable", "sometimes", "bail"})

IMPLICIT_RULES = frozenset({
    "required",
    "required_if",
    "required_unless",
    "required_with",
    "required_without",
    "present",
    "filled",
    "accepted",
})

NUMERIC_RULES = frozenset({"numeric", "integer"})

# Rules whose parameter is taken whole instead of split on commas
_UNSPLIT_PARAMS = frozenset({"regex", "not_regex", "date_format"})

_IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "bmp", "svg", "webp"})

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
_UUID_RE = re.compile(r"^[\da-fA-F]{8}-[\da-fA-F]{4}-[\da-fA-F]{4}-[\da-fA-F]{4}-[\da-fA-F]{12}$")
_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_NUMERIC_RE = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")
_ALPHA_DASH_RE = re.compile(r"^[\w-]+$")
_PLACEHOLDER_RE = re.compile(r":([a-z_]+)")

_TRUE_TOKENS = frozenset({"true", "1", "yes", "on"})
_BOOLEAN_TOKENS = frozenset({"true", "false", "0", "1"})

_DATE_FORMAT_TOKENS = {
    "Y": "%Y", "y": "%y", "m": "%m", "n": "%m", "d": "%d", "j": "%d",
    "H": "%H", "G": "%H", "i": "%M", "s": "%S", "u": "%f",
    "D": "%a", "l": "%A", "M": "%b", "F": "%B", "A": "%p", "a": "%p",
    "P": "%z", "O": "%z", "T": "%Z",
}


# ============================================================================
# Rule Types
# ============================================================================

class Rule(ABC):
    """Custom rule object usable directly inside a DTO's rule list.

    Usage:
        class Uppercase(Rule):
            name = "uppercase"

            def passes(self, attribute, value, data):
                return isinstance(value, str) and value.isupper()

            def message(self):
                return "The :attribute must be uppercase."
    """

    name: str = "custom"
    implicit: bool = False

    @abstractmethod
    def passes(self, attribute: str, value: Any, data: Mapping[str, Any]) -> bool:
        """True when ``value`` at ``attribute`` is acceptable."""

    def message(self) -> str:
        return "The :attribute is invalid."


@dataclass(frozen=True, slots=True)
class ParsedRule:
    """One constraint of a field: name, parameters, or a custom Rule."""
    name: str
    params: tuple[str, ...] = ()
    custom: Rule | None = field(default=None, compare=False)

    def __str__(self) -> str:
        if self.params:
            return f"{self.name}:{','.join(self.params)}"
        return self.name


@dataclass(frozen=True, slots=True)
class RuleContext:
    """What a rule may know beyond its own value.

    ``label`` is the display name of the field being checked, ``labels``
    resolves display names of other fields, ``has_rule`` asks whether
    another field carries a rule. ``template`` is a message override that
    replaces the rule's default message.
    """
    path: str
    declared_path: str
    field_rules: tuple[ParsedRule, ...] = ()
    label: str = ""
    labels: Callable[[str], str] = str
    has_rule: Callable[[str, str], bool] = lambda path, rule: False
    template: str | None = None

    def field_has(self, *names: str) -> bool:
        return any(rule.name in names for rule in self.field_rules)


@runtime_checkable
class RuleEvaluator(Protocol):
    """What the validator needs from a rule capability."""

    def parse(self, constraint: str | Rule) -> ParsedRule: ...

    def is_implicit(self, rule: ParsedRule) -> bool: ...

    def passes(
        self, rule: ParsedRule, path: str, value: Any, data: Mapping[str, Any], context: RuleContext
    ) -> bool: ...

    def message(
        self, rule: ParsedRule, path: str, value: Any, data: Mapping[str, Any], context: RuleContext
    ) -> str: ...


class PresenceVerifier(Protocol):
    """Counts matching rows for the ``unique`` and ``exists`` rules."""

    def count(
        self,
        table: str,
        column: str,
        value: Any,
        excluding: dict[str, Any] | None = None,
    ) -> Result[int, AppError]: ...


class SqlPresenceVerifier:
    """PresenceVerifier backed by the application database."""

    def count(
        self,
        table: str,
        column: str,
        value: Any,
        excluding: dict[str, Any] | None = None,
    ) -> Result[int, AppError]:
        return count_where(table, {column: value}, excluding)


# ============================================================================
# Value Helpers
# ============================================================================

def is_empty(value: Any) -> bool:
    """Absent, null, blank string, empty collection or file without a name."""
    if value is MISSING or value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    if isinstance(value, UploadFile):
        return not value.filename
    return False


def is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    return isinstance(value, str) and bool(_NUMERIC_RE.match(value))


def is_integer(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return value.is_integer()
    return isinstance(value, str) and bool(_INTEGER_RE.match(value.strip()))


def parse_integer(text: str) -> Result[int, AppError]:
    """Parse an integer string; digit strings past the interpreter's conversion limit are Err."""
    return try_result(lambda: int(text), origin="mapper.rules", catch=(ValueError,))


def to_number(value: Any) -> int | float:
    """Numeric value of ``value``; NaN when it has no finite value, so every comparison fails."""
    if isinstance(value, (int, float)):
        return value
    text = value.strip()
    if _INTEGER_RE.match(text):
        return parse_integer(text).unwrap_or(math.nan)
    number = float(text)
    return number if math.isfinite(number) else math.nan


def display(value: Any) -> str:
    """Render a raw value for use inside a message."""
    if value is MISSING or value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ", ".join(display(item) for item in value)
    if isinstance(value, UploadFile):
        return value.filename or ""
    return str(value)


def file_size_kb(upload: UploadFile) -> float:
    size = upload.size
    if size is None:
        handle = upload.file
        position = handle.tell()
        handle.seek(0, 2)
        size = handle.tell()
        handle.seek(position)
    return size / 1024


def file_extension(upload: UploadFile) -> str:
    name = upload.filename or ""
    return name.rsplit(".", 1)[-1].lower() if "." in name else ""


def parse_date(value: Any) -> datetime | None:
    """Best-effort date parsing into an aware UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time())
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        now = datetime.now(timezone.utc)
        relative = {
            "now": now,
            "today": now.replace(hour=0, minute=0, second=0, microsecond=0),
        }
        relative["tomorrow"] = relative["today"] + timedelta(days=1)
        relative["yesterday"] = relative["today"] - timedelta(days=1)
        if text.lower() in relative:
            return relative[text.lower()]
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@lru_cache(maxsize=256)
def compile_pattern(expression: str) -> re.Pattern:
    """Compile a delimited pattern such as ``/^[0-9]{9,15}$/i``."""
    if len(expression) < 2 or expression[0].isalnum() or expression[0] == "\\":
        raise DtoConfigurationError(f"Regex rule needs a delimited pattern, got {expression!r}")
    delimiter = expression[0]
    end = expression.rfind(delimiter)
    if end == 0:
        raise DtoConfigurationError(f"Regex rule pattern {expression!r} is not closed")

    flags = 0
    for modifier in expression[end + 1:]:
        flags |= {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}.get(modifier, 0)
    try:
        return re.compile(expression[1:end], flags)
    except re.error as e:
        raise DtoConfigurationError(f"Invalid regex rule {expression!r}: {e}") from e


@lru_cache(maxsize=64)
def strptime_pattern(fmt: str) -> str:
    """Translate a ``date_format`` parameter into a strptime pattern."""
    out = []
    for char in fmt:
        if char in _DATE_FORMAT_TOKENS:
            out.append(_DATE_FORMAT_TOKENS[char])
        elif char == "%":
            out.append("%%")
        else:
            out.append(char)
    return "".join(out)


# ============================================================================
# Rule Book
# ============================================================================

Check = Callable[["RuleBook", ParsedRule, str, Any, Mapping[str, Any], RuleContext], bool]

_CHECKS: dict[str, Check] = {}


def _check(*names: str):
    """Register a predicate for one or more rule names."""
    def register(fn: Check) -> Check:
        for name in names:
            _CHECKS[name] = fn
        return fn
    return register


_SIZED = {
    "numeric": "",
    "file": " kilobytes",
    "string": " characters",
}

MESSAGES: dict[str, str | dict[str, str]] = {
    "accepted": "The :attribute must be accepted.",
    "after": "The :attribute must be a date after :date.",
    "after_or_equal": "The :attribute must be a date after or equal to :date.",
    "alpha": "The :attribute must only contain letters.",
    "alpha_dash": "The :attribute must only contain letters, numbers, dashes and underscores.",
    "alpha_num": "The :attribute must only contain letters and numbers.",
    "array": "The :attribute must be an array.",
    "before": "The :attribute must be a date before :date.",
    "before_or_equal": "The :attribute must be a date before or equal to :date.",
    "between": {
        **{kind: f"The :attribute must be between :min and :max{unit}." for kind, unit in _SIZED.items()},
        "array": "The :attribute must have between :min and :max items.",
    },
    "boolean": "The :attribute field must be true or false.",
    "confirmed": "The :attribute confirmation does not match.",
    "date": "The :attribute is not a valid date.",
    "date_format": "The :attribute does not match the format :format.",
    "different": "The :attribute and :other must be different.",
    "digits": "The :attribute must be :digits digits.",
    "digits_between": "The :attribute must be between :min and :max digits.",
    "email": "The :attribute must be a valid email address.",
    "exists": "The selected :attribute is invalid.",
    "file": "The :attribute must be a file.",
    "filled": "The :attribute field must have a value.",
    "gt": {
        **{kind: f"The :attribute must be greater than :value{unit}." for kind, unit in _SIZED.items()},
        "array": "The :attribute must have more than :value items.",
    },
    "gte": {
        **{kind: f"The :attribute must be greater than or equal to :value{unit}." for kind, unit in _SIZED.items()},
        "array": "The :attribute must have :value items or more.",
    },
    "image": "The :attribute must be an image.",
    "in": "The selected :attribute is invalid.",
    "integer": "The :attribute must be an integer.",
    "lt": {
        **{kind: f"The :attribute must be less than :value{unit}." for kind, unit in _SIZED.items()},
        "array": "The :attribute must have less than :value items.",
    },
    "lte": {
        **{kind: f"The :attribute must be less than or equal to :value{unit}." for kind, unit in _SIZED.items()},
        "array": "The :attribute must not have more than :value items.",
    },
    "max": {
        **{kind: f"The :attribute must not be greater than :max{unit}." for kind, unit in _SIZED.items()},
        "array": "The :attribute must not have more than :max items.",
    },
    "mimes": "The :attribute must be a file of type: :values.",
    "mimetypes": "The :attribute must be a file of type: :values.",
    "min": {
        **{kind: f"The :attribute must be at least :min{unit}." for kind, unit in _SIZED.items()},
        "array": "The :attribute must have at least :min items.",
    },
    "not_in": "The selected :attribute is invalid.",
    "not_regex": "The :attribute format is invalid.",
    "numeric": "The :attribute must be a number.",
    "present": "The :attribute field must be present.",
    "regex": "The :attribute format is invalid.",
    "required": "The :attribute field is required.",
    "required_if": "The :attribute field is required when :other is :value.",
    "required_unless": "The :attribute field is required unless :other is in :values.",
    "required_with": "The :attribute field is required when :values is present.",
    "required_without": "The :attribute field is required when :values is not present.",
    "same": "The :attribute and :other must match.",
    "size": {
        **{kind: f"The :attribute must be :size{unit}." for kind, unit in _SIZED.items()},
        "array": "The :attribute must contain :size items.",
    },
    "string": "The :attribute must be a string.",
    "unique": "The :attribute has already been taken.",
    "url": "The :attribute must be a valid URL.",
    "uuid": "The :attribute must be a valid UUID.",
}


class RuleBook:
    """Default RuleEvaluator.

    ``verifier`` backs ``unique``/``exists``; without one those rules raise
    DtoConfigurationError when they are evaluated.
    """

    def __init__(self, verifier: PresenceVerifier | None = None):
        self.verifier = verifier

    # --- parsing -----------------------------------------------------------

    def parse(self, constraint: str | Rule) -> ParsedRule:
        if isinstance(constraint, Rule):
            return ParsedRule(name=constraint.name, custom=constraint)
        if not isinstance(constraint, str):
            raise DtoConfigurationError(
                f"Rule must be a string or Rule instance, got {type(constraint).__name__}"
            )
        return _parse_string(constraint)

    def is_implicit(self, rule: ParsedRule) -> bool:
        if rule.custom is not None:
            return rule.custom.implicit
        return rule.name in IMPLICIT_RULES

    # --- evaluation --------------------------------------------------------

    def passes(
        self, rule: ParsedRule, path: str, value: Any, data: Mapping[str, Any], context: RuleContext
    ) -> bool:
        if rule.custom is not None:
            return bool(rule.custom.passes(path, None if value is MISSING else value, data))
        if rule.name in META_RULES:
            return True
        return _CHECKS[rule.name](self, rule, path, value, data, context)

    def message(
        self, rule: ParsedRule, path: str, value: Any, data: Mapping[str, Any], context: RuleContext
    ) -> str:
        template = context.template
        if template is None:
            template = rule.custom.message() if rule.custom is not None else self.default_template(rule, value, context)
        replacements = self.replacements(rule, value, data, context)
        return _PLACEHOLDER_RE.sub(lambda m: replacements.get(m.group(1), m.group(0)), template)

    def default_template(self, rule: ParsedRule, value: Any, context: RuleContext) -> str:
        template = MESSAGES.get(rule.name, "The :attribute is invalid.")
        if isinstance(template, dict):
            return template[self.size_kind(value, context)]
        return template

    def replacements(
        self, rule: ParsedRule, value: Any, data: Mapping[str, Any], context: RuleContext
    ) -> dict[str, str]:
        params = rule.params
        out = {"attribute": context.label, "input": display(value)}
        name = rule.name

        if name in ("min", "max"):
            out[name] = params[0] if params else ""
        elif name in ("between", "digits_between"):
            out["min"], out["max"] = (params + ("", ""))[:2]
        elif name == "size":
            out["size"] = params[0] if params else ""
        elif name == "digits":
            out["digits"] = params[0] if params else ""
        elif name in ("in", "not_in", "mimes", "mimetypes"):
            out["values"] = ", ".join(params)
        elif name in ("required_with", "required_without"):
            out["values"] = " / ".join(context.labels(p) for p in params)
        elif name in ("required_if", "required_unless", "same", "different"):
            other = params[0] if params else ""
            out["other"] = context.labels(other)
            out["value"] = display(get_path(data, other))
            out["values"] = ", ".join(params[1:])
        elif name in ("gt", "gte", "lt", "lte"):
            other = get_path(data, params[0]) if params else MISSING
            if other is MISSING or other is None:
                out["value"] = params[0] if params else ""
            else:
                out["value"] = display(self.size_of(other, context))
        elif name in ("after", "after_or_equal", "before", "before_or_equal"):
            target = params[0] if params else ""
            out["date"] = target if parse_date(target) is not None else context.labels(target)
        elif name == "date_format":
            out["format"] = params[0] if params else ""
        return out

    # --- sizes -------------------------------------------------------------

    def size_kind(self, value: Any, context: RuleContext) -> str:
        if context.field_has(*NUMERIC_RULES):
            return "numeric"
        if context.field_has("array") or isinstance(value, (list, tuple, dict)):
            return "array"
        if isinstance(value, UploadFile):
            return "file"
        return "string"

    def size_of(self, value: Any, context: RuleContext) -> int | float:
        if context.field_has(*NUMERIC_RULES) and is_numeric(value):
            return to_number(value)
        if isinstance(value, (list, tuple, dict)):
            return len(value)
        if isinstance(value, UploadFile):
            return file_size_kb(value)
        return len(display(value))

    # --- presence ----------------------------------------------------------

    def require_verifier(self, rule: ParsedRule) -> PresenceVerifier:
        if self.verifier is None:
            raise DtoConfigurationError(
                f"Rule '{rule.name}' needs a presence verifier; construct RuleBook(verifier=...)",
                rule=str(rule),
            )
        return self.verifier


@lru_cache(maxsize=1024)
def _parse_string(constraint: str) -> ParsedRule:
    text = constraint.strip()
    name, _, raw_params = text.partition(":")
    name = name.strip().lower()
    if not name:
        raise DtoConfigurationError(f"Empty rule in {constraint!r}")
    if name not in _CHECKS and name not in META_RULES:
        raise DtoConfigurationError(f"Unknown validation rule '{name}'", rule=constraint)

    if not raw_params:
        params: tuple[str, ...] = ()
    elif name in _UNSPLIT_PARAMS:
        params = (raw_params,)
    else:
        params = tuple(p.strip() for p in raw_params.split(","))
    return ParsedRule(name=name, params=params)


def _need(rule: ParsedRule, count: int) -> tuple[str, ...]:
    if len(rule.params) < count:
        raise DtoConfigurationError(
            f"Rule '{rule.name}' needs at least {count} parameter(s)", rule=str(rule)
        )
    return rule.params


def _number_param(rule: ParsedRule, raw: str) -> float:
    try:
        return float(raw)
    except ValueError as e:
        raise DtoConfigurationError(
            f"Rule '{rule.name}' expects a numeric parameter, got {raw!r}", rule=str(rule)
        ) from e


def _truth(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        token = value.strip().lower()
        if token in _TRUE_TOKENS:
            return True
        if token in {"false", "0", "no", "off"}:
            return False
    return None


def _matches_any(other: Any, candidates: tuple[str, ...], as_boolean: bool) -> bool:
    """Whether another field's value equals one of the rule's candidates.

    When the other field is boolean, ``"1"``, ``"on"`` and ``True`` all
    match the candidate ``true``.
    """
    if as_boolean or isinstance(other, bool):
        truth = _truth(other)
        if truth is not None:
            wanted = {c.strip().lower() for c in candidates}
            return ("true" if truth else "false") in wanted or ("1" if truth else "0") in wanted
    if other is None:
        return "null" in candidates
    return display(other) in candidates


# --- presence rules ----------------------------------------------------------

@_check("required")
def _required(book, rule, path, value, data, ctx) -> bool:
    return not is_empty(value)


@_check("required_if")
def _required_if(book, rule, path, value, data, ctx) -> bool:
    other, *candidates = _need(rule, 2)
    other_value = get_path(data, other)
    if _matches_any(other_value, tuple(candidates), ctx.has_rule(other, "boolean")):
        return not is_empty(value)
    return True


@_check("required_unless")
def _required_unless(book, rule, path, value, data, ctx) -> bool:
    other, *candidates = _need(rule, 2)
    other_value = get_path(data, other)
    if not _matches_any(other_value, tuple(candidates), ctx.has_rule(other, "boolean")):
        return not is_empty(value)
    return True


@_check("required_with")
def _required_with(book, rule, path, value, data, ctx) -> bool:
    if any(not is_empty(get_path(data, other)) for other in _need(rule, 1)):
        return not is_empty(value)
    return True


@_check("required_without")
def _required_without(book, rule, path, value, data, ctx) -> bool:
    if any(is_empty(get_path(data, other)) for other in _need(rule, 1)):
        return not is_empty(value)
    return True


@_check("present")
def _present(book, rule, path, value, data, ctx) -> bool:
    return value is not MISSING


@_check("filled")
def _filled(book, rule, path, value, data, ctx) -> bool:
    return value is MISSING or not is_empty(value)


@_check("accepted")
def _accepted(book, rule, path, value, data, ctx) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value == 1
    return isinstance(value, str) and value.strip().lower() in {"yes", "on", "1", "true"}


# --- type rules --------------------------------------------------------------

@_check("string")
def _string(book, rule, path, value, data, ctx) -> bool:
    return isinstance(value, str)


@_check("integer")
def _integer(book, rule, path, value, data, ctx) -> bool:
    return is_integer(value)


@_check("numeric")
def _numeric(book, rule, path, value, data, ctx) -> bool:
    return is_numeric(value)


@_check("boolean")
def _boolean(book, rule, path, value, data, ctx) -> bool:
    if isinstance(value, bool):
        return True
    if isinstance(value, int):
        return value in (0, 1)
    return isinstance(value, str) and value.strip().lower() in _BOOLEAN_TOKENS


@_check("array")
def _array(book, rule, path, value, data, ctx) -> bool:
    return isinstance(value, (list, tuple, dict))


@_check("file")
def _file(book, rule, path, value, data, ctx) -> bool:
    return isinstance(value, UploadFile) and bool(value.filename)


@_check("image")
def _image(book, rule, path, value, data, ctx) -> bool:
    if not _file(book, rule, path, value, data, ctx):
        return False
    content_type = (value.content_type or "").lower()
    if content_type.startswith("image/"):
        return True
    return file_extension(value) in _IMAGE_EXTENSIONS


# --- format rules ------------------------------------------------------------

@_check("email")
def _email(book, rule, path, value, data, ctx) -> bool:
    return isinstance(value, str) and bool(_EMAIL_RE.match(value))


@_check("url")
def _url(book, rule, path, value, data, ctx) -> bool:
    if not isinstance(value, str):
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https", "ftp", "ftps") and bool(parsed.netloc)


@_check("uuid")
def _uuid(book, rule, path, value, data, ctx) -> bool:
    return isinstance(value, str) and bool(_UUID_RE.match(value))


@_check("alpha")
def _alpha(book, rule, path, value, data, ctx) -> bool:
    return isinstance(value, str) and value.isalpha()


@_check("alpha_num")
def _alpha_num(book, rule, path, value, data, ctx) -> bool:
    if isinstance(value, int) and not isinstance(value, bool):
        return value >= 0
    return isinstance(value, str) and value.isalnum()


@_check("alpha_dash")
def _alpha_dash(book, rule, path, value, data, ctx) -> bool:
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    return isinstance(value, str) and bool(_ALPHA_DASH_RE.match(value))


@_check("regex", "not_regex")
def _regex(book, rule, path, value, data, ctx) -> bool:
    pattern = compile_pattern(_need(rule, 1)[0])
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return False
    matched = pattern.search(str(value)) is not None
    return matched if rule.name == "regex" else not matched


@_check("digits")
def _digits(book, rule, path, value, data, ctx) -> bool:
    length = int(_number_param(rule, _need(rule, 1)[0]))
    text = display(value)
    return text.isdigit() and len(text) == length


@_check("digits_between")
def _digits_between(book, rule, path, value, data, ctx) -> bool:
    low, high = (_number_param(rule, p) for p in _need(rule, 2)[:2])
    text = display(value)
    return text.isdigit() and low <= len(text) <= high


@_check("date")
def _date(book, rule, path, value, data, ctx) -> bool:
    return parse_date(value) is not None


@_check("date_format")
def _date_format(book, rule, path, value, data, ctx) -> bool:
    if not isinstance(value, str):
        return False
    pattern = strptime_pattern(_need(rule, 1)[0])
    return try_result(lambda: datetime.strptime(value, pattern), catch=(ValueError,)).is_ok()


# --- membership rules --------------------------------------------------------

@_check("in")
def _in(book, rule, path, value, data, ctx) -> bool:
    allowed = set(rule.params)
    if isinstance(value, (list, tuple)) and ctx.field_has("array"):
        return all(display(item) in allowed for item in value)
    if isinstance(value, (list, tuple, dict)):
        return False
    return display(value) in allowed


@_check("not_in")
def _not_in(book, rule, path, value, data, ctx) -> bool:
    banned = set(rule.params)
    if isinstance(value, (list, tuple)) and ctx.field_has("array"):
        return not any(display(item) in banned for item in value)
    if isinstance(value, (list, tuple, dict)):
        return False
    return display(value) not in banned


@_check("mimes")
def _mimes(book, rule, path, value, data, ctx) -> bool:
    if not _file(book, rule, path, value, data, ctx):
        return False
    allowed = {p.lower() for p in _need(rule, 1)}
    if "jpg" in allowed or "jpeg" in allowed:
        allowed |= {"jpg", "jpeg"}
    if file_extension(value) in allowed:
        return True
    guessed = mimetypes.guess_all_extensions(value.content_type or "")
    return any(ext.lstrip(".") in allowed for ext in guessed)


@_check("mimetypes")
def _mimetypes(book, rule, path, value, data, ctx) -> bool:
    if not _file(book, rule, path, value, data, ctx):
        return False
    content_type = (value.content_type or "").lower()
    for allowed in _need(rule, 1):
        allowed = allowed.lower()
        if allowed == content_type:
            return True
        if allowed.endswith("/*") and content_type.startswith(allowed[:-1]):
            return True
    return False


# --- size rules --------------------------------------------------------------

@_check("min")
def _min(book, rule, path, value, data, ctx) -> bool:
    return book.size_of(value, ctx) >= _number_param(rule, _need(rule, 1)[0])


@_check("max")
def _max(book, rule, path, value, data, ctx) -> bool:
    return book.size_of(value, ctx) <= _number_param(rule, _need(rule, 1)[0])


@_check("between")
def _between(book, rule, path, value, data, ctx) -> bool:
    low, high = (_number_param(rule, p) for p in _need(rule, 2)[:2])
    return low <= book.size_of(value, ctx) <= high


@_check("size")
def _size(book, rule, path, value, data, ctx) -> bool:
    return book.size_of(value, ctx) == _number_param(rule, _need(rule, 1)[0])


_COMPARATORS = {
    "gt": lambda a, b: a > b,
    "gte": lambda a, b: a >= b,
    "lt": lambda a, b: a < b,
    "lte": lambda a, b: a <= b,
}


@_check("gt", "gte", "lt", "lte")
def _compare(book, rule, path, value, data, ctx) -> bool:
    target = _need(rule, 1)[0]
    compare = _COMPARATORS[rule.name]
    other = get_path(data, target)
    if other is MISSING or other is None:
        if is_numeric(target):
            return compare(book.size_of(value, ctx), to_number(target))
        # nothing to compare against
        return True
    if ctx.field_has(*NUMERIC_RULES) and is_numeric(value) and is_numeric(other):
        return compare(to_number(value), to_number(other))
    if isinstance(value, (list, tuple, dict)) != isinstance(other, (list, tuple, dict)):
        return False
    return compare(book.size_of(value, ctx), book.size_of(other, ctx))


# --- comparison rules --------------------------------------------------------

@_check("confirmed")
def _confirmed(book, rule, path, value, data, ctx) -> bool:
    return get_path(data, f"{path}_confirmation") == value


@_check("same")
def _same(book, rule, path, value, data, ctx) -> bool:
    return get_path(data, _need(rule, 1)[0]) == value


@_check("different")
def _different(book, rule, path, value, data, ctx) -> bool:
    for other in _need(rule, 1):
        other_value = get_path(data, other)
        if other_value is MISSING or other_value == value:
            return False
    return True


_DATE_COMPARATORS = {
    "after": lambda a, b: a > b,
    "after_or_equal": lambda a, b: a >= b,
    "before": lambda a, b: a < b,
    "before_or_equal": lambda a, b: a <= b,
}


@_check("after", "after_or_equal", "before", "before_or_equal")
def _date_compare(book, rule, path, value, data, ctx) -> bool:
    target = _need(rule, 1)[0]
    reference = parse_date(target)
    if reference is None:
        reference = parse_date(get_path(data, target))
    subject = parse_date(value)
    if reference is None or subject is None:
        return False
    return _DATE_COMPARATORS[rule.name](subject, reference)


# --- database rules ----------------------------------------------------------

def _default_column(path: str) -> str:
    return split_path(path)[-1]


@_check("unique")
def _unique(book, rule, path, value, data, ctx) -> bool:
    verifier = book.require_verifier(rule)
    params = _need(rule, 1)
    table = params[0]
    column = params[1] if len(params) > 1 and params[1] else _default_column(path)
    excluding = None
    if len(params) > 2 and params[2] and params[2].upper() != "NULL":
        id_column = params[3] if len(params) > 3 and params[3] else "id"
        excluding = {id_column: params[2]}

    result = verifier.count(table, column, value, excluding).map(lambda total: total == 0)
    raise_result(result)
    return result.unwrap()


@_check("exists")
def _exists(book, rule, path, value, data, ctx) -> bool:
    verifier = book.require_verifier(rule)
    params = _need(rule, 1)
    table = params[0]
    column = params[1] if len(params) > 1 and params[1] else _default_column(path)

    for item in value if isinstance(value, (list, tuple)) else [value]:
        result = verifier.count(table, column, item)
        raise_result(result)
        if result.unwrap() == 0:
            return False
    return True
