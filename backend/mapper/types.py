"""Value types shared across the resolution pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Final


class _Missing:
    """Marker for a path that does not exist in the raw data."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Final = _Missing()


@dataclass(frozen=True, slots=True)
class ResolutionOptions:
    """Per-call resolution switches."""
    validate: bool = True
    stop_on_first_failure: bool = False


@dataclass(slots=True)
class ValidationFailure:
    """Every violation found in one validation run.

    ``errors`` and ``failed_rules`` are ordered by rule declaration, so the
    first key is the first failing field as the DTO declares it.
    """
    errors: dict[str, list[str]] = field(default_factory=dict)
    failed_rules: dict[str, list[str]] = field(default_factory=dict)
    declared_paths: dict[str, str] = field(default_factory=dict)

    def add(self, path: str, declared_path: str, rule: str, message: str) -> None:
        self.errors.setdefault(path, []).append(message)
        self.failed_rules.setdefault(path, []).append(rule)
        self.declared_paths[path] = declared_path

    @property
    def first_field(self) -> str | None:
        return next(iter(self.errors), None)

    def has(self, path: str) -> bool:
        return path in self.errors

    def __len__(self) -> int:
        return len(self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "errors": self.errors,
            "failed_rules": self.failed_rules,
            "first_field": self.first_field,
        }
