"""Validator

Runs a DTO's rule set over one raw data view and collects violations.

Evaluation order and short-circuiting:
- fields are visited in rule declaration order; wildcard paths expand
  against the data, elements in data order
- implicit rules (required and friends) run even when the field is
  missing; every other rule needs the key present and not a blank string
- ``nullable`` with a null value skips the remaining non-implicit rules
- ``sometimes`` skips the whole field when its key is absent
- ``bail`` stops a field after its first failure, as does any failing
  implicit rule
- ``stop_on_first_failure`` ends the run after the first failing field

Predicates and default messages come from a ``RuleEvaluator``; this module
owns expansion, ordering, overrides and labels.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Any, Mapping

from core.logging import mapper_logger

from .contracts import DtoDescriptor, normalize_rules
from .paths import expand, get_path, split_path, WILDCARD
from .rules import META_RULES, ParsedRule, RuleBook, RuleContext, RuleEvaluator
from .types import MISSING, ValidationFailure

log = mapper_logger()

# Presence rules that are pointless once the field already failed
_PRESENCE_LOOKUPS = frozenset({"unique", "exists"})


def _matches(declared: str, concrete: str) -> bool:
    declared_segments = split_path(declared)
    concrete_segments = split_path(concrete)
    if len(declared_segments) != len(concrete_segments):
        return False
    return all(d == WILDCARD or d == c for d, c in zip(declared_segments, concrete_segments))


class _RuleSet:
    """Parsed rules of one validation run plus label/override lookups."""

    def __init__(
        self,
        evaluator: RuleEvaluator,
        rules: Mapping[str, Any],
        messages: Mapping[str, str],
        attributes: Mapping[str, str],
    ):
        self.parsed: dict[str, tuple[ParsedRule, ...]] = {
            declared: tuple(evaluator.parse(item) for item in normalize_rules(declared, spec))
            for declared, spec in rules.items()
        }
        self.messages = messages
        self.attributes = attributes

    def declared_for(self, path: str) -> str | None:
        if path in self.parsed:
            return path
        return next((d for d in self.parsed if WILDCARD in d and _matches(d, path)), None)

    def has_rule(self, path: str, name: str) -> bool:
        declared = self.declared_for(path)
        if declared is None:
            return False
        return any(rule.name == name for rule in self.parsed[declared])

    def label(self, path: str, declared: str | None = None) -> str:
        if path in self.attributes:
            return self.attributes[path]
        declared = declared or self.declared_for(path)
        if declared is not None and declared in self.attributes:
            return self.attributes[declared]
        return path

    def override(self, path: str, declared: str, rule: str) -> str | None:
        for key in (f"{path}.{rule}", f"{declared}.{rule}", rule):
            if key in self.messages:
                return self.messages[key]
        return None


class Validator:
    """Validates raw data against declared rules.

    Usage:
        failure = Validator().validate(
            {"age": "required|integer|min:18"}, {}, {}, {"age": "15"}
        )
        failure.errors  # {"age": ["The age must be at least 18."]}
    """

    def __init__(self, evaluator: RuleEvaluator | None = None):
        self.evaluator = evaluator or RuleBook()

    def validate(
        self,
        rules: Mapping[str, Any],
        messages: Mapping[str, str],
        attributes: Mapping[str, str],
        data: Mapping[str, Any],
        stop_on_first_failure: bool = False,
    ) -> ValidationFailure | None:
        """Return every violation, or None when the data passes."""
        rule_set = _RuleSet(self.evaluator, rules, messages, attributes)
        failure = ValidationFailure()

        for declared, field_rules in rule_set.parsed.items():
            for path in expand(data, declared):
                self._validate_field(rule_set, failure, declared, path, field_rules, data)
                if stop_on_first_failure and failure.has(path):
                    log.debug("validation_stopped", field=path, failed_rules=failure.failed_rules[path])
                    return failure

        return failure if failure.errors else None

    def validate_descriptor(
        self,
        descriptor: DtoDescriptor,
        data: Mapping[str, Any],
        stop_on_first_failure: bool = False,
    ) -> ValidationFailure | None:
        return self.validate(
            descriptor.rules,
            descriptor.messages,
            descriptor.attributes,
            data,
            stop_on_first_failure,
        )

    def _validate_field(
        self,
        rule_set: _RuleSet,
        failure: ValidationFailure,
        declared: str,
        path: str,
        field_rules: tuple[ParsedRule, ...],
        data: Mapping[str, Any],
    ) -> None:
        value = get_path(data, path)
        names = {rule.name for rule in field_rules if rule.custom is None}

        if "sometimes" in names and value is MISSING:
            return

        bail = "bail" in names
        nullable = "nullable" in names
        context = RuleContext(
            path=path,
            declared_path=declared,
            field_rules=field_rules,
            label=rule_set.label(path, declared),
            labels=rule_set.label,
            has_rule=rule_set.has_rule,
        )

        for rule in field_rules:
            if rule.custom is None and rule.name in META_RULES:
                continue

            implicit = self.evaluator.is_implicit(rule)
            if not implicit:
                if value is MISSING:
                    continue
                if isinstance(value, str) and not value.strip():
                    continue
                if nullable and value is None:
                    continue
                if rule.name in _PRESENCE_LOOKUPS and failure.has(path):
                    continue

            if self.evaluator.passes(rule, path, value, data, context):
                continue

            template = rule_set.override(path, declared, rule.name)
            message_context = replace(context, template=template) if template is not None else context
            failure.add(
                path,
                declared,
                rule.name,
                self.evaluator.message(rule, path, value, data, message_context),
            )

            if bail or implicit:
                break


def validate(
    rules: Mapping[str, Any],
    messages: Mapping[str, str],
    attributes: Mapping[str, str],
    data: Mapping[str, Any],
    stop_on_first_failure: bool = False,
    evaluator: RuleEvaluator | None = None,
) -> ValidationFailure | None:
    """Module-level shortcut for ``Validator(evaluator).validate(...)``."""
    return Validator(evaluator).validate(rules, messages, attributes, data, stop_on_first_failure)
