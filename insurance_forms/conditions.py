"""Visibility rule evaluation.

A rule compares one field's current answer against a fixed operand. Every
operator is evaluated directly on the structured rule; anything that
cannot be evaluated (unknown operator, missing operand, non-numeric input
to a numeric comparison) counts as "not satisfied" and hides the field.
"""

from __future__ import annotations

import logging
import math
import operator
from typing import Callable, Mapping

from insurance_forms.schema import Condition, Field, Rule

log = logging.getLogger(__name__)

_NUMERIC_OPS: dict[Condition, Callable[[float, float], bool]] = {
    Condition.GREATER_THAN: operator.gt,
    Condition.LESS_THAN: operator.lt,
    Condition.GREATER_THAN_OR_EQUAL: operator.ge,
    Condition.LESS_THAN_OR_EQUAL: operator.le,
}


def _as_text(value) -> str:
    """Render a rule operand the way it appears in a string answer."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _as_number(value) -> float:
    """Coerce to float; anything non-numeric becomes NaN."""
    if value is None or isinstance(value, bool):
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def has_value(answers: Mapping[str, str], field_id: str) -> bool:
    """True if *field_id* is present in *answers* and not empty."""
    value = answers.get(field_id)
    return value is not None and value != ""


def evaluate(rule: Rule, answers: Mapping[str, str]) -> bool:
    """Evaluate a visibility rule against the current answers."""
    if not rule.depends_on:
        log.debug("Rule without dependsOn treated as unsatisfied: %r", rule)
        return False
    try:
        condition = Condition(rule.condition)
    except ValueError:
        log.debug("Unknown condition %r on %s, hiding field", rule.condition, rule.depends_on)
        return False

    if condition is Condition.EXISTS:
        return has_value(answers, rule.depends_on)
    if condition is Condition.NOT_EXISTS:
        return not has_value(answers, rule.depends_on)

    if rule.value is None:
        log.debug("Condition %s on %s has no value, hiding field", condition.value, rule.depends_on)
        return False

    answer = answers.get(rule.depends_on)

    if condition is Condition.EQUALS:
        return answer is not None and answer == _as_text(rule.value)
    if condition is Condition.NOT_EQUALS:
        return answer is None or answer != _as_text(rule.value)

    if condition in _NUMERIC_OPS:
        # NaN compares false against everything
        return _NUMERIC_OPS[condition](_as_number(answer), _as_number(rule.value))

    if not has_value(answers, rule.depends_on):
        return False
    if condition is Condition.CONTAINS:
        return _as_text(rule.value) in answer
    if condition is Condition.NOT_CONTAINS:
        return _as_text(rule.value) not in answer

    raise AssertionError(f"Unhandled condition {condition!r}")


def is_visible(field: Field, answers: Mapping[str, str]) -> bool:
    """A field without a visibility rule is always visible."""
    if field.visibility is None:
        return True
    return evaluate(field.visibility, answers)
