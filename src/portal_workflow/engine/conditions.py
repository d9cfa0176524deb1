"""Trigger conditions: parsing and evaluation.

Conditions are an explicit list of ``(field, operator, value)`` triples. The
legacy flat-map form (``{"amount_gt": 1000}``) is still accepted as input and is
translated once, at the store boundary, into that list.

Evaluation never raises: missing or malformed payload data means the rule does
not apply.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum

from portal_workflow.engine.payload import is_missing, lookup

logger = logging.getLogger(__name__)


class ConditionOperator(str, Enum):
    EQUALS = "eq"
    GREATER_THAN = "gt"
    LESS_THAN = "lt"
    CONTAINS = "contains"


# Legacy suffix convention, checked in this order.
_SUFFIXES: tuple[tuple[str, ConditionOperator], ...] = (
    ("_contains", ConditionOperator.CONTAINS),
    ("_gt", ConditionOperator.GREATER_THAN),
    ("_lt", ConditionOperator.LESS_THAN),
)


class ConditionError(ValueError):
    """Raised when a condition spec cannot be parsed."""


@dataclass(frozen=True, slots=True)
class Condition:
    field: str
    operator: ConditionOperator
    value: object

    def to_json(self) -> dict[str, object]:
        return {"field": self.field, "op": self.operator.value, "value": self.value}

    def evaluate(self, payload: Mapping[str, object]) -> bool:
        actual = lookup(payload, self.field)
        if is_missing(actual):
            return False

        if self.operator is ConditionOperator.EQUALS:
            return _strict_equals(actual, self.value)

        if self.operator is ConditionOperator.CONTAINS:
            if isinstance(actual, str):
                return str(self.value) in actual
            if isinstance(actual, list | tuple):
                return any(_strict_equals(item, self.value) for item in actual)
            return False

        left = to_number(actual)
        right = to_number(self.value)
        if left is None or right is None:
            return False
        if self.operator is ConditionOperator.GREATER_THAN:
            return left > right
        return left < right


def to_number(value: object) -> float | None:
    """Numeric coercion for ``gt``/``lt``; ``None`` means not coercible.

    Booleans and empty strings are rejected. NaN is returned as-is and compares
    false against everything.
    """

    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return float(text)
        except ValueError:
            return None
    return None


def _strict_equals(actual: object, expected: object) -> bool:
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual is expected
    return bool(actual == expected) and type(actual) in _comparable_types(expected)


def _comparable_types(expected: object) -> tuple[type, ...]:
    if isinstance(expected, int | float):
        return (int, float)
    return (type(expected),)


def _parse_legacy_key(key: str) -> tuple[str, ConditionOperator]:
    for suffix, operator in _SUFFIXES:
        if key.endswith(suffix) and len(key) > len(suffix):
            return key[: -len(suffix)], operator
    return key, ConditionOperator.EQUALS


def parse_conditions(raw: object) -> list[Condition]:
    """Parse a condition spec into explicit conditions.

    Accepts ``None``, a legacy flat mapping, or a list of
    ``{"field": ..., "op": ..., "value": ...}`` objects.

    Raises:
        ConditionError: If the spec has an unexpected shape.
    """

    if raw is None:
        return []

    if isinstance(raw, Mapping):
        conditions: list[Condition] = []
        for key, value in raw.items():
            if not isinstance(key, str) or not key:
                raise ConditionError(f"Condition keys must be non-empty strings: {key!r}")
            field, operator = _parse_legacy_key(key)
            conditions.append(Condition(field=field, operator=operator, value=value))
        return conditions

    if isinstance(raw, Sequence) and not isinstance(raw, str | bytes):
        conditions = []
        for idx, item in enumerate(raw):
            if not isinstance(item, Mapping):
                raise ConditionError(f"Condition #{idx} must be an object")
            field = item.get("field")
            if not isinstance(field, str) or not field:
                raise ConditionError(f"Condition #{idx} is missing 'field'")
            op_raw = item.get("op", ConditionOperator.EQUALS.value)
            try:
                operator = ConditionOperator(op_raw)
            except ValueError as e:
                raise ConditionError(f"Condition #{idx} has unknown operator {op_raw!r}") from e
            conditions.append(Condition(field=field, operator=operator, value=item.get("value")))
        return conditions

    raise ConditionError(f"Unsupported condition spec: {type(raw).__name__}")


def evaluate_conditions(conditions: Sequence[Condition], payload: Mapping[str, object]) -> bool:
    """Logical AND of every condition; an empty list always matches."""

    for condition in conditions:
        try:
            if not condition.evaluate(payload):
                return False
        except Exception:
            logger.warning(
                "Condition evaluation error; treating as no match",
                extra={"field": condition.field, "op": condition.operator.value},
                exc_info=True,
            )
            return False
    return True


def matches(raw_conditions: object, payload: Mapping[str, object]) -> bool:
    """Evaluate a stored condition spec against a payload, never raising."""

    try:
        conditions = parse_conditions(raw_conditions)
    except ConditionError:
        logger.warning("Stored conditions are malformed; treating as no match", exc_info=True)
        return False
    return evaluate_conditions(conditions, payload)
