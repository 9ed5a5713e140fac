"""Predicate evaluation: one (key, operator, value) test against an item.

Operators are a fixed enumeration compiled into the engine; filter keys are
data-driven names resolved from the filter_keys table. Both are resolved once
when a filter is compiled, so per-item evaluation never touches the database
and never raises.
"""

from __future__ import annotations

import enum
import fnmatch
import math
import re
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigurationError
from .items import FeedItem


class Operator(str, enum.Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not-equals"
    CONTAINS = "contains"
    FNMATCH = "fnmatch"
    REGEX = "regex"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"

    @classmethod
    def from_name(cls, name: str) -> "Operator":
        """Resolve an operator row name ("not_equals" and "not-equals" are the same)."""
        normalized = name.strip().lower().replace("_", "-")
        try:
            return cls(normalized)
        except ValueError:
            raise ConfigurationError(f"Unknown filter operator: {name!r}") from None

    @property
    def is_numeric(self) -> bool:
        return self in NUMERIC_OPERATORS


NUMERIC_OPERATORS = frozenset({Operator.GT, Operator.GTE, Operator.LT, Operator.LTE})

_SIZE_UNITS = {
    "b": 1,
    "kb": 1000,
    "mb": 1000 ** 2,
    "gb": 1000 ** 3,
    "tb": 1000 ** 4,
    "kib": 1024,
    "mib": 1024 ** 2,
    "gib": 1024 ** 3,
    "tib": 1024 ** 4,
}

_NUMBER_RE = re.compile(r"^\s*([-+]?\d+(?:\.\d+)?)\s*([a-zA-Z]{0,3})\s*$")


def parse_number(raw: object) -> Optional[float]:
    """Parse a numeric field value, accepting size units ("700 MiB", "1.2 GB").

    Returns None when the value is not a number.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw) if math.isfinite(raw) else None

    match = _NUMBER_RE.match(str(raw))
    if not match:
        return None
    number = float(match.group(1))
    unit = match.group(2).lower()
    if not unit:
        return number
    multiplier = _SIZE_UNITS.get(unit)
    if multiplier is None:
        return None
    return number * multiplier


@dataclass(frozen=True)
class CompiledPredicate:
    """Evaluation-ready form of a FeedFilterSetEntry."""

    key: str
    operator: Operator
    value: str
    entry_id: Optional[int] = None
    pattern: Optional[re.Pattern] = None
    number: Optional[float] = None

    def __str__(self) -> str:
        return f"{self.key} {self.operator.value} {self.value!r}"


def compile_predicate(
    key: str,
    operator: Operator,
    value: str,
    entry_id: Optional[int] = None,
) -> CompiledPredicate:
    """Validate a predicate and precompute its regex or numeric operand.

    Raises:
        ConfigurationError: malformed regex or non-numeric operand for a
            numeric operator.
    """
    pattern = None
    number = None
    value = value or ""

    if operator is Operator.REGEX:
        try:
            pattern = re.compile(value, re.IGNORECASE)
        except re.error as exc:
            raise ConfigurationError(
                f"Invalid regex {value!r}: {exc}", entry_id=entry_id
            ) from exc
    elif operator.is_numeric:
        number = parse_number(value)
        if number is None:
            raise ConfigurationError(
                f"Operator {operator.value!r} needs a numeric value, got {value!r}",
                entry_id=entry_id,
            )

    return CompiledPredicate(
        key=key.strip().lower(),
        operator=operator,
        value=value,
        entry_id=entry_id,
        pattern=pattern,
        number=number,
    )


def compile_entry(
    entry_id: Optional[int],
    key_id: int,
    operator_id: int,
    value: str,
    key_names: Mapping[int, str],
    operator_names: Mapping[int, str],
) -> CompiledPredicate:
    """Resolve key/operator ids of a stored entry and compile it."""
    key = key_names.get(key_id)
    if key is None:
        raise ConfigurationError(f"Unknown filter key id {key_id}", entry_id=entry_id)
    operator_name = operator_names.get(operator_id)
    if operator_name is None:
        raise ConfigurationError(f"Unknown filter operator id {operator_id}", entry_id=entry_id)
    try:
        operator = Operator.from_name(operator_name)
    except ConfigurationError as exc:
        raise ConfigurationError(exc.message, entry_id=entry_id) from None
    return compile_predicate(key, operator, value, entry_id=entry_id)


def _compare(operator: Operator, actual: float, expected: float) -> bool:
    if operator is Operator.GT:
        return actual > expected
    if operator is Operator.GTE:
        return actual >= expected
    if operator is Operator.LT:
        return actual < expected
    return actual <= expected


def evaluate(predicate: CompiledPredicate, item: FeedItem) -> bool:
    """Evaluate one predicate against an item.

    Missing fields and unparseable numbers evaluate to False. Multi-valued
    fields match when any value matches, except `not-equals`, which requires
    that no value equals the operand.
    """
    values = item.field_values(predicate.key)
    if not values:
        return False

    operator = predicate.operator

    if operator.is_numeric:
        for raw in values:
            actual = parse_number(raw)
            if actual is not None and _compare(operator, actual, predicate.number):
                return True
        return False

    if operator is Operator.REGEX:
        for raw in values:
            try:
                if predicate.pattern.search(raw):
                    return True
            except (re.error, RecursionError):
                continue
        return False

    expected = predicate.value.casefold()
    lowered = [v.casefold() for v in values]

    if operator is Operator.EQUALS:
        return any(v == expected for v in lowered)
    if operator is Operator.NOT_EQUALS:
        return all(v != expected for v in lowered)
    if operator is Operator.CONTAINS:
        return any(expected in v for v in lowered)
    if operator is Operator.FNMATCH:
        return any(fnmatch.fnmatchcase(v, expected) for v in lowered)
    return False
