# src/otelmcp/store/filter_parser.py
"""Filter expressions for ad-hoc span queries.

Grammar::

    expr      := condition (AND condition)*
    condition := field operator value
    operator  := >= | <= | != | = | > | <

``AND`` is case-insensitive and must stand alone between whitespace, so
values such as ``brand`` or ``android`` are never split. ``field`` is a single
token (dots allowed, e.g. ``http.status_code``). ``value`` is the rest of the
condition, trimmed, and becomes a number when the whole value is one.

Examples::

    duration > 50 AND status = error
    http.status_code >= 400
    service = checkout and db.system = postgresql

Field lookup order: the span fields ``duration``, ``status``, ``name``,
``service`` and ``kind``, then span attributes, then resource attributes. A
condition on a field the span does not have is false.
"""

from __future__ import annotations

import operator
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal

from otelmcp.contracts import (
    AttributeValue,
    FilterParseError,
    Span,
    coerce_number,
    format_attribute_value,
)

Operator = Literal[">=", "<=", "!=", "=", ">", "<"]

# Longer operators first so ">=" is never read as ">" followed by "=5".
OPERATORS: tuple[Operator, ...] = (">=", "<=", "!=", "=", ">", "<")

_CONJUNCTION = re.compile(r"(?:^|\s+)AND(?:\s+|$)", re.IGNORECASE)
_CONDITION = re.compile(
    r"^(?P<field>[^\s=!<>]*)\s*(?P<op>" + "|".join(re.escape(op) for op in OPERATORS) + r")\s*(?P<value>.*)$",
    re.DOTALL,
)

_COMPARATORS: dict[Operator, Callable[[Any, Any], bool]] = {
    "=": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
}


@dataclass(frozen=True, slots=True)
class Condition:
    """One ``field operator value`` clause."""

    field: str
    operator: Operator
    value: str | int | float


@dataclass(frozen=True, slots=True)
class ParsedFilter:
    """A conjunction of conditions, in source order."""

    conditions: tuple[Condition, ...]


def _parse_condition(segment: str) -> Condition:
    match = _CONDITION.match(segment.strip())
    if match is None:
        raise FilterParseError(f'Invalid condition: "{segment}"', segment=segment)
    field = match.group("field")
    raw_value = match.group("value").strip()
    if not field or not raw_value:
        raise FilterParseError(f'Invalid condition: "{segment}"', segment=segment)

    number = coerce_number(raw_value)
    value: str | int | float = raw_value if number is None else number
    return Condition(field=field, operator=match.group("op"), value=value)  # type: ignore[arg-type]  # regex only matches OPERATORS


def parse_filter(expression: str) -> ParsedFilter:
    """Parse a filter expression.

    Args:
        expression: e.g. ``"duration > 50 AND status = error"``.

    Returns:
        The parsed conditions in source order.

    Raises:
        FilterParseError: If any condition is malformed (the message quotes
            it) or the expression contains no conditions.
    """
    segments = [part for part in _CONJUNCTION.split(expression) if part.strip()]
    conditions = tuple(_parse_condition(part.strip()) for part in segments)
    if not conditions:
        raise FilterParseError("No valid conditions found")
    return ParsedFilter(conditions=conditions)


def resolve_field(span: Span, field: str) -> AttributeValue | None:
    """Look up a filter field on a span, or None if the span lacks it."""
    if field == "duration":
        return span.duration
    if field == "status":
        return span.status.value
    if field == "name":
        return span.name
    if field == "service":
        return span.service_name
    if field == "kind":
        return span.kind.value
    if field in span.attributes:
        return span.attributes[field]
    if field in span.resource_attributes:
        return span.resource_attributes[field]
    return None


def compare(actual: AttributeValue | None, op: Operator, expected: str | int | float) -> bool:
    """Compare a resolved field value with a condition value.

    Numeric when both sides are numbers, lexicographic on the string forms
    otherwise. A missing field never matches.
    """
    if actual is None:
        return False
    comparator = _COMPARATORS[op]
    actual_number = coerce_number(actual)
    expected_number = coerce_number(expected)
    if actual_number is not None and expected_number is not None:
        return comparator(actual_number, expected_number)
    return comparator(format_attribute_value(actual), format_attribute_value(expected))


def matches_filter(span: Span, parsed: ParsedFilter) -> bool:
    """True if the span satisfies every condition."""
    return all(
        compare(resolve_field(span, condition.field), condition.operator, condition.value)
        for condition in parsed.conditions
    )
