# src/otelmcp/contracts/spans.py
"""Normalized span and trace records.

A ``Span`` is produced by the OTLP decoder and never mutated afterwards. A
``Trace`` is a view computed by the store from the spans that share a trace
ID; it is rebuilt on every request and never stored.

Attribute values keep the type chosen at decode time (``str``, ``int``,
``float`` or ``bool``). Two helpers define how those values behave when they
are compared or printed:

- ``format_attribute_value``: the canonical string form. Booleans print as
  ``true``/``false`` and integral floats print without a trailing ``.0``, so a
  value renders the same way it was written on the wire.
- ``coerce_number``: the numeric form, or ``None`` when the value is not a
  number. Strings count only when the whole string is a decimal number.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field

from otelmcp.contracts.enums import SpanKind, SpanStatus

AttributeValue = str | int | float | bool
Attributes = dict[str, AttributeValue]
SpanKey = tuple[str, str]

_DECIMAL_NUMBER = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")


@dataclass(frozen=True, slots=True)
class Span:
    """One timed operation within a trace.

    Times are integer milliseconds since the epoch. ``duration`` is
    ``end_time - start_time`` and is negative when the source clock ran
    backwards; it is kept as-is.
    """

    trace_id: str
    span_id: str
    parent_span_id: str | None
    name: str
    kind: SpanKind
    start_time: int
    end_time: int
    duration: int
    status: SpanStatus
    status_message: str | None
    attributes: Attributes = field(default_factory=dict)
    service_name: str = "unknown"
    resource_attributes: Attributes = field(default_factory=dict)

    @property
    def key(self) -> SpanKey:
        """Storage identity. Re-ingesting the same key replaces the span."""
        return (self.trace_id, self.span_id)

    @property
    def is_error(self) -> bool:
        return self.status is SpanStatus.ERROR


@dataclass(frozen=True, slots=True)
class Trace:
    """Aggregate view over every stored span of one trace.

    ``spans`` is ordered by ascending start time (stable, so ties keep
    insertion order). ``root_span`` is the first of those spans whose parent
    is absent or was never received; it is ``None`` only when every span's
    parent is another span of the same trace (a parent cycle).
    """

    trace_id: str
    root_span: Span | None
    spans: tuple[Span, ...]
    services: tuple[str, ...]
    start_time: int
    end_time: int
    duration: int
    span_count: int
    error_count: int


def format_attribute_value(value: AttributeValue) -> str:
    """Render an attribute value the way it appears on the wire."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def coerce_number(value: AttributeValue | None) -> int | float | None:
    """Return the numeric form of ``value``, or ``None`` if it has none.

    Booleans count as 1 and 0. Strings must be a complete decimal number
    (surrounding whitespace ignored); ``"12ms"``, ``""`` and ``"nan"`` are
    not numbers.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return None if math.isnan(value) else value
    text = value.strip()
    if not _DECIMAL_NUMBER.match(text):
        return None
    if any(marker in text for marker in ".eE"):
        return float(text)
    return int(text)
