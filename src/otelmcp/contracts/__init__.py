# src/otelmcp/contracts/__init__.py
"""Shared record types for otel-mcp.

Everything that crosses a subsystem boundary (decoder -> store -> query
engine -> tools) lives here so that no layer imports another layer's
internals.
"""

from otelmcp.contracts.enums import (
    SPAN_KIND_CODES,
    SPAN_STATUS_CODES,
    LookupStatus,
    SpanKind,
    SpanStatus,
)
from otelmcp.contracts.errors import (
    ErrorResult,
    FilterParseError,
    ForwardingError,
    OtelMcpError,
)
from otelmcp.contracts.spans import (
    Attributes,
    AttributeValue,
    Span,
    SpanKey,
    Trace,
    coerce_number,
    format_attribute_value,
)

__all__ = [
    "SPAN_KIND_CODES",
    "SPAN_STATUS_CODES",
    "AttributeValue",
    "Attributes",
    "ErrorResult",
    "FilterParseError",
    "ForwardingError",
    "LookupStatus",
    "OtelMcpError",
    "Span",
    "SpanKey",
    "SpanKind",
    "SpanStatus",
    "Trace",
    "coerce_number",
    "format_attribute_value",
]
