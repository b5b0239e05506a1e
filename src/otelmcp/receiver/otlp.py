# src/otelmcp/receiver/otlp.py
"""Decoder for OTLP/JSON trace export requests.

Converts an ``ExportTraceServiceRequest`` in its JSON encoding into validated
``Span`` records:

    {"resourceSpans": [{
        "resource": {"attributes": [{"key": ..., "value": {...}}]},
        "scopeSpans": [{"spans": [{"traceId": ..., "spanId": ..., ...}]}]
    }]}

The payload is untrusted (Tier 3): it comes straight off the network from
whatever the instrumented application sends. The decoder never raises.
Anything that is not shaped like the structure above is skipped at the
smallest possible granularity. A malformed span drops that span, a malformed
scope drops that scope, and a payload that is not an object yields no spans.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

import structlog

from otelmcp.contracts import (
    SPAN_KIND_CODES,
    SPAN_STATUS_CODES,
    Attributes,
    AttributeValue,
    Span,
    SpanKind,
    SpanStatus,
    format_attribute_value,
)

logger = structlog.get_logger(__name__)

NANOS_PER_MILLI = 1_000_000
UNKNOWN_SERVICE = "unknown"
MAX_ARRAY_DEPTH = 32

_DIGITS = re.compile(r"[0-9]+")


def parse_any_value(value: Any, _depth: int = 0) -> AttributeValue:
    """Flatten an OTLP ``AnyValue`` into a scalar attribute value.

    Variants are checked in a fixed order: string, int, double, bool, array.
    Arrays become a single ``", "``-joined string of their parsed elements.
    A value with no recognised variant becomes ``""``, as does an array nested
    deeper than ``MAX_ARRAY_DEPTH``.
    """
    if not isinstance(value, Mapping):
        return ""
    if "stringValue" in value and value["stringValue"] is not None:
        return str(value["stringValue"])
    if "intValue" in value and value["intValue"] is not None:
        return _parse_int_value(value["intValue"])
    if "doubleValue" in value and value["doubleValue"] is not None:
        return _parse_double_value(value["doubleValue"])
    if "boolValue" in value and value["boolValue"] is not None:
        return bool(value["boolValue"])
    if "arrayValue" in value and value["arrayValue"] is not None:
        array = value["arrayValue"]
        elements = array.get("values") if isinstance(array, Mapping) else None
        if not isinstance(elements, list) or _depth >= MAX_ARRAY_DEPTH:
            return ""
        return ", ".join(format_attribute_value(parse_any_value(v, _depth + 1)) for v in elements)
    return ""


def _parse_int_value(raw: Any) -> AttributeValue:
    # OTLP/JSON encodes int64 as a decimal string; some exporters send numbers.
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return int(raw) if raw.is_integer() else raw
    text = str(raw).strip()
    try:
        return int(text, 10)
    except ValueError:
        return text


def _parse_double_value(raw: Any) -> AttributeValue:
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return raw
    # proto3 JSON allows "NaN", "Infinity" and numeric strings
    try:
        return float(raw)
    except (TypeError, ValueError):
        return str(raw)


def parse_attributes(attributes: Any) -> Attributes:
    """Convert an OTLP ``KeyValue`` list into a flat attribute mapping.

    Entries without a string key are skipped. Later duplicates overwrite
    earlier ones.
    """
    result: Attributes = {}
    if not isinstance(attributes, list):
        return result
    for attribute in attributes:
        if not isinstance(attribute, Mapping):
            continue
        key = attribute.get("key")
        if not isinstance(key, str):
            continue
        result[key] = parse_any_value(attribute.get("value"))
    return result


def nanos_to_millis(nanos: str) -> int:
    """Convert a nanosecond timestamp string to integer milliseconds.

    Truncates with floor division; never rounds.

    Raises:
        ValueError: If ``nanos`` is not a base-10 integer.
    """
    if not _DIGITS.fullmatch(nanos):
        raise ValueError(f"not a base-10 integer: {nanos!r}")
    return int(nanos) // NANOS_PER_MILLI


def resolve_service_name(resource_attributes: Attributes) -> str:
    name = resource_attributes.get("service.name")
    if isinstance(name, str) and name:
        return name
    return UNKNOWN_SERVICE


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and value != ""


def _decode_span(
    raw: Any,
    service_name: str,
    resource_attributes: Attributes,
) -> Span | None:
    """Validate and normalize one OTLP span. Returns None if it is invalid."""
    if not isinstance(raw, Mapping):
        return None

    trace_id = raw.get("traceId")
    span_id = raw.get("spanId")
    name = raw.get("name")
    start_nanos = raw.get("startTimeUnixNano")
    end_nanos = raw.get("endTimeUnixNano")

    if not (_non_empty_str(trace_id) and _non_empty_str(span_id)):
        return None
    if not isinstance(name, str):
        return None
    if not (isinstance(start_nanos, str) and isinstance(end_nanos, str)):
        return None
    try:
        start_time = nanos_to_millis(start_nanos)
        end_time = nanos_to_millis(end_nanos)
    except ValueError:
        return None

    parent_span_id = raw.get("parentSpanId")
    if not _non_empty_str(parent_span_id):
        parent_span_id = None

    kind_code = raw.get("kind", 0)
    kind = SpanKind.UNSPECIFIED
    if isinstance(kind_code, int) and not isinstance(kind_code, bool):
        kind = SPAN_KIND_CODES.get(kind_code, SpanKind.UNSPECIFIED)

    status = SpanStatus.UNSET
    status_message: str | None = None
    raw_status = raw.get("status")
    if isinstance(raw_status, Mapping):
        status_code = raw_status.get("code", 0)
        if isinstance(status_code, int) and not isinstance(status_code, bool):
            status = SPAN_STATUS_CODES.get(status_code, SpanStatus.UNSET)
        message = raw_status.get("message")
        if isinstance(message, str):
            status_message = message

    return Span(
        trace_id=trace_id,
        span_id=span_id,
        parent_span_id=parent_span_id,
        name=name,
        kind=kind,
        start_time=start_time,
        end_time=end_time,
        duration=end_time - start_time,
        status=status,
        status_message=status_message,
        attributes=parse_attributes(raw.get("attributes")),
        service_name=service_name,
        resource_attributes=dict(resource_attributes),
    )


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def decode_export_request(payload: Any) -> list[Span]:
    """Decode an OTLP/JSON export request into spans.

    Args:
        payload: The parsed JSON body. Any type is accepted.

    Returns:
        The valid spans in document order. Empty if the payload is not an
        object or its ``resourceSpans`` is not a list.
    """
    if not isinstance(payload, Mapping):
        return []
    resource_spans = payload.get("resourceSpans")
    if not isinstance(resource_spans, list):
        return []

    spans: list[Span] = []
    skipped = 0
    for resource_block in resource_spans:
        if not isinstance(resource_block, Mapping):
            continue
        resource = resource_block.get("resource")
        resource_attributes = parse_attributes(resource.get("attributes") if isinstance(resource, Mapping) else None)
        service_name = resolve_service_name(resource_attributes)

        for scope_block in _as_list(resource_block.get("scopeSpans")):
            if not isinstance(scope_block, Mapping):
                continue
            for raw_span in _as_list(scope_block.get("spans")):
                span = _decode_span(raw_span, service_name, resource_attributes)
                if span is None:
                    skipped += 1
                    continue
                spans.append(span)

    if skipped:
        logger.debug("Skipped invalid spans in export request", skipped=skipped, decoded=len(spans))
    return spans
