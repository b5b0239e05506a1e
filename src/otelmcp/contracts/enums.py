# src/otelmcp/contracts/enums.py
"""Status codes and kinds shared across the receiver, store and tool layers.

Wire codes are translated into these enums once, at decode time. Nothing past
the decoder ever sees a numeric OTLP code.
"""

from enum import StrEnum


class SpanKind(StrEnum):
    """Role of a span in a trace (OTLP ``Span.kind``)."""

    UNSPECIFIED = "unspecified"
    INTERNAL = "internal"
    SERVER = "server"
    CLIENT = "client"
    PRODUCER = "producer"
    CONSUMER = "consumer"


class SpanStatus(StrEnum):
    """Outcome of a span (OTLP ``Status.code``)."""

    UNSET = "unset"
    OK = "ok"
    ERROR = "error"


class LookupStatus(StrEnum):
    """Outcome of resolving a full or abbreviated trace ID."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"


# OTLP numeric codes. Unmapped codes fall back to UNSPECIFIED/UNSET.
SPAN_KIND_CODES: dict[int, SpanKind] = {
    0: SpanKind.UNSPECIFIED,
    1: SpanKind.INTERNAL,
    2: SpanKind.SERVER,
    3: SpanKind.CLIENT,
    4: SpanKind.PRODUCER,
    5: SpanKind.CONSUMER,
}

SPAN_STATUS_CODES: dict[int, SpanStatus] = {
    0: SpanStatus.UNSET,
    1: SpanStatus.OK,
    2: SpanStatus.ERROR,
}
