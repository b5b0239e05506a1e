# src/otelmcp/contracts/errors.py
"""Exceptions and structured error results.

Core operations do not raise for bad telemetry or unmatched queries. The
exceptions here cover caller mistakes (an unparseable filter expression) and
are converted to ``ErrorResult`` dicts, or ``Error: ...`` text, at the tool
boundary.
"""

from typing import TypedDict


class OtelMcpError(Exception):
    """Base class for otel-mcp errors."""


class FilterParseError(OtelMcpError, ValueError):
    """Raised when a filter expression cannot be parsed.

    Attributes:
        segment: The condition text that failed to parse, or None when the
            expression as a whole produced no conditions.
        message: Human-readable error description.
    """

    def __init__(self, message: str, segment: str | None = None) -> None:
        self.message = message
        self.segment = segment
        super().__init__(message)


class ForwardingError(OtelMcpError):
    """Raised when a secondary instance cannot reach the primary."""


class ErrorResult(TypedDict):
    """Structured error returned instead of a result."""

    error: str
