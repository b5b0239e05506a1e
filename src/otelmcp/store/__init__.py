# src/otelmcp/store/__init__.py
"""In-memory trace storage, filter expressions and queries."""

from otelmcp.store.filter_parser import (
    Condition,
    ParsedFilter,
    matches_filter,
    parse_filter,
)
from otelmcp.store.queries import (
    ErrorSample,
    ServiceStats,
    SpanFilter,
    SpanQueryResult,
    StoreSummary,
    TraceFilter,
    TraceLookup,
    TraceQueryEngine,
)
from otelmcp.store.trace_store import IngestResult, TraceStore

__all__ = [
    "Condition",
    "ErrorSample",
    "IngestResult",
    "ParsedFilter",
    "ServiceStats",
    "SpanFilter",
    "SpanQueryResult",
    "StoreSummary",
    "TraceFilter",
    "TraceLookup",
    "TraceQueryEngine",
    "TraceStore",
    "matches_filter",
    "parse_filter",
]
