# src/otelmcp/mcp/analyzers/traces.py
"""Trace-level tools: list_traces, get_trace.

All functions accept the query engine as their first parameter and return
the text shown to the agent.
"""

from __future__ import annotations

from datetime import UTC, datetime

from otelmcp.contracts import LookupStatus
from otelmcp.mcp.formatters import Column, format_duration, format_span_tree, format_table, truncate
from otelmcp.store.queries import TraceFilter, TraceQueryEngine

DEFAULT_SINCE_MINUTES = 30
MIN_TRACE_ID_LENGTH = 6
MAX_AMBIGUOUS_LISTED = 5


def parse_since(since: str | None) -> int | None:
    """Parse an ISO-8601 timestamp into epoch milliseconds.

    Naive timestamps are taken as UTC. Returns None for a missing or
    unparseable value so the caller falls back to ``since_minutes``.
    """
    if not since:
        return None
    try:
        parsed = datetime.fromisoformat(since.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return int(parsed.timestamp() * 1000)


def since_window(since: str | None, since_minutes: float | None) -> tuple[float | None, int | None]:
    """Resolve the (since_minutes, since_timestamp) pair for a query.

    A parseable ``since`` wins; otherwise ``since_minutes`` applies, defaulting
    to the last 30 minutes.
    """
    since_timestamp = parse_since(since)
    if since_timestamp is not None:
        return None, since_timestamp
    return (DEFAULT_SINCE_MINUTES if since_minutes is None else since_minutes), None


def list_traces(
    engine: TraceQueryEngine,
    *,
    service: str | None = None,
    has_errors: bool = False,
    min_duration_ms: float | None = None,
    since_minutes: float | None = None,
    since: str | None = None,
    limit: int = 20,
    receiver_url: str = "http://localhost:4318",
) -> str:
    """Table of the most recent traces matching the filters."""
    window_minutes, since_timestamp = since_window(since, since_minutes)
    traces = engine.list_traces(
        TraceFilter(
            service=service,
            has_errors=has_errors,
            min_duration_ms=min_duration_ms,
            since_minutes=window_minutes,
            since_timestamp=since_timestamp,
            limit=limit,
        )
    )

    if not traces:
        return (
            "No traces found.\n\n"
            f"Try adjusting filters or check that your app is sending traces to {receiver_url}/v1/traces"
        )

    header = f"Recent Traces ({len(traces)} of {engine.store.trace_count})"
    columns = [
        Column("TRACE ID", 16),
        Column("SERVICE", 14),
        Column("DURATION", 10, align="right"),
        Column("SPANS", 6, align="right"),
        Column("ERRORS", 6, align="right"),
        Column("ROOT", 24),
    ]
    rows = [
        [
            truncate(trace.trace_id, 16),
            trace.services[0] if trace.services else "unknown",
            format_duration(trace.duration),
            str(trace.span_count),
            str(trace.error_count),
            truncate(trace.root_span.name if trace.root_span else "-", 24),
        ]
        for trace in traces
    ]
    return f"{header}\n\n{format_table(columns, rows)}\n\nUse get_trace for full span tree."


def get_trace(engine: TraceQueryEngine, *, trace_id: str, show_attributes: bool = False) -> str:
    """Header and span tree for one trace, resolved by full ID or prefix."""
    if len(trace_id) < MIN_TRACE_ID_LENGTH:
        return f"Error: trace_id must be at least {MIN_TRACE_ID_LENGTH} characters"

    lookup = engine.resolve_trace(trace_id)
    if lookup.status is LookupStatus.AMBIGUOUS:
        listed = "\n".join(f"  {match}" for match in lookup.matches[:MAX_AMBIGUOUS_LISTED])
        extra = len(lookup.matches) - MAX_AMBIGUOUS_LISTED
        more = f"\n  ...and {extra} more" if extra > 0 else ""
        return f"Ambiguous trace ID prefix '{trace_id}' matches:\n{listed}{more}"
    if lookup.trace is None:
        return f"Trace not found: {trace_id}"

    trace = lookup.trace
    error_info = f", {trace.error_count} errors" if trace.error_count > 0 else ""
    header = "\n".join(
        [
            f"Trace {trace.trace_id}",
            "",
            f"Services: {', '.join(trace.services)}",
            f"Duration: {format_duration(trace.duration)}",
            f"Spans: {trace.span_count}{error_info}",
        ]
    )
    tree = format_span_tree(trace.spans, show_attributes)
    return f"{header}\n\nSPAN TREE\n{'-' * 64}\n{tree}"
