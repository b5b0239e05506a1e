# src/otelmcp/mcp/analyzers/spans.py
"""Span-level tool: query_spans."""

from __future__ import annotations

from otelmcp.mcp.analyzers.traces import since_window
from otelmcp.mcp.formatters import Column, format_duration, format_table, truncate
from otelmcp.store.queries import SpanFilter, SpanQueryResult, TraceQueryEngine


def _describe_filters(
    name: str | None,
    service: str | None,
    min_duration_ms: float | None,
    has_error: bool,
    attribute: str | None,
    filter_expression: str | None,
) -> str:
    filters: list[str] = []
    if name:
        filters.append(f'name contains "{name}"')
    if service:
        filters.append(f'service="{service}"')
    if min_duration_ms:
        filters.append(f"min_duration_ms={min_duration_ms:g}")
    if has_error:
        filters.append("has_error=true")
    if attribute:
        filters.append(f'attribute="{attribute}"')
    if filter_expression:
        filters.append(f'filter="{filter_expression}"')
    return f"Spans matching: {', '.join(filters)}" if filters else "All spans"


def query_spans(
    engine: TraceQueryEngine,
    *,
    name: str | None = None,
    service: str | None = None,
    min_duration_ms: float | None = None,
    has_error: bool = False,
    attribute: str | None = None,
    filter: str | None = None,  # noqa: A002  # tool argument name
    since_minutes: float | None = None,
    since: str | None = None,
    limit: int = 50,
) -> str:
    """Table of the most recent spans matching every filter."""
    window_minutes, since_timestamp = since_window(since, since_minutes)
    result = engine.query_spans(
        SpanFilter(
            name=name,
            service=service,
            min_duration_ms=min_duration_ms,
            has_error=has_error,
            attribute=attribute,
            expression=filter,
            since_minutes=window_minutes,
            since_timestamp=since_timestamp,
            limit=limit,
        )
    )
    if not isinstance(result, SpanQueryResult):
        return f"Error: {result['error']}"
    if not result.spans:
        return "No spans found matching criteria."

    header = _describe_filters(name, service, min_duration_ms, has_error, attribute, filter)
    columns = [
        Column("SPAN NAME", 32),
        Column("SERVICE", 14),
        Column("DURATION", 10, align="right"),
        Column("TRACE ID", 16),
    ]
    rows = [
        [
            truncate(span.name, 32),
            span.service_name,
            format_duration(span.duration),
            truncate(span.trace_id, 16),
        ]
        for span in result.spans
    ]
    summary = f"{len(result.spans)} spans across {result.trace_count} traces"
    return f"{header}\n\n{format_table(columns, rows)}\n\n{summary}"
