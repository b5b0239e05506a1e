# src/otelmcp/mcp/analyzers/summary.py
"""Overview tool: get_summary."""

from __future__ import annotations

from otelmcp.mcp.formatters import format_minutes_range, truncate
from otelmcp.store.queries import TraceQueryEngine


def get_summary(engine: TraceQueryEngine, *, receiver_url: str = "http://localhost:4318") -> str:
    """Storage totals, per-service counts and recent errors."""
    summary = engine.get_summary()

    if summary.trace_count == 0:
        return "\n".join(
            [
                "otel-mcp Summary",
                "",
                "No traces collected yet.",
                "",
                f"Send traces to {receiver_url}/v1/traces",
            ]
        )

    lines = [
        "otel-mcp Summary",
        "",
        f"Storage: {summary.trace_count} traces, {summary.span_count} spans",
        f"Time range: {format_minutes_range(summary.oldest_timestamp, summary.newest_timestamp)}",
        "",
        "Services:",
    ]
    for service, stats in summary.services.items():
        error_part = f"  {stats.error_count} errors" if stats.error_count > 0 else ""
        lines.append(
            f"  {service:<16} {stats.trace_count:>4} traces  {stats.span_count:>5} spans{error_part}"
        )

    if summary.recent_errors:
        lines.append("")
        lines.append("Recent errors:")
        for error in summary.recent_errors:
            lines.append(f"  [{error.trace_id[:8]}] {error.service}: {truncate(error.message, 50)}")

    lines.append("")
    lines.append("Use list_traces, get_trace, or query_spans for details.")
    return "\n".join(lines)
