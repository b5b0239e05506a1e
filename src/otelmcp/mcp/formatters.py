# src/otelmcp/mcp/formatters.py
"""Plain-text rendering for tool output.

Agents read these strings directly, so output is compact fixed-width text:
durations, padded tables and an indented span tree.
"""

from __future__ import annotations

import math
import time

from otelmcp.contracts import AttributeValue, Span, SpanStatus, format_attribute_value

# Shown first (in this order) when attributes are requested
PRIORITY_ATTRIBUTES: tuple[str, ...] = (
    "http.method",
    "http.url",
    "http.status_code",
    "http.route",
    "db.system",
    "db.statement",
    "db.operation",
    "exception.type",
    "exception.message",
    "rpc.method",
    "rpc.service",
)

# Attribute namespaces that describe the process, not the operation
SKIP_PREFIXES: tuple[str, ...] = ("telemetry.", "process.", "host.", "os.")

MAX_OTHER_ATTRIBUTES = 5
MAX_ATTRIBUTE_LENGTH = 100


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def format_duration(ms: float) -> str:
    """``<1ms``, ``250ms``, ``1.5s`` or ``42s``."""
    if ms < 1:
        return "<1ms"
    if ms < 1000:
        return f"{_round_half_up(ms)}ms"
    if ms < 10_000:
        return f"{ms / 1000:.1f}s"
    return f"{_round_half_up(ms / 1000)}s"


def format_time_range(start_ms: int, end_ms: int, base_ms: int) -> str:
    """Offsets of a span relative to the trace start, e.g. ``[0ms-120ms]``."""
    return f"[{_round_half_up(start_ms - base_ms)}ms-{_round_half_up(end_ms - base_ms)}ms]"


def format_relative_time(timestamp_ms: int, now_ms: int | None = None) -> str:
    now = int(time.time() * 1000) if now_ms is None else now_ms
    diff = now - timestamp_ms
    if diff < 60_000:
        return "just now"
    if diff < 3_600_000:
        return f"{diff // 60_000} min ago"
    if diff < 86_400_000:
        return f"{diff // 3_600_000} hours ago"
    return f"{diff // 86_400_000} days ago"


def format_minutes_range(oldest_ms: int | None, newest_ms: int | None) -> str:
    if not oldest_ms or not newest_ms:
        return "no data"
    range_minutes = math.ceil((newest_ms - oldest_ms) / 60_000)
    if range_minutes < 1:
        return "less than a minute"
    if range_minutes == 1:
        return "1 minute"
    return f"{range_minutes} minutes"


def truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


class Column:
    """A fixed-width table column."""

    __slots__ = ("align", "header", "width")

    def __init__(self, header: str, width: int, align: str = "left") -> None:
        self.header = header
        self.width = width
        self.align = align

    def pad(self, value: str) -> str:
        cell = truncate(value, self.width)
        return cell.rjust(self.width) if self.align == "right" else cell.ljust(self.width)


def format_table(columns: list[Column], rows: list[list[str]]) -> str:
    header = "  ".join(col.pad(col.header) for col in columns)
    separator = "  ".join("-" * col.width for col in columns)
    lines = [header, separator]
    for row in rows:
        cells = [row[i] if i < len(row) else "" for i in range(len(columns))]
        lines.append("  ".join(col.pad(cell) for col, cell in zip(columns, cells, strict=True)))
    return "\n".join(lines)


class _SpanNode:
    __slots__ = ("children", "span")

    def __init__(self, span: Span) -> None:
        self.span = span
        self.children: list[_SpanNode] = []


def _build_tree(spans: list[Span] | tuple[Span, ...]) -> list[_SpanNode]:
    nodes = {span.span_id: _SpanNode(span) for span in spans}
    roots: list[_SpanNode] = []
    for span in spans:
        node = nodes[span.span_id]
        parent = nodes.get(span.parent_span_id) if span.parent_span_id else None
        if parent is not None and parent is not node:
            parent.children.append(node)
        else:
            roots.append(node)

    def sort_children(level: list[_SpanNode]) -> None:
        level.sort(key=lambda n: n.span.start_time)
        for child in level:
            sort_children(child.children)

    sort_children(roots)
    return roots


def display_attributes(span: Span) -> list[tuple[str, AttributeValue]]:
    """Priority attributes, then up to five others outside the skip prefixes."""
    result: list[tuple[str, AttributeValue]] = []
    for key in PRIORITY_ATTRIBUTES:
        if key in span.attributes:
            result.append((key, span.attributes[key]))

    others = 0
    for key, value in span.attributes.items():
        if key in PRIORITY_ATTRIBUTES or key.startswith(SKIP_PREFIXES):
            continue
        if others >= MAX_OTHER_ATTRIBUTES:
            break
        result.append((key, value))
        others += 1
    return result


def _format_attribute(value: AttributeValue) -> str:
    text = format_attribute_value(value)
    if isinstance(value, str) and len(text) > MAX_ATTRIBUTE_LENGTH:
        return text[: MAX_ATTRIBUTE_LENGTH - 3] + "..."
    return text


def _format_node(
    node: _SpanNode,
    prefix: str,
    is_last: bool,
    is_root: bool,
    base_time: int,
    show_attributes: bool,
    lines: list[str],
) -> None:
    span = node.span
    time_range = format_time_range(span.start_time, span.end_time, base_time)
    connector = "" if is_root else ("└── " if is_last else "├── ")
    status = " [ERROR]" if span.status is SpanStatus.ERROR else ""
    lines.append(f"{prefix}{connector}{time_range} {span.name} ({span.kind}){status}")

    child_prefix = "" if is_root else prefix + ("    " if is_last else "│   ")
    if show_attributes:
        for key, value in display_attributes(span):
            lines.append(f"{child_prefix}    {key}: {_format_attribute(value)}")

    for i, child in enumerate(node.children):
        _format_node(child, child_prefix, i == len(node.children) - 1, False, base_time, show_attributes, lines)


def format_span_tree(spans: list[Span] | tuple[Span, ...], show_attributes: bool = False) -> str:
    """Render spans as an indented parent/child tree with relative timings."""
    if not spans:
        return "No spans"
    base_time = min(span.start_time for span in spans)
    lines: list[str] = []
    for root in _build_tree(spans):
        _format_node(root, "", True, True, base_time, show_attributes, lines)
    return "\n".join(lines)
