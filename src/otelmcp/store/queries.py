# src/otelmcp/store/queries.py
"""Read-only queries over the trace store.

Every public method holds the store's read lock for its whole duration, so a
query never observes a half-applied ingest or a partially evicted trace.

Time bounds are inclusive lower bounds in epoch milliseconds. An absolute
``since_timestamp`` takes precedence over the relative ``since_minutes``;
when neither is set (or ``since_minutes`` is 0) there is no bound.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from otelmcp.contracts import (
    ErrorResult,
    FilterParseError,
    LookupStatus,
    Span,
    Trace,
    format_attribute_value,
)
from otelmcp.store.filter_parser import ParsedFilter, matches_filter, parse_filter
from otelmcp.store.trace_store import TraceStore

DEFAULT_TRACE_LIMIT = 20
MAX_TRACE_LIMIT = 100
DEFAULT_SPAN_LIMIT = 50
MAX_SPAN_LIMIT = 200
RECENT_ERROR_COUNT = 5


@dataclass(frozen=True, slots=True)
class TraceFilter:
    """Criteria for ``list_traces``. Unset (or zero) criteria are ignored."""

    service: str | None = None
    has_errors: bool = False
    min_duration_ms: float | None = None
    since_minutes: float | None = None
    since_timestamp: int | None = None
    limit: int = DEFAULT_TRACE_LIMIT


@dataclass(frozen=True, slots=True)
class SpanFilter:
    """Criteria for ``query_spans``. Unset (or zero) criteria are ignored.

    ``attribute`` is ``"key"`` (the attribute exists) or ``"key=value"``
    (its string form equals value). ``expression`` is a filter expression,
    see ``otelmcp.store.filter_parser``.
    """

    name: str | None = None
    service: str | None = None
    min_duration_ms: float | None = None
    has_error: bool = False
    attribute: str | None = None
    expression: str | None = None
    since_minutes: float | None = None
    since_timestamp: int | None = None
    limit: int = DEFAULT_SPAN_LIMIT


@dataclass(frozen=True, slots=True)
class SpanQueryResult:
    """Matching spans (newest first, truncated) and the number of distinct
    traces among all matches before truncation."""

    spans: list[Span]
    trace_count: int


@dataclass(frozen=True, slots=True)
class TraceLookup:
    """Result of resolving a full or abbreviated trace ID."""

    status: LookupStatus
    trace: Trace | None = None
    matches: tuple[str, ...] = ()


@dataclass(slots=True)
class ServiceStats:
    trace_count: int = 0
    span_count: int = 0
    error_count: int = 0


@dataclass(frozen=True, slots=True)
class ErrorSample:
    trace_id: str
    service: str
    message: str
    time: int


@dataclass(frozen=True, slots=True)
class StoreSummary:
    trace_count: int
    span_count: int
    oldest_timestamp: int | None
    newest_timestamp: int | None
    services: dict[str, ServiceStats] = field(default_factory=dict)
    recent_errors: list[ErrorSample] = field(default_factory=list)


def error_message_for(span: Span) -> str:
    """Best available description of an error span.

    Falls back from the status message to the ``exception.message``
    attribute to the span name.
    """
    if span.status_message:
        return span.status_message
    exception_message = span.attributes.get("exception.message")
    if exception_message is not None and exception_message != "":
        return format_attribute_value(exception_message)
    return span.name


def attribute_matches(span: Span, attribute_filter: str) -> bool:
    """Apply a ``key`` or ``key=value`` filter to a span's own attributes."""
    key, has_value, expected = attribute_filter.partition("=")
    if not key:
        return False
    if key not in span.attributes:
        return False
    if has_value and format_attribute_value(span.attributes[key]) != expected:
        return False
    return True


class TraceQueryEngine:
    """Read-only query operations over a ``TraceStore``.

    Args:
        store: The shared store.
        clock: Returns the current time in epoch seconds. Injected so tests
            can pin ``since_minutes`` windows.
    """

    def __init__(self, store: TraceStore, *, clock: Callable[[], float] = time.time) -> None:
        self._store = store
        self._clock = clock

    @property
    def store(self) -> TraceStore:
        return self._store

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _lower_bound(self, since_minutes: float | None, since_timestamp: int | None) -> int | None:
        if since_timestamp is not None:
            return since_timestamp
        if since_minutes:
            return self._now_ms() - int(since_minutes * 60_000)
        return None

    def list_traces(self, criteria: TraceFilter | None = None) -> list[Trace]:
        """Newest traces matching the criteria, at most ``min(limit, 100)``."""
        criteria = criteria or TraceFilter()
        limit = min(criteria.limit, MAX_TRACE_LIMIT)
        since = self._lower_bound(criteria.since_minutes, criteria.since_timestamp)

        with self._store.reading():
            # an unknown service falls back to every trace
            if criteria.service and self._store.has_service(criteria.service):
                candidates = self._store.trace_ids_for_service(criteria.service)
            else:
                candidates = self._store.trace_ids()

            traces: list[Trace] = []
            for trace_id in candidates:
                trace = self._store.build_trace(trace_id)
                if trace is None:
                    continue
                if since is not None and trace.start_time < since:
                    continue
                if criteria.has_errors and trace.error_count == 0:
                    continue
                if criteria.min_duration_ms and trace.duration < criteria.min_duration_ms:
                    continue
                traces.append(trace)

        traces.sort(key=lambda t: t.start_time, reverse=True)
        return traces[: max(limit, 0)]

    def query_spans(self, criteria: SpanFilter | None = None) -> SpanQueryResult | ErrorResult:
        """Newest spans matching every criterion, at most ``min(limit, 200)``.

        Returns:
            The matches, or ``{"error": ...}`` if ``expression`` does not
            parse. Nothing is scanned in that case.
        """
        criteria = criteria or SpanFilter()
        limit = min(criteria.limit, MAX_SPAN_LIMIT)
        since = self._lower_bound(criteria.since_minutes, criteria.since_timestamp)

        parsed: ParsedFilter | None = None
        if criteria.expression is not None and criteria.expression.strip():
            try:
                parsed = parse_filter(criteria.expression)
            except FilterParseError as e:
                return {"error": e.message}

        name_fragment = criteria.name.lower() if criteria.name else None
        matching: list[Span] = []
        trace_ids: set[str] = set()

        with self._store.reading():
            for span in self._store.iter_spans():
                if since is not None and span.start_time < since:
                    continue
                if criteria.service and span.service_name != criteria.service:
                    continue
                if name_fragment is not None and name_fragment not in span.name.lower():
                    continue
                if criteria.min_duration_ms and span.duration < criteria.min_duration_ms:
                    continue
                if criteria.has_error and not span.is_error:
                    continue
                if criteria.attribute and not attribute_matches(span, criteria.attribute):
                    continue
                if parsed is not None and not matches_filter(span, parsed):
                    continue
                matching.append(span)
                trace_ids.add(span.trace_id)

        matching.sort(key=lambda s: s.start_time, reverse=True)
        return SpanQueryResult(spans=matching[: max(limit, 0)], trace_count=len(trace_ids))

    def resolve_trace(self, trace_id: str) -> TraceLookup:
        """Resolve a full ID or prefix, distinguishing not-found from ambiguous."""
        with self._store.reading():
            trace = self._store.get_trace(trace_id)
            if trace is not None:
                return TraceLookup(status=LookupStatus.FOUND, trace=trace, matches=(trace.trace_id,))
            matches = tuple(self._store.find_traces_by_prefix(trace_id))
        if len(matches) > 1:
            return TraceLookup(status=LookupStatus.AMBIGUOUS, matches=matches)
        return TraceLookup(status=LookupStatus.NOT_FOUND)

    def get_summary(self) -> StoreSummary:
        """Counts, per-service statistics and the most recent errors."""
        services: dict[str, ServiceStats] = {}
        errors: list[ErrorSample] = []
        oldest: int | None = None
        newest: int | None = None

        with self._store.reading():
            for span in self._store.iter_spans():
                if oldest is None or span.start_time < oldest:
                    oldest = span.start_time
                if newest is None or span.start_time > newest:
                    newest = span.start_time

                stats = services.setdefault(span.service_name, ServiceStats())
                stats.span_count += 1
                if span.is_error:
                    stats.error_count += 1
                    errors.append(
                        ErrorSample(
                            trace_id=span.trace_id,
                            service=span.service_name,
                            message=error_message_for(span),
                            time=span.start_time,
                        )
                    )

            for service, count in self._store.service_trace_counts().items():
                if service in services:
                    services[service].trace_count = count

            trace_count = self._store.trace_count
            span_count = self._store.span_count

        errors.sort(key=lambda e: e.time, reverse=True)
        return StoreSummary(
            trace_count=trace_count,
            span_count=span_count,
            oldest_timestamp=oldest,
            newest_timestamp=newest,
            services=services,
            recent_errors=errors[:RECENT_ERROR_COUNT],
        )
