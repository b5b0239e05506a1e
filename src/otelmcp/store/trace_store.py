# src/otelmcp/store/trace_store.py
"""Bounded in-memory span store with trace-atomic eviction.

State is four independent indices, each serving a different read path:

- ``_spans``: (trace_id, span_id) -> Span. Span scans and summaries.
- ``_trace_index``: trace_id -> ordered set of span keys. Trace materialization.
- ``_service_index``: service -> ordered set of trace_ids. Service filtering.
- ``_trace_timestamps``: trace_id -> latest span start seen. Eviction order.

All four are changed only by ``_upsert``, ``_evict_trace`` and ``clear``,
each of which runs under the write lock. Ordered sets are dicts with ``None``
values, so iteration follows insertion order and overwriting a span keeps
its original position.

Capacity: after each ingest, whole traces are evicted (smallest tracked
timestamp first) until both ``max_spans`` and ``max_traces`` hold. A trace is
never partially evicted.

Thread Safety:
    Safe for concurrent use. Writes (ingest, clear, eviction) are serialized
    and exclusive; reads share the lock. ``reading()`` lets a caller hold the
    read lock across several accessor calls so a multi-step query sees one
    consistent state.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass

import structlog

from otelmcp.contracts import Span, SpanKey, Trace
from otelmcp.core.config import StoreConfig
from otelmcp.store.locking import ReadWriteLock

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class IngestResult:
    """Outcome of one ``ingest`` call."""

    accepted: int
    evicted_traces: int


class TraceStore:
    """Span store indexed by trace and service, bounded by capacity.

    Example:
        store = TraceStore(StoreConfig(max_traces=100, max_spans=1000))
        store.ingest(decode_export_request(payload))
        trace = store.get_trace("4bf92f")
    """

    def __init__(self, config: StoreConfig | None = None) -> None:
        self._config = config if config is not None else StoreConfig()
        self._lock = ReadWriteLock()
        self._spans: dict[SpanKey, Span] = {}
        self._trace_index: dict[str, dict[SpanKey, None]] = {}
        self._service_index: dict[str, dict[str, None]] = {}
        self._trace_timestamps: dict[str, int] = {}

    @property
    def config(self) -> StoreConfig:
        return self._config

    # === Writes ===

    def ingest(self, spans: Iterable[Span]) -> IngestResult:
        """Store a batch of spans, then enforce capacity.

        The whole batch, including any eviction it triggers, is applied under
        one write lock: readers see either none of it or all of it.

        Args:
            spans: Decoded spans. A span whose (trace_id, span_id) is already
                stored replaces the stored one.

        Returns:
            How many spans were written and how many traces were evicted.
        """
        batch = list(spans)
        with self._lock.write():
            for span in batch:
                self._upsert(span)
            evicted = self._enforce_capacity()
            span_count = len(self._spans)
            trace_count = len(self._trace_index)
        if batch:
            logger.debug(
                "Ingested spans",
                accepted=len(batch),
                evicted_traces=evicted,
                span_count=span_count,
                trace_count=trace_count,
            )
        return IngestResult(accepted=len(batch), evicted_traces=evicted)

    def clear(self) -> None:
        """Drop every span and index entry."""
        with self._lock.write():
            self._spans.clear()
            self._trace_index.clear()
            self._service_index.clear()
            self._trace_timestamps.clear()

    def _upsert(self, span: Span) -> None:
        key = span.key
        previous = self._spans.get(key)
        self._spans[key] = span
        self._trace_index.setdefault(span.trace_id, {})[key] = None

        tracked = self._trace_timestamps.get(span.trace_id)
        if tracked is None or span.start_time > tracked:
            self._trace_timestamps[span.trace_id] = span.start_time

        self._service_index.setdefault(span.service_name, {})[span.trace_id] = None
        if previous is not None and previous.service_name != span.service_name:
            self._unlink_service_if_unused(previous.service_name, span.trace_id)

    def _unlink_service_if_unused(self, service: str, trace_id: str) -> None:
        """Drop trace_id from a service once no span of the trace carries it."""
        for key in self._trace_index[trace_id]:
            if self._spans[key].service_name == service:
                return
        traces = self._service_index.get(service)
        if traces is None:
            return
        traces.pop(trace_id, None)
        if not traces:
            del self._service_index[service]

    def _enforce_capacity(self) -> int:
        evicted = 0
        while len(self._spans) > self._config.max_spans or len(self._trace_index) > self._config.max_traces:
            oldest = self._find_oldest_trace()
            if oldest is None:
                break
            self._evict_trace(oldest)
            evicted += 1
        return evicted

    def _find_oldest_trace(self) -> str | None:
        # Strict comparison: the first trace encountered wins ties.
        oldest_id: str | None = None
        oldest_time: int | None = None
        for trace_id, timestamp in self._trace_timestamps.items():
            if oldest_time is None or timestamp < oldest_time:
                oldest_id = trace_id
                oldest_time = timestamp
        return oldest_id

    def _evict_trace(self, trace_id: str) -> None:
        keys = self._trace_index.pop(trace_id, None)
        self._trace_timestamps.pop(trace_id, None)
        if keys is None:
            return
        for key in keys:
            span = self._spans.pop(key)
            traces = self._service_index.get(span.service_name)
            if traces is None:
                continue
            traces.pop(trace_id, None)
            if not traces:
                del self._service_index[span.service_name]
        logger.debug("Evicted trace", trace_id=trace_id, span_count=len(keys))

    # === Reads ===

    @contextmanager
    def reading(self) -> Iterator[None]:
        """Hold the read lock across several reads.

        Example:
            with store.reading():
                ids = store.trace_ids()
                traces = [store.build_trace(i) for i in ids]
        """
        with self._lock.read():
            yield

    @property
    def span_count(self) -> int:
        with self._lock.read():
            return len(self._spans)

    @property
    def trace_count(self) -> int:
        with self._lock.read():
            return len(self._trace_index)

    def iter_spans(self) -> list[Span]:
        """Every stored span, in insertion order."""
        with self._lock.read():
            return list(self._spans.values())

    def trace_ids(self) -> list[str]:
        with self._lock.read():
            return list(self._trace_index)

    def trace_ids_for_service(self, service: str) -> list[str]:
        """Trace IDs with at least one span from ``service``."""
        with self._lock.read():
            return list(self._service_index.get(service, ()))

    def has_service(self, service: str) -> bool:
        with self._lock.read():
            return service in self._service_index

    def service_trace_counts(self) -> dict[str, int]:
        """Number of traces per service, from the service index."""
        with self._lock.read():
            return {service: len(traces) for service, traces in self._service_index.items()}

    def find_traces_by_prefix(self, prefix: str) -> list[str]:
        """All stored trace IDs starting with ``prefix``."""
        with self._lock.read():
            return [trace_id for trace_id in self._trace_index if trace_id.startswith(prefix)]

    def get_trace(self, trace_id: str) -> Trace | None:
        """Materialize a trace by exact ID or unique prefix.

        Returns None when nothing matches and also when the prefix matches
        more than one trace; ``find_traces_by_prefix`` tells the two apart.
        """
        with self._lock.read():
            if trace_id in self._trace_index:
                return self._build_trace(trace_id)
            matches = self.find_traces_by_prefix(trace_id)
            if len(matches) == 1:
                return self._build_trace(matches[0])
            return None

    def build_trace(self, trace_id: str) -> Trace | None:
        """Materialize the trace with exactly this ID, or None."""
        with self._lock.read():
            return self._build_trace(trace_id)

    def _build_trace(self, trace_id: str) -> Trace | None:
        keys = self._trace_index.get(trace_id)
        if not keys:
            return None
        # sorted() is stable: equal start times keep insertion order
        spans = sorted((self._spans[key] for key in keys), key=lambda s: s.start_time)
        span_ids = {span.span_id for span in spans}

        root_span = next(
            (s for s in spans if s.parent_span_id is None or s.parent_span_id not in span_ids),
            None,
        )
        services = tuple(dict.fromkeys(s.service_name for s in spans))
        start_time = min(s.start_time for s in spans)
        end_time = max(s.end_time for s in spans)

        return Trace(
            trace_id=trace_id,
            root_span=root_span,
            spans=tuple(spans),
            services=services,
            start_time=start_time,
            end_time=end_time,
            duration=end_time - start_time,
            span_count=len(spans),
            error_count=sum(1 for s in spans if s.is_error),
        )
