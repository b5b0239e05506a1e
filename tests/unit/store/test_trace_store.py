"""Tests for TraceStore indexing, lookup and capacity eviction."""

from __future__ import annotations

import threading

from otelmcp.contracts import SpanStatus
from otelmcp.core.config import StoreConfig
from otelmcp.store import TraceStore
from tests.fixtures.factories import make_span


class TestIngest:
    def test_indexes_spans_by_trace_and_service(self, store: TraceStore) -> None:
        store.ingest(
            [
                make_span("t1", "a", service_name="api"),
                make_span("t1", "b", service_name="db"),
                make_span("t2", "c", service_name="api"),
            ]
        )

        assert store.span_count == 3
        assert store.trace_count == 2
        assert store.trace_ids() == ["t1", "t2"]
        assert store.trace_ids_for_service("api") == ["t1", "t2"]
        assert store.trace_ids_for_service("db") == ["t1"]
        assert store.service_trace_counts() == {"api": 2, "db": 1}

    def test_result_counts(self, small_store: TraceStore) -> None:
        result = small_store.ingest(
            [
                make_span("t1", start_time=1000),
                make_span("t2", start_time=2000),
                make_span("t3", start_time=3000),
            ]
        )

        assert result.accepted == 3
        assert result.evicted_traces == 1

    def test_empty_batch(self, store: TraceStore) -> None:
        result = store.ingest([])

        assert result.accepted == 0
        assert store.span_count == 0

    def test_same_key_replaces_span(self, store: TraceStore) -> None:
        store.ingest([make_span("t1", "a", name="first")])
        store.ingest([make_span("t1", "a", name="second")])

        assert store.span_count == 1
        trace = store.get_trace("t1")
        assert trace is not None
        assert trace.spans[0].name == "second"

    def test_same_span_id_in_different_traces_are_distinct(self, store: TraceStore) -> None:
        store.ingest([make_span("t1", "a"), make_span("t2", "a")])
        assert store.span_count == 2

    def test_overwrite_with_new_service_updates_service_index(self, store: TraceStore) -> None:
        store.ingest([make_span("t1", "a", service_name="old")])
        store.ingest([make_span("t1", "a", service_name="new")])

        assert store.trace_ids_for_service("new") == ["t1"]
        assert store.trace_ids_for_service("old") == []
        assert "old" not in store.service_trace_counts()
        assert not store.has_service("old")
        assert store.has_service("new")

    def test_overwrite_keeps_service_used_by_another_span(self, store: TraceStore) -> None:
        store.ingest([make_span("t1", "a", service_name="old"), make_span("t1", "b", service_name="old")])
        store.ingest([make_span("t1", "a", service_name="new")])

        assert store.trace_ids_for_service("old") == ["t1"]
        assert store.trace_ids_for_service("new") == ["t1"]

    def test_iter_spans_is_a_snapshot(self, store: TraceStore) -> None:
        store.ingest([make_span("t1", "a")])
        snapshot = store.iter_spans()
        store.ingest([make_span("t1", "b")])

        assert len(snapshot) == 1


class TestClear:
    def test_clear_removes_everything(self, store: TraceStore) -> None:
        store.ingest([make_span("t1", "a"), make_span("t2", "b", service_name="db")])

        store.clear()

        assert store.span_count == 0
        assert store.trace_count == 0
        assert store.trace_ids() == []
        assert store.service_trace_counts() == {}
        assert store.get_trace("t1") is None

    def test_store_is_usable_after_clear(self, store: TraceStore) -> None:
        store.ingest([make_span("t1", "a")])
        store.clear()
        store.ingest([make_span("t2", "b")])

        assert store.trace_ids() == ["t2"]


class TestGetTrace:
    def test_exact_id(self, store: TraceStore) -> None:
        store.ingest([make_span("abc123def456789")])

        trace = store.get_trace("abc123def456789")

        assert trace is not None
        assert trace.trace_id == "abc123def456789"

    def test_unique_prefix(self, store: TraceStore) -> None:
        store.ingest([make_span("abc123def456789"), make_span("xyz987", "b")])

        trace = store.get_trace("abc123")

        assert trace is not None
        assert trace.trace_id == "abc123def456789"

    def test_ambiguous_prefix_returns_none(self, store: TraceStore) -> None:
        store.ingest([make_span("abc123", "a"), make_span("abc456", "b")])

        assert store.get_trace("abc") is None
        assert store.find_traces_by_prefix("abc") == ["abc123", "abc456"]

    def test_exact_match_wins_over_longer_ids_sharing_the_prefix(self, store: TraceStore) -> None:
        store.ingest([make_span("abc", "a"), make_span("abcdef", "b")])

        trace = store.get_trace("abc")

        assert trace is not None
        assert trace.trace_id == "abc"

    def test_missing(self, store: TraceStore) -> None:
        assert store.get_trace("nothing") is None
        assert store.build_trace("nothing") is None

    def test_build_trace_does_not_resolve_prefixes(self, store: TraceStore) -> None:
        store.ingest([make_span("abc123def456789")])
        assert store.build_trace("abc123") is None


class TestTraceAggregate:
    def test_aggregate_fields(self, store: TraceStore) -> None:
        store.ingest(
            [
                make_span("t", "child", parent_span_id="root", start_time=1010, duration=20, service_name="db"),
                make_span("t", "root", start_time=1000, duration=100, service_name="api"),
                make_span(
                    "t",
                    "err",
                    parent_span_id="root",
                    start_time=1050,
                    duration=80,
                    status=SpanStatus.ERROR,
                    service_name="api",
                ),
            ]
        )

        trace = store.get_trace("t")

        assert trace is not None
        assert [s.span_id for s in trace.spans] == ["root", "child", "err"]
        assert trace.root_span is not None
        assert trace.root_span.span_id == "root"
        assert trace.services == ("api", "db")
        assert trace.start_time == 1000
        assert trace.end_time == 1130
        assert trace.duration == 130
        assert trace.span_count == 3
        assert trace.error_count == 1

    def test_ties_keep_insertion_order(self, store: TraceStore) -> None:
        store.ingest([make_span("t", "second-in", start_time=5), make_span("t", "later", start_time=5)])

        trace = store.get_trace("t")

        assert trace is not None
        assert [s.span_id for s in trace.spans] == ["second-in", "later"]

    def test_orphan_becomes_root(self, store: TraceStore) -> None:
        store.ingest(
            [
                make_span("t", "orphan", parent_span_id="never-received", start_time=10),
                make_span("t", "child", parent_span_id="orphan", start_time=20),
            ]
        )

        trace = store.get_trace("t")

        assert trace is not None
        assert trace.root_span is not None
        assert trace.root_span.span_id == "orphan"

    def test_parent_cycle_has_no_root(self, store: TraceStore) -> None:
        store.ingest(
            [
                make_span("t", "a", parent_span_id="b"),
                make_span("t", "b", parent_span_id="a"),
            ]
        )

        trace = store.get_trace("t")

        assert trace is not None
        assert trace.root_span is None


class TestEviction:
    def test_oldest_trace_evicted_by_max_traces(self, small_store: TraceStore) -> None:
        small_store.ingest([make_span("t1000", start_time=1000)])
        small_store.ingest([make_span("t2000", start_time=2000)])
        small_store.ingest([make_span("t3000", start_time=3000)])

        assert small_store.trace_ids() == ["t2000", "t3000"]
        assert small_store.get_trace("t1000") is None

    def test_eviction_order_uses_latest_start_in_trace(self, small_store: TraceStore) -> None:
        small_store.ingest([make_span("a", "1", start_time=1000)])
        small_store.ingest([make_span("b", "1", start_time=2000)])
        # A late span makes trace "a" the most recently active
        small_store.ingest([make_span("a", "2", start_time=5000)])
        small_store.ingest([make_span("c", "1", start_time=3000)])

        assert sorted(small_store.trace_ids()) == ["a", "c"]

    def test_eviction_by_max_spans_removes_whole_traces(self) -> None:
        store = TraceStore(StoreConfig(max_traces=100, max_spans=3))
        store.ingest([make_span("old", "1", start_time=1), make_span("old", "2", start_time=2)])
        store.ingest([make_span("new", "1", start_time=10), make_span("new", "2", start_time=11)])

        assert store.trace_ids() == ["new"]
        assert store.span_count == 2

    def test_trace_larger_than_max_spans_is_dropped(self) -> None:
        store = TraceStore(StoreConfig(max_traces=10, max_spans=2))
        store.ingest([make_span("big", str(i), start_time=i) for i in range(3)])

        assert store.span_count == 0
        assert store.trace_count == 0

    def test_ties_evict_first_tracked_trace(self, small_store: TraceStore) -> None:
        small_store.ingest([make_span("first", start_time=100)])
        small_store.ingest([make_span("second", start_time=100)])
        small_store.ingest([make_span("third", start_time=100)])

        assert small_store.trace_ids() == ["second", "third"]

    def test_eviction_cleans_service_index(self, small_store: TraceStore) -> None:
        small_store.ingest([make_span("t1", start_time=1, service_name="gone")])
        small_store.ingest([make_span("t2", start_time=2, service_name="api")])
        small_store.ingest([make_span("t3", start_time=3, service_name="api")])

        assert small_store.trace_ids_for_service("gone") == []
        assert small_store.service_trace_counts() == {"api": 2}

    def test_eviction_is_trace_atomic(self) -> None:
        store = TraceStore(StoreConfig(max_traces=100, max_spans=5))
        for trace_number in range(4):
            store.ingest(
                [make_span(f"t{trace_number}", str(i), start_time=trace_number * 100 + i) for i in range(2)]
            )

        for trace_id in store.trace_ids():
            trace = store.get_trace(trace_id)
            assert trace is not None
            assert trace.span_count == 2
        assert store.span_count <= 5


class TestConcurrency:
    def test_concurrent_ingest_and_read(self) -> None:
        store = TraceStore(StoreConfig(max_traces=20, max_spans=200))
        errors: list[BaseException] = []

        def writer(worker: int) -> None:
            try:
                for i in range(100):
                    store.ingest(
                        [make_span(f"w{worker}-{i}", str(j), start_time=i * 10 + j) for j in range(3)]
                    )
            except BaseException as e:  # pragma: no cover - surfaced by assertion below
                errors.append(e)

        def reader() -> None:
            try:
                for _ in range(200):
                    with store.reading():
                        span_total = sum(
                            trace.span_count
                            for trace_id in store.trace_ids()
                            if (trace := store.build_trace(trace_id)) is not None
                        )
                        assert span_total == store.span_count
                        assert store.trace_count <= 20
            except BaseException as e:  # pragma: no cover - surfaced by assertion below
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(3)]
        threads += [threading.Thread(target=reader) for _ in range(3)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert errors == []
        assert store.trace_count <= 20
        assert store.span_count <= 200
