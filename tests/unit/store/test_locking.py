"""Tests for the store's reader/writer lock."""

from __future__ import annotations

import threading
import time

import pytest

from otelmcp.store.locking import ReadWriteLock


class TestReadWriteLock:
    def test_read_is_reentrant(self) -> None:
        lock = ReadWriteLock()
        with lock.read(), lock.read():
            pass

    def test_writer_may_read(self) -> None:
        lock = ReadWriteLock()
        with lock.write(), lock.read():
            pass

    def test_write_is_not_reentrant(self) -> None:
        lock = ReadWriteLock()
        with lock.write(), pytest.raises(RuntimeError, match="not reentrant"):
            with lock.write():
                pass

    def test_upgrade_from_read_is_refused(self) -> None:
        lock = ReadWriteLock()
        with lock.read(), pytest.raises(RuntimeError):
            with lock.write():
                pass

    def test_lock_is_released_after_exception(self) -> None:
        lock = ReadWriteLock()
        with pytest.raises(ValueError), lock.write():
            raise ValueError("boom")
        with lock.write():
            pass

    def test_readers_share(self) -> None:
        lock = ReadWriteLock()
        both_inside = threading.Barrier(2, timeout=5)

        def reader() -> None:
            with lock.read():
                both_inside.wait()

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert not both_inside.broken

    def test_writer_waits_for_reader(self) -> None:
        lock = ReadWriteLock()
        events: list[str] = []
        reader_inside = threading.Event()

        def writer() -> None:
            reader_inside.wait(timeout=5)
            with lock.write():
                events.append("write")

        thread = threading.Thread(target=writer)
        thread.start()
        with lock.read():
            reader_inside.set()
            time.sleep(0.05)
            events.append("read-done")
        thread.join(timeout=5)

        assert events == ["read-done", "write"]

    def test_reader_waits_for_writer(self) -> None:
        lock = ReadWriteLock()
        events: list[str] = []
        writer_inside = threading.Event()

        def reader() -> None:
            writer_inside.wait(timeout=5)
            with lock.read():
                events.append("read")

        thread = threading.Thread(target=reader)
        thread.start()
        with lock.write():
            writer_inside.set()
            time.sleep(0.05)
            events.append("write-done")
        thread.join(timeout=5)

        assert events == ["write-done", "read"]
