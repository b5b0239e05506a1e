# src/otelmcp/store/locking.py
"""Reader/writer lock for the trace store.

The store is shared by the OTLP receiver (writes) and the tool surface
(reads). Writers exclude everyone; readers only exclude writers.

Read acquisition is reentrant per thread: a query that holds the read lock
for its whole duration may call store accessors that take it again. Readers
are preferred, so a writer waits until no thread holds a read lock. Reads
are short, in-memory scans, which keeps writer waits bounded in practice.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class ReadWriteLock:
    """Many concurrent readers or one writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers: dict[int, int] = {}  # thread id -> read depth
        self._writer: int | None = None

    @contextmanager
    def read(self) -> Iterator[None]:
        """Hold the lock shared for the duration of the block."""
        me = threading.get_ident()
        with self._cond:
            if me not in self._readers and self._writer != me:
                while self._writer is not None:
                    self._cond.wait()
            self._readers[me] = self._readers.get(me, 0) + 1
        try:
            yield
        finally:
            with self._cond:
                depth = self._readers[me] - 1
                if depth:
                    self._readers[me] = depth
                else:
                    del self._readers[me]
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        """Hold the lock exclusively for the duration of the block.

        Raises:
            RuntimeError: If the calling thread already holds the lock.
        """
        me = threading.get_ident()
        with self._cond:
            if self._writer == me or me in self._readers:
                raise RuntimeError("ReadWriteLock.write() is not reentrant")
            while self._writer is not None or self._readers:
                self._cond.wait()
            self._writer = me
        try:
            yield
        finally:
            with self._cond:
                self._writer = None
                self._cond.notify_all()
