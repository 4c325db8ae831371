from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from pretty_autotest.runtime.events import EventRecord


class ReadWriteLock:
    # Writer-preferring: new readers queue behind a waiting writer.

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class EventStore:
    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._records: dict[str, EventRecord] = {}

    def record(self, path: str, timestamp: float) -> EventRecord:
        with self._lock.write():
            existing = self._records.get(path)
            if existing is None:
                existing = EventRecord(path=path, occurred_at=timestamp)
                self._records[path] = existing
            else:
                existing.occurred_at = timestamp
            return existing

    def lookup(self, path: str) -> EventRecord | None:
        with self._lock.read():
            return self._records.get(path)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._records)
