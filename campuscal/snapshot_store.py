from __future__ import annotations

import threading
from contextlib import contextmanager
from types import MappingProxyType
from typing import Iterator, Mapping

from campuscal.differ import diff_snapshots
from campuscal.models import ChangeRecord, FeedEvent


class ReadWriteLock:
    """Many concurrent readers or one writer; waiting writers block new readers."""

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


class SnapshotStore:
    """Holds the current snapshot (identity -> event) in process memory.

    The installed dict is private and never mutated after installation, so an
    exported view stays valid and unchanged after later replaces.
    """

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._current: Mapping[str, FeedEvent] = MappingProxyType({})
        self._version = 0

    def replace(self, new_snapshot: Mapping[str, FeedEvent]) -> list[ChangeRecord]:
        installed = MappingProxyType(dict(new_snapshot))
        with self._lock.write():
            changes = diff_snapshots(self._current, installed)
            self._current = installed
            self._version += 1
        return changes

    def export_snapshot(self) -> Mapping[str, FeedEvent]:
        with self._lock.read():
            return self._current

    @property
    def version(self) -> int:
        with self._lock.read():
            return self._version

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._current)
