"""Scoped key-value memory shared by research agents for the lifetime of a run."""

from __future__ import annotations

import json
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List


class MemoryScope:
    """Well-known scope names."""

    PREPROCESS = "preprocess"
    STUDIES_RESEARCH = "studies_research"
    DOCUMENTATION = "documentation"


class ReadWriteLock:
    """Many concurrent readers or a single writer."""

    def __init__(self) -> None:
        self._condition = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        with self._condition:
            # Waiting writers go first so a steady stream of reads cannot starve them.
            while self._writer or self._waiting_writers:
                self._condition.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._condition:
                self._readers -= 1
                if self._readers == 0:
                    self._condition.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        with self._condition:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._condition.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._condition:
                self._writer = False
                self._condition.notify_all()


class Memory:
    """Maps ``(scope, key)`` to JSON-serialised values; last write wins, nothing is evicted."""

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._scopes: Dict[str, Dict[str, str]] = {}
        self._reads: Dict[str, int] = {}
        self._writes: Dict[str, int] = {}
        self._counter_lock = threading.Lock()

    def store(self, scope: str, key: str, value: Any) -> None:
        """Serialise ``value`` and store it; raises TypeError for non-JSON values."""
        serialised = json.dumps(value, sort_keys=True, default=_reject)
        with self._lock.write_locked():
            self._scopes.setdefault(scope, {})[key] = serialised
            self._writes[scope] = self._writes.get(scope, 0) + 1

    def get(self, scope: str, key: str, default: Any = None) -> Any:
        with self._lock.read_locked():
            serialised = self._scopes.get(scope, {}).get(key)
        self._count_read(scope)
        if serialised is None:
            return default
        return json.loads(serialised)

    def has(self, scope: str, key: str) -> bool:
        with self._lock.read_locked():
            return key in self._scopes.get(scope, {})

    def list_keys(self, scope: str) -> List[str]:
        with self._lock.read_locked():
            return list(self._scopes.get(scope, {}))

    def usage_stats(self) -> Dict[str, int]:
        """Number of entries held per scope."""
        with self._lock.read_locked():
            return {scope: len(entries) for scope, entries in self._scopes.items()}

    def access_stats(self) -> Dict[str, Dict[str, int]]:
        with self._lock.read_locked():
            scopes = set(self._writes)
        with self._counter_lock:
            scopes.update(self._reads)
            return {
                scope: {"reads": self._reads.get(scope, 0), "writes": self._writes.get(scope, 0)}
                for scope in sorted(scopes)
            }

    def export(self) -> Dict[str, Dict[str, Any]]:
        """Snapshot of every scope, deserialised."""
        with self._lock.read_locked():
            snapshot = {scope: dict(entries) for scope, entries in self._scopes.items()}
        return {
            scope: {key: json.loads(value) for key, value in entries.items()}
            for scope, entries in snapshot.items()
        }

    def _count_read(self, scope: str) -> None:
        with self._counter_lock:
            self._reads[scope] = self._reads.get(scope, 0) + 1


def _reject(value: Any) -> Any:
    raise TypeError(f"Memory values must be JSON serialisable, got {type(value).__name__}")


__all__ = ["Memory", "MemoryScope", "ReadWriteLock"]
