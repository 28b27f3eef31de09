"""Per-run shared key-value store through which steps exchange data."""

from __future__ import annotations

import threading
from typing import Any, Iterator, Mapping


class DataBag:
    """
    Lock-guarded mapping owned by exactly one WorkflowExecution.

    Ordering between producers and consumers comes from the dependency
    barrier; the lock only protects the underlying dict.
    """

    def __init__(self, initial: Mapping[str, Any] | None = None):
        self._data: dict[str, Any] = dict(initial or {})
        self._lock = threading.Lock()
        self._written_by: dict[str, str] = {}

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def __getitem__(self, key: str) -> Any:
        with self._lock:
            return self._data[key]

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)

    def set(self, key: str, value: Any, producer: str | None = None):
        with self._lock:
            self._data[key] = value
            if producer is not None:
                self._written_by[key] = producer

    def merge(self, values: Mapping[str, Any], producer: str | None = None):
        """Write several keys atomically."""
        with self._lock:
            self._data.update(values)
            if producer is not None:
                for key in values:
                    self._written_by[key] = producer

    def snapshot(self) -> dict[str, Any]:
        """Shallow copy safe to read without holding the lock."""
        with self._lock:
            return dict(self._data)

    def produced_keys(self) -> dict[str, str]:
        """Keys written by steps so far, mapped to the writing step id."""
        with self._lock:
            return dict(self._written_by)
