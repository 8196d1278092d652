"""Key/value persistence contract shared by every stateful component."""

from __future__ import annotations

import threading
from typing import Optional, Protocol, runtime_checkable


class StorageError(Exception):
    """Base class for persistence failures."""


class StorageWriteError(StorageError):
    """Raised when a backend fails to persist a value."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Failed to write '{key}': {reason}")


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal string key/value store.

    Values are opaque strings (JSON documents in practice). Implementations
    must make ``set`` durable before returning, or raise StorageWriteError.
    """

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class InMemoryKeyValueStore:
    """Process-local store, mainly for tests."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()
        self.fail_writes = False

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise StorageWriteError(key, "writes disabled")
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)
