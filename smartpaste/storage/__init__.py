"""Persistence backends for engine state."""

from smartpaste.storage.base import (
    InMemoryKeyValueStore,
    KeyValueStore,
    StorageError,
    StorageWriteError,
)
from smartpaste.storage.json_state import load_json, save_json
from smartpaste.storage.sql import SqlKeyValueStore

__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "SqlKeyValueStore",
    "StorageError",
    "StorageWriteError",
    "load_json",
    "save_json",
]
