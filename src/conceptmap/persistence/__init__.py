"""Durable storage of concept map snapshots."""

from conceptmap.persistence.adapter import (
    DEFAULT_DEBOUNCE_SECONDS,
    LoadResult,
    PersistenceAdapter,
    backfill,
    load_snapshot,
    save_snapshot,
    seed_snapshot,
)
from conceptmap.persistence.storage import (
    EDGES_KEY,
    NODES_KEY,
    JsonFileStorage,
    MemoryStorage,
    SnapshotStorage,
    SqliteStorage,
)

__all__ = [
    "DEFAULT_DEBOUNCE_SECONDS",
    "EDGES_KEY",
    "NODES_KEY",
    "JsonFileStorage",
    "LoadResult",
    "MemoryStorage",
    "PersistenceAdapter",
    "SnapshotStorage",
    "SqliteStorage",
    "backfill",
    "load_snapshot",
    "save_snapshot",
    "seed_snapshot",
]
