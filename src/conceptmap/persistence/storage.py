"""Durable key/value storage backends for snapshot records.

A snapshot is persisted as two independently addressable text records, one
for nodes and one for edges. Backends only move text; parsing, validation
and fallback belong to the persistence adapter.
"""

from __future__ import annotations

import os
import sqlite3
from pathlib import Path
from typing import Protocol, runtime_checkable

from conceptmap.graph.errors import StorageError

NODES_KEY = "conceptmap.nodes"
EDGES_KEY = "conceptmap.edges"


@runtime_checkable
class SnapshotStorage(Protocol):
    """Storage backend protocol for persisted records.

    Implementations raise StorageError for I/O failures. A key that was
    never written reads as None.
    """

    def read(self, key: str) -> str | None:
        """Return the stored text for *key*, or None if absent."""
        ...

    def write(self, key: str, text: str) -> None:
        """Store *text* under *key*, replacing any previous value."""
        ...

    def close(self) -> None:
        """Release any held resources."""
        ...


class MemoryStorage:
    """In-process storage. Nothing survives the process."""

    def __init__(self, records: dict[str, str] | None = None) -> None:
        self.records: dict[str, str] = dict(records or {})
        self.writes = 0

    def read(self, key: str) -> str | None:
        return self.records.get(key)

    def write(self, key: str, text: str) -> None:
        self.records[key] = text
        self.writes += 1

    def close(self) -> None:
        """No-op."""


class JsonFileStorage:
    """One ``<key>.json`` file per record inside a directory.

    Writes go to a temp file that then replaces the target, so a crash
    mid-write leaves the previous record intact.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(key, str(e)) from e

    def write(self, key: str, text: str) -> None:
        path = self.path_for(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            tmp_path.replace(path)
        except OSError as e:
            if tmp_path.exists():
                tmp_path.unlink()
            raise StorageError(key, str(e)) from e

    def close(self) -> None:
        """No-op; files are closed after every operation."""


_SCHEMA = """\
CREATE TABLE IF NOT EXISTS records (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);
"""


class SqliteStorage:
    """Records kept in a single SQLite table.

    The connection may be used from the debounce timer thread, so it is
    opened with ``check_same_thread=False``; the persistence adapter
    serializes access.
    """

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self._db_path = str(db_path)
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = sqlite3.connect(
                self._db_path,
                isolation_level=None,
                check_same_thread=False,
            )
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as e:
            raise StorageError(self._db_path, str(e)) from e

    def read(self, key: str) -> str | None:
        try:
            row = self._conn.execute("SELECT value FROM records WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StorageError(key, str(e)) from e
        return None if row is None else str(row[0])

    def write(self, key: str, text: str) -> None:
        try:
            self._conn.execute(
                "INSERT INTO records (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                "updated_at = strftime('%Y-%m-%dT%H:%M:%f','now')",
                (key, text),
            )
        except sqlite3.Error as e:
            raise StorageError(key, str(e)) from e

    def close(self) -> None:
        self._conn.close()
