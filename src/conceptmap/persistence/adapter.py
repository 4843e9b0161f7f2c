"""Loading and debounced saving of store snapshots.

Loading never raises: a missing, unreadable, malformed or inconsistent
persisted document is replaced by the built-in seed graph. Older records
are backfilled on the way in (an edge without ``direction`` gets
``source-to-target``; absent style attributes get their defaults).

Saving observes the store. Bursts of publications are coalesced by a
debounce timer into one write of the latest snapshot. A failed write is
logged and skipped. It never reaches the store or its callers.
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from conceptmap.graph.errors import ConceptMapError, StorageError
from conceptmap.graph.models import (
    DEFAULT_DIRECTION,
    DEFAULT_NODE_SHAPE,
    Edge,
    Node,
    Snapshot,
)
from conceptmap.graph.store import build_registry
from conceptmap.observability.logging import get_logger
from conceptmap.persistence.storage import EDGES_KEY, NODES_KEY

if TYPE_CHECKING:
    from conceptmap.graph.store import GraphStore, Subscription
    from conceptmap.persistence.storage import SnapshotStorage

log = get_logger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.5


def seed_snapshot() -> Snapshot:
    """Return the starter document used when nothing can be loaded."""
    nodes = (
        Node(id="a", name="Concepto A"),
        Node(id="b", name="Concepto B"),
        Node(
            id="c",
            name="Abstracción C (Padre)",
            background_color="#2773b2",
            shape=DEFAULT_NODE_SHAPE,
            border_color="#1a5a93",
            padding="20px",
        ),
        Node(id="c1", name="Sub-concepto C1", parent="c"),
        Node(id="d", name="Entidad D"),
    )
    edges = (
        Edge(id="ab", source="a", target="b", label="Relacionado con"),
        Edge(id="ac", source="a", target="c", label="Parte de"),
        Edge(id="bc1", source="b", target="c1", label="Influye en"),
        Edge(id="cd", source="c", target="d", label="Conecta a"),
    )
    return Snapshot(nodes=nodes, edges=edges)


def _parse_records(key: str, text: str) -> list[dict[str, Any]]:
    records = json.loads(text)
    if not isinstance(records, list):
        raise ValueError(f"'{key}' must hold a list of records, got {type(records).__name__}")
    for i, record in enumerate(records):
        if not isinstance(record, dict) or not isinstance(record.get("data"), dict):
            raise ValueError(f"'{key}' record {i} has no 'data' object")
    return records


def backfill(edge_records: list[dict[str, Any]]) -> int:
    """Fill fields that older edge records lack, in place.

    A null or empty ``direction`` counts as missing.

    Returns:
        Number of edges that received a default direction.
    """
    filled = 0
    for record in edge_records:
        data = record["data"]
        if not data.get("direction"):
            data["direction"] = DEFAULT_DIRECTION
            filled += 1
    return filled


@dataclass(frozen=True)
class LoadResult:
    """Outcome of load_snapshot()."""

    snapshot: Snapshot
    source: Literal["storage", "seed"]
    reason: str = ""


def load_snapshot(storage: SnapshotStorage) -> LoadResult:
    """Read the persisted document, or fall back to the seed graph."""
    try:
        nodes_text = storage.read(NODES_KEY)
        if nodes_text is None:
            log.info("persist_load_seeded", reason="no persisted document")
            return LoadResult(seed_snapshot(), "seed", "no persisted document")

        node_records = _parse_records(NODES_KEY, nodes_text)
        edges_text = storage.read(EDGES_KEY)
        edge_records = _parse_records(EDGES_KEY, edges_text) if edges_text is not None else []

        filled = backfill(edge_records)
        if filled:
            log.info("persist_backfilled", field="direction", edges=filled)

        snapshot = Snapshot.from_records(node_records, edge_records)
        build_registry(snapshot)
    except (ValueError, KeyError, TypeError, ConceptMapError) as e:
        # json and pydantic errors are ValueErrors; StorageError and
        # DuplicateIdError are ConceptMapErrors
        log.warning("persist_load_failed", error=str(e), fallback="seed")
        return LoadResult(seed_snapshot(), "seed", str(e))

    log.info("persist_loaded", nodes=len(snapshot.nodes), edges=len(snapshot.edges))
    return LoadResult(snapshot, "storage")


def save_snapshot(storage: SnapshotStorage, snapshot: Snapshot) -> None:
    """Write both records of *snapshot* to *storage*.

    Raises:
        StorageError: If the backend fails.
    """
    node_records, edge_records = snapshot.to_records()
    storage.write(NODES_KEY, json.dumps(node_records, ensure_ascii=False))
    storage.write(EDGES_KEY, json.dumps(edge_records, ensure_ascii=False))


class PersistenceAdapter:
    """Debounced writer of store snapshots.

    Attach it to a store with attach(). The first publication (the replay of
    the already-loaded snapshot) is skipped. Each later publication replaces
    the pending snapshot and restarts the debounce window; when the window
    expires the pending snapshot is written.

    Args:
        storage: Backend to write to.
        debounce_seconds: Quiet period after the last publication before a
            write happens.
    """

    def __init__(
        self,
        storage: SnapshotStorage,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self.storage = storage
        self.debounce_seconds = debounce_seconds
        self.writes = 0
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._pending: Snapshot | None = None
        self._subscription: Subscription | None = None
        self._skip_first = True

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def attach(self, store: GraphStore) -> None:
        """Start observing *store*."""
        if self._subscription is not None:
            raise RuntimeError("PersistenceAdapter is already attached")
        self._skip_first = True
        self._subscription = store.subscribe(self._on_snapshot)

    def _on_snapshot(self, snapshot: Snapshot) -> None:
        if self._skip_first:
            self._skip_first = False
            return
        with self._lock:
            self._pending = snapshot
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce_seconds, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> bool:
        """Write the pending snapshot now, if any.

        Returns:
            True if a snapshot was written, False if nothing was pending or
            the write failed.
        """
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            snapshot, self._pending = self._pending, None
            if snapshot is None:
                return False
            return self._write(snapshot)

    def _write(self, snapshot: Snapshot) -> bool:
        try:
            save_snapshot(self.storage, snapshot)
        except (StorageError, TypeError, ValueError) as e:
            log.warning("persist_write_failed", error=str(e))
            return False
        self.writes += 1
        log.debug("persist_written", nodes=len(snapshot.nodes), edges=len(snapshot.edges))
        return True

    def close(self) -> None:
        """Stop observing, then write whatever is still pending."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self.flush()
