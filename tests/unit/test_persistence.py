"""Tests for storage backends and the persistence adapter."""

from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING

import pytest

from conceptmap.graph import Edge, GraphStore, Node, Snapshot, StorageError
from conceptmap.persistence import (
    EDGES_KEY,
    NODES_KEY,
    JsonFileStorage,
    MemoryStorage,
    PersistenceAdapter,
    SnapshotStorage,
    SqliteStorage,
    backfill,
    load_snapshot,
    save_snapshot,
    seed_snapshot,
)

if TYPE_CHECKING:
    from pathlib import Path


def _records(snapshot: Snapshot) -> dict[str, str]:
    nodes, edges = snapshot.to_records()
    return {NODES_KEY: json.dumps(nodes), EDGES_KEY: json.dumps(edges)}


class FailingStorage(MemoryStorage):
    """Storage whose writes always fail."""

    def write(self, key: str, text: str) -> None:
        raise StorageError(key, "disk full")


# =============================================================================
# Backends
# =============================================================================


class TestMemoryStorage:
    """Test the in-process backend."""

    def test_read_write(self) -> None:
        storage = MemoryStorage()
        assert storage.read("k") is None
        storage.write("k", "v")
        assert storage.read("k") == "v"
        assert storage.writes == 1

    def test_satisfies_protocol(self) -> None:
        assert isinstance(MemoryStorage(), SnapshotStorage)


class TestJsonFileStorage:
    """Test the file-per-record backend."""

    def test_missing_key_reads_none(self, tmp_path: Path) -> None:
        assert JsonFileStorage(tmp_path / "data").read(NODES_KEY) is None

    def test_write_creates_directory(self, tmp_path: Path) -> None:
        storage = JsonFileStorage(tmp_path / "data")
        storage.write(NODES_KEY, "[]")

        assert storage.path_for(NODES_KEY) == tmp_path / "data" / "conceptmap.nodes.json"
        assert storage.read(NODES_KEY) == "[]"

    def test_write_replaces_without_leftovers(self, tmp_path: Path) -> None:
        storage = JsonFileStorage(tmp_path)
        storage.write("k", "first")
        storage.write("k", "second")

        assert storage.read("k") == "second"
        assert list(tmp_path.glob("*.tmp")) == []

    def test_unicode(self, tmp_path: Path) -> None:
        storage = JsonFileStorage(tmp_path)
        storage.write("k", "Abstracción")
        assert storage.read("k") == "Abstracción"

    def test_write_failure_raises_storage_error(self, tmp_path: Path) -> None:
        """A file where the directory should be makes writes fail."""
        blocker = tmp_path / "data"
        blocker.write_text("not a directory")
        with pytest.raises(StorageError, match="k"):
            JsonFileStorage(blocker).write("k", "v")

    def test_satisfies_protocol(self, tmp_path: Path) -> None:
        assert isinstance(JsonFileStorage(tmp_path), SnapshotStorage)


class TestSqliteStorage:
    """Test the SQLite backend."""

    def test_read_write_in_memory(self) -> None:
        storage = SqliteStorage()
        assert storage.read("k") is None
        storage.write("k", "v1")
        storage.write("k", "v2")
        assert storage.read("k") == "v2"
        storage.close()

    def test_persists_to_file(self, tmp_path: Path) -> None:
        db_path = tmp_path / "nested" / "conceptmap.db"
        storage = SqliteStorage(db_path)
        storage.write(NODES_KEY, "[]")
        storage.close()

        reopened = SqliteStorage(db_path)
        assert reopened.read(NODES_KEY) == "[]"
        reopened.close()

    def test_closed_connection_raises_storage_error(self) -> None:
        storage = SqliteStorage()
        storage.close()
        with pytest.raises(StorageError):
            storage.read("k")


# =============================================================================
# Loading
# =============================================================================


class TestSeed:
    """Test the built-in starter document."""

    def test_shape(self) -> None:
        seed = seed_snapshot()
        assert [n.id for n in seed.nodes] == ["a", "b", "c", "c1", "d"]
        assert [e.id for e in seed.edges] == ["ab", "ac", "bc1", "cd"]

    def test_parent_styling(self) -> None:
        parent = seed_snapshot().find_node("c")
        assert parent is not None
        assert parent.background_color == "#2773b2"
        assert parent.border_color == "#1a5a93"
        assert parent.padding == "20px"
        assert seed_snapshot().find_node("c1").parent == "c"  # type: ignore[union-attr]

    def test_fresh_each_call(self) -> None:
        assert seed_snapshot() == seed_snapshot()
        assert seed_snapshot() is not seed_snapshot()


class TestBackfill:
    """Test defaulting of fields that older records lack."""

    def test_fills_missing_direction(self) -> None:
        records = [
            {"data": {"id": "e1", "source": "a", "target": "b"}},
            {"data": {"id": "e2", "source": "a", "target": "b", "direction": "both"}},
        ]
        assert backfill(records) == 1
        assert records[0]["data"]["direction"] == "source-to-target"
        assert records[1]["data"]["direction"] == "both"

    @pytest.mark.parametrize("direction", [None, ""])
    def test_null_or_empty_direction_counts_as_missing(self, direction: str | None) -> None:
        records = [{"data": {"id": "e1", "source": "a", "target": "b", "direction": direction}}]
        assert backfill(records) == 1
        assert records[0]["data"]["direction"] == "source-to-target"


class TestLoadSnapshot:
    """Test load_snapshot fallback behavior."""

    def test_empty_storage_uses_seed(self) -> None:
        result = load_snapshot(MemoryStorage())
        assert result.source == "seed"
        assert result.snapshot == seed_snapshot()
        assert result.reason == "no persisted document"

    def test_loads_persisted(self) -> None:
        snapshot = Snapshot(
            nodes=(Node(id="x", name="X"), Node(id="y", name="Y", parent="x")),
            edges=(Edge(id="xy", source="x", target="y", direction="none"),),
        )
        result = load_snapshot(MemoryStorage(_records(snapshot)))
        assert result.source == "storage"
        assert result.snapshot == snapshot

    def test_missing_edges_record_means_no_edges(self) -> None:
        nodes, _ = Snapshot(nodes=(Node(id="x"),)).to_records()
        result = load_snapshot(MemoryStorage({NODES_KEY: json.dumps(nodes)}))
        assert result.source == "storage"
        assert result.snapshot.edges == ()

    def test_backfills_direction_and_styles(self) -> None:
        """Records from older versions load with defaults filled in."""
        storage = MemoryStorage(
            {
                NODES_KEY: json.dumps([{"data": {"id": "a", "name": "A"}}]),
                EDGES_KEY: json.dumps([{"data": {"id": "e", "source": "a", "target": "a"}}]),
            }
        )
        result = load_snapshot(storage)
        assert result.source == "storage"
        assert result.snapshot.edges[0].direction == "source-to-target"
        assert result.snapshot.edges[0].line_color == "#ccc"
        assert result.snapshot.nodes[0].shape == "round-rectangle"

    def test_preserves_extra_style_keys(self) -> None:
        storage = MemoryStorage(
            {NODES_KEY: json.dumps([{"data": {"id": "a", "fontSize": 18}}])}
        )
        assert load_snapshot(storage).snapshot.nodes[0].get_property("fontSize") == 18

    @pytest.mark.parametrize(
        "nodes_text",
        [
            "{not json",
            '{"data": {}}',
            '[{"id": "a"}]',
            '[{"data": {"name": "no id"}}]',
            '[{"data": {"id": "a"}}, {"data": {"id": "a"}}]',
        ],
        ids=["malformed", "not-a-list", "no-envelope", "missing-id", "duplicate-id"],
    )
    def test_bad_nodes_fall_back_to_seed(self, nodes_text: str) -> None:
        result = load_snapshot(MemoryStorage({NODES_KEY: nodes_text}))
        assert result.source == "seed"
        assert result.snapshot == seed_snapshot()
        assert result.reason

    def test_null_direction_loads_from_storage(self) -> None:
        storage = MemoryStorage(
            {
                NODES_KEY: json.dumps([{"data": {"id": "a", "name": "Keep"}}]),
                EDGES_KEY: json.dumps(
                    [{"data": {"id": "e", "source": "a", "target": "a", "direction": None}}]
                ),
            }
        )
        result = load_snapshot(storage)
        assert result.source == "storage"
        assert result.snapshot.nodes[0].name == "Keep"
        assert result.snapshot.edges[0].direction == "source-to-target"

    def test_bad_direction_falls_back_to_seed(self) -> None:
        storage = MemoryStorage(
            {
                NODES_KEY: json.dumps([{"data": {"id": "a"}}]),
                EDGES_KEY: json.dumps(
                    [{"data": {"id": "e", "source": "a", "target": "a", "direction": "up"}}]
                ),
            }
        )
        assert load_snapshot(storage).source == "seed"

    def test_read_failure_falls_back_to_seed(self) -> None:
        class BrokenStorage(MemoryStorage):
            def read(self, key: str) -> str | None:
                raise StorageError(key, "unreadable")

        result = load_snapshot(BrokenStorage())
        assert result.source == "seed"
        assert "unreadable" in result.reason

    def test_save_then_load(self, tmp_path: Path) -> None:
        storage = JsonFileStorage(tmp_path)
        save_snapshot(storage, seed_snapshot())

        result = load_snapshot(storage)
        assert result.source == "storage"
        assert result.snapshot == seed_snapshot()
        assert "Abstracción" in storage.path_for(NODES_KEY).read_text(encoding="utf-8")


# =============================================================================
# Debounced writer
# =============================================================================


class TestPersistenceAdapter:
    """Test debounced saving."""

    def test_replay_is_not_written(self, seeded_store: GraphStore) -> None:
        storage = MemoryStorage()
        adapter = PersistenceAdapter(storage, debounce_seconds=60)
        adapter.attach(seeded_store)

        assert not adapter.has_pending
        assert adapter.flush() is False
        assert storage.writes == 0

    def test_burst_coalesces_to_latest(self, seeded_store: GraphStore) -> None:
        """Many publications inside the window produce one write of the last snapshot."""
        storage = MemoryStorage()
        adapter = PersistenceAdapter(storage, debounce_seconds=60)
        adapter.attach(seeded_store)

        for i in range(10):
            seeded_store.update_node_name("a", f"Name {i}")
        assert adapter.has_pending
        assert adapter.writes == 0

        assert adapter.flush() is True
        assert adapter.writes == 1
        assert load_snapshot(storage).snapshot == seeded_store.snapshot

    def test_timer_writes_after_quiet_period(self, seeded_store: GraphStore) -> None:
        storage = MemoryStorage()
        adapter = PersistenceAdapter(storage, debounce_seconds=0.2)
        adapter.attach(seeded_store)

        seeded_store.add_node("New")
        seeded_store.add_node("Newer")

        deadline = time.monotonic() + 5
        while adapter.writes == 0 and time.monotonic() < deadline:
            time.sleep(0.01)

        assert adapter.writes == 1
        assert not adapter.has_pending
        assert len(load_snapshot(storage).snapshot.nodes) == 7

    def test_write_failure_is_swallowed(self, seeded_store: GraphStore) -> None:
        """A failing backend never reaches the store or its callers."""
        adapter = PersistenceAdapter(FailingStorage(), debounce_seconds=60)
        adapter.attach(seeded_store)

        seeded_store.add_node("X")
        assert adapter.flush() is False
        assert adapter.writes == 0
        assert not adapter.has_pending

        # The store keeps working
        seeded_store.add_node("Y")
        assert len(seeded_store.get_nodes()) == 7

    def test_close_writes_pending_and_detaches(self, seeded_store: GraphStore) -> None:
        storage = MemoryStorage()
        adapter = PersistenceAdapter(storage, debounce_seconds=60)
        adapter.attach(seeded_store)

        seeded_store.remove_element("d")
        adapter.close()
        assert adapter.writes == 1

        seeded_store.remove_element("a")
        assert not adapter.has_pending
        assert adapter.writes == 1

    def test_undo_is_persisted(self, seeded_store: GraphStore) -> None:
        storage = MemoryStorage()
        adapter = PersistenceAdapter(storage, debounce_seconds=60)
        adapter.attach(seeded_store)

        seeded_store.remove_element("d")
        seeded_store.undo()
        adapter.flush()
        assert load_snapshot(storage).snapshot == seed_snapshot()

    def test_number_on_text_property_survives_reload(self, seeded_store: GraphStore) -> None:
        """A styled value written through the adapter loads back unchanged."""
        storage = MemoryStorage()
        adapter = PersistenceAdapter(storage, debounce_seconds=60)
        adapter.attach(seeded_store)

        seeded_store.add_node("Keep me")
        seeded_store.update_element_style("a", "shape", 7)
        adapter.flush()

        result = load_snapshot(storage)
        assert result.source == "storage"
        assert result.snapshot == seeded_store.snapshot
        assert result.snapshot.find_node("a").shape == "7"  # type: ignore[union-attr]

    def test_attach_twice_raises(self, seeded_store: GraphStore) -> None:
        adapter = PersistenceAdapter(MemoryStorage())
        adapter.attach(seeded_store)
        with pytest.raises(RuntimeError, match="already attached"):
            adapter.attach(seeded_store)
        adapter.close()
