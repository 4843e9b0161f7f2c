"""Tests for document inspection and rendering."""

from __future__ import annotations

from io import StringIO

from rich.console import Console

from conceptmap.graph import Edge, Node, Snapshot
from conceptmap.inspection import edges_table, hierarchy_tree, nodes_table, summarize
from conceptmap.persistence import seed_snapshot


def _render(renderable: object) -> str:
    out = StringIO()
    Console(file=out, width=120).print(renderable)
    return out.getvalue()


class TestSummarize:
    """Test summarize()."""

    def test_seed(self) -> None:
        summary = summarize(seed_snapshot())
        assert summary.total_nodes == 5
        assert summary.total_edges == 4
        assert summary.root_nodes == 4
        assert summary.max_depth == 1
        assert summary.directions == {"source-to-target": 4}
        assert summary.dangling_edges == []
        assert summary.dangling_parents == []

    def test_empty(self) -> None:
        summary = summarize(Snapshot())
        assert summary.total_nodes == 0
        assert summary.max_depth == 0

    def test_dangling_references(self) -> None:
        snapshot = Snapshot(
            nodes=(Node(id="a"), Node(id="b", parent="gone")),
            edges=(
                Edge(id="ok", source="a", target="b"),
                Edge(id="bad", source="a", target="ghost"),
            ),
        )
        summary = summarize(snapshot)
        assert summary.dangling_edges == ["bad"]
        assert summary.dangling_parents == ["b"]


class TestRendering:
    """Test rich renderables."""

    def test_nodes_table(self) -> None:
        text = _render(nodes_table(seed_snapshot()))
        assert "Concepto A" in text
        assert "#2773b2" in text

    def test_edges_table_shows_direction(self) -> None:
        snapshot = Snapshot(
            nodes=(Node(id="a", name="Alpha"), Node(id="b", name="Beta")),
            edges=(Edge(id="e", source="a", target="b", label="rel", direction="both"),),
        )
        assert "Alpha ↔ Beta" in _render(edges_table(snapshot))

    def test_edges_table_marks_dangling(self) -> None:
        snapshot = Snapshot(edges=(Edge(id="e", source="x", target="y"),))
        assert "x?" in _render(edges_table(snapshot))

    def test_hierarchy_tree_nests_children(self) -> None:
        lines = _render(hierarchy_tree(seed_snapshot(), title="Seed")).splitlines()
        parent_line = next(i for i, line in enumerate(lines) if "(c)" in line)
        child_line = next(i for i, line in enumerate(lines) if "(c1)" in line)
        assert lines[0].strip() == "Seed"
        assert child_line == parent_line + 1
        assert lines[child_line].index("Sub-concepto") > lines[parent_line].index("Abstracción")

    def test_hierarchy_tree_survives_cycles(self) -> None:
        snapshot = Snapshot(nodes=(Node(id="x", parent="y"), Node(id="y", parent="x")))
        text = _render(hierarchy_tree(snapshot))
        assert "cyclic" in text
        assert "(y)" in text

    def test_markup_in_text_is_shown_literally(self) -> None:
        snapshot = Snapshot(
            nodes=(Node(id="[b]", name="x [/b] y"), Node(id="b", name="[red]B", parent="[b]")),
            edges=(Edge(id="e", source="[b]", target="[/i]", label="[dim]rel"),),
        )
        assert "x [/b] y" in _render(nodes_table(snapshot))
        edges = _render(edges_table(snapshot))
        assert "[dim]rel" in edges
        assert "[/i]?" in edges
        tree = _render(hierarchy_tree(snapshot, title="[bold]Map"))
        assert "[bold]Map" in tree
        assert "[red]B ([b])" in tree
