"""Document inspection and terminal rendering.

Pure snapshot analysis plus rich renderables for the CLI and shell.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from conceptmap.graph.hierarchy import get_ancestors

if TYPE_CHECKING:
    from conceptmap.graph.models import Node, Snapshot

DIRECTION_ARROWS = {
    "none": "—",
    "source-to-target": "→",
    "target-to-source": "←",
    "both": "↔",
}


@dataclass
class GraphSummary:
    """High-level document statistics and integrity findings."""

    total_nodes: int
    total_edges: int
    root_nodes: int
    max_depth: int
    directions: dict[str, int] = field(default_factory=dict)
    dangling_edges: list[str] = field(default_factory=list)
    dangling_parents: list[str] = field(default_factory=list)


def summarize(snapshot: Snapshot) -> GraphSummary:
    """Compute statistics and find dangling references.

    Dangling edge endpoints are possible because the store does not
    validate them; they are reported here, not repaired.
    """
    node_ids = {n.id for n in snapshot.nodes}
    dangling_edges = [
        e.id for e in snapshot.edges if e.source not in node_ids or e.target not in node_ids
    ]
    dangling_parents = [
        n.id for n in snapshot.nodes if n.parent is not None and n.parent not in node_ids
    ]
    max_depth = max((len(get_ancestors(n.id, snapshot)) for n in snapshot.nodes), default=0)
    return GraphSummary(
        total_nodes=len(snapshot.nodes),
        total_edges=len(snapshot.edges),
        root_nodes=sum(1 for n in snapshot.nodes if n.parent is None),
        max_depth=max_depth,
        directions=dict(Counter(e.direction for e in snapshot.edges)),
        dangling_edges=dangling_edges,
        dangling_parents=dangling_parents,
    )


def nodes_table(snapshot: Snapshot) -> Table:
    table = Table(title="Nodes")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Parent", style="dim")
    table.add_column("Shape")
    table.add_column("Background")
    table.add_column("Border")
    for node in snapshot.nodes:
        table.add_row(
            escape(node.id),
            escape(node.name),
            escape(node.parent or "-"),
            escape(node.shape),
            escape(node.background_color),
            escape(f"{node.border_color} / {node.border_width}"),
        )
    return table


def edges_table(snapshot: Snapshot) -> Table:
    names = {n.id: escape(n.name) for n in snapshot.nodes}
    table = Table(title="Edges")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Relation", style="bold")
    table.add_column("Label")
    table.add_column("Line")
    for edge in snapshot.edges:
        arrow = DIRECTION_ARROWS.get(edge.direction, "?")
        source = names.get(edge.source, f"[red]{escape(edge.source)}?[/red]")
        target = names.get(edge.target, f"[red]{escape(edge.target)}?[/red]")
        table.add_row(
            escape(edge.id),
            f"{source} {arrow} {target}",
            escape(edge.label),
            escape(f"{edge.line_color} / {edge.edge_width} / {edge.curve_style}"),
        )
    return table


def hierarchy_tree(snapshot: Snapshot, title: str = "Concept map") -> Tree:
    """Render node nesting as a tree. Orphans and cycles hang off the root."""
    children: dict[str | None, list[Node]] = {}
    node_ids = {n.id for n in snapshot.nodes}
    for node in snapshot.nodes:
        parent = node.parent if node.parent in node_ids else None
        children.setdefault(parent, []).append(node)

    root = Tree(f"[bold]{escape(title)}[/bold]")
    placed: set[str] = set()

    def _add(branch: Tree, parent_id: str | None) -> None:
        for node in children.get(parent_id, []):
            if node.id in placed:
                continue
            placed.add(node.id)
            _add(branch.add(f"{escape(node.name)} [dim]({escape(node.id)})[/dim]"), node.id)

    _add(root, None)
    # Members of a parent cycle are unreachable from any root
    for node in snapshot.nodes:
        if node.id not in placed:
            placed.add(node.id)
            _add(root.add(f"[red]{escape(node.name)} ({escape(node.id)}) cyclic[/red]"), node.id)
    return root
