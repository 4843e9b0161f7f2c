"""Parent/child resolution over a snapshot.

Every call walks the snapshot it is given. Nothing is cached, because the
store replaces its snapshot wholesale on each mutation. Walks track visited
ids so that a malformed cyclic ``parent`` chain in loaded data terminates
instead of recursing forever.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from conceptmap.observability.logging import get_logger

if TYPE_CHECKING:
    from conceptmap.graph.models import Node, Snapshot

log = get_logger(__name__)


def _children_index(snapshot: Snapshot) -> dict[str, list[Node]]:
    children: dict[str, list[Node]] = defaultdict(list)
    for node in snapshot.nodes:
        if node.parent is not None:
            children[node.parent].append(node)
    return children


def get_descendants(node_id: str, snapshot: Snapshot) -> list[Node]:
    """Return every node nested under *node_id*, depth-first pre-order.

    Each child is followed immediately by its own descendants, and siblings
    keep their snapshot order. The starting node is never included, even
    when a cycle leads back to it.
    """
    children = _children_index(snapshot)
    result: list[Node] = []
    visited = {node_id}
    # Stack of iterators keeps the walk iterative for deep nestings
    stack = [iter(children.get(node_id, ()))]
    while stack:
        child = next(stack[-1], None)
        if child is None:
            stack.pop()
            continue
        if child.id in visited:
            log.warning("hierarchy_cycle_detected", root=node_id, node=child.id)
            continue
        visited.add(child.id)
        result.append(child)
        stack.append(iter(children.get(child.id, ())))
    return result


def get_ancestors(node_id: str, snapshot: Snapshot) -> list[str]:
    """Return the ids of *node_id*'s ancestors, nearest first.

    Stops at a root, at a dangling parent reference, or when a cycle is
    detected.
    """
    by_id = {n.id: n for n in snapshot.nodes}
    chain: list[str] = []
    seen = {node_id}
    node = by_id.get(node_id)
    while node is not None and node.parent is not None:
        parent_id = node.parent
        if parent_id in seen:
            log.warning("hierarchy_cycle_detected", root=node_id, node=parent_id)
            break
        seen.add(parent_id)
        chain.append(parent_id)
        node = by_id.get(parent_id)
    return chain


def would_create_cycle(node_id: str, parent_id: str, snapshot: Snapshot) -> list[str] | None:
    """Check whether nesting *node_id* under *parent_id* creates a cycle.

    Returns:
        The ancestor chain from *parent_id* up to *node_id* if it would,
        otherwise None.
    """
    if parent_id == node_id:
        return [parent_id]
    chain = [parent_id, *get_ancestors(parent_id, snapshot)]
    if node_id in chain:
        return chain[: chain.index(node_id) + 1]
    return None
