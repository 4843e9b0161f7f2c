"""Canonical in-memory concept map state and its mutation API.

GraphStore owns the current Snapshot. Every successful mutation builds a new
snapshot from the old one (the old one is never touched), records it in
History, and publishes it synchronously to subscribers in subscription
order. Undo and redo publish a historized snapshot without recording it.

Mutations that target an unknown id are silent no-ops: no snapshot, no
history entry, no publication. They return False so callers can tell.

Edge endpoints are not validated. Checking that ``source`` and ``target``
name existing nodes is the caller's job; the store accepts dangling
references as given.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import ValidationError

from conceptmap.graph.errors import (
    DuplicateIdError,
    HierarchyCycleError,
    InvalidValueError,
    ParentNotFoundError,
    ReservedFieldError,
)
from conceptmap.graph.history import History
from conceptmap.graph.hierarchy import would_create_cycle
from conceptmap.graph.models import (
    DEFAULT_DIRECTION,
    STRUCTURAL_FIELDS,
    Edge,
    ElementKind,
    Node,
    Snapshot,
    validate_direction,
)
from conceptmap.observability.logging import get_logger

if TYPE_CHECKING:
    from conceptmap.graph.models import EdgeDirection

log = get_logger(__name__)

Listener = Callable[[Snapshot], None]
_ElementT = TypeVar("_ElementT", Node, Edge)


def _new_id() -> str:
    return str(uuid.uuid4())


def build_registry(snapshot: Snapshot) -> dict[str, ElementKind]:
    """Index every element id of *snapshot* by kind.

    Raises:
        DuplicateIdError: If an id appears twice across nodes and edges.
    """
    registry: dict[str, ElementKind] = {}
    for kind, elements in (("node", snapshot.nodes), ("edge", snapshot.edges)):
        for element in elements:
            if element.id in registry:
                raise DuplicateIdError(element.id, existing_kind=registry[element.id])
            registry[element.id] = kind  # type: ignore[assignment]
    return registry


class Subscription:
    """Handle returned by GraphStore.subscribe()."""

    def __init__(self, store: GraphStore, listener: Listener) -> None:
        self._store = store
        self.listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        """Stop receiving snapshots. Calling it again does nothing."""
        if self.active:
            self.active = False
            self._store._remove_subscription(self)


class GraphStore:
    """Concept map document store.

    Args:
        snapshot: Initial document (loaded or seeded). Empty if omitted.
        history: History to record into. A fresh bounded History is
            created if omitted. It is reset so that entry 0 holds the
            initial snapshot.
        id_factory: Produces ids for new elements. Defaults to uuid4.

    Raises:
        DuplicateIdError: If the initial snapshot reuses an id.
    """

    def __init__(
        self,
        snapshot: Snapshot | None = None,
        *,
        history: History | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._snapshot = snapshot.clone() if snapshot is not None else Snapshot()
        self._registry = build_registry(self._snapshot)
        self._history = history if history is not None else History()
        self._history.reset(self._snapshot)
        self._id_factory = id_factory or _new_id
        self._subscriptions: list[Subscription] = []

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    @property
    def snapshot(self) -> Snapshot:
        """The current immutable snapshot."""
        return self._snapshot

    @property
    def history(self) -> History:
        return self._history

    def get_nodes(self) -> tuple[Node, ...]:
        return self._snapshot.nodes

    def get_edges(self) -> tuple[Edge, ...]:
        return self._snapshot.edges

    def kind_of(self, element_id: str) -> ElementKind | None:
        """Return "node", "edge", or None for an unknown id."""
        return self._registry.get(element_id)

    def get_element(self, element_id: str) -> Node | Edge | None:
        kind = self._registry.get(element_id)
        if kind == "node":
            return self._snapshot.find_node(element_id)
        if kind == "edge":
            return self._snapshot.find_edge(element_id)
        return None

    # -------------------------------------------------------------------------
    # Publish / subscribe
    # -------------------------------------------------------------------------

    def subscribe(self, listener: Listener, *, replay: bool = True) -> Subscription:
        """Register *listener* for every published snapshot.

        Args:
            listener: Called synchronously with each new snapshot.
            replay: If True, the listener is called immediately with the
                current snapshot before this method returns.

        Returns:
            Subscription whose unsubscribe() detaches the listener.
        """
        subscription = Subscription(self, listener)
        self._subscriptions.append(subscription)
        if replay:
            self._notify(subscription, self._snapshot)
        return subscription

    def _remove_subscription(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def _notify(self, subscription: Subscription, snapshot: Snapshot) -> None:
        try:
            subscription.listener(snapshot)
        except Exception:
            log.exception("listener_failed", listener=repr(subscription.listener))

    def _publish(self, snapshot: Snapshot) -> None:
        # Copy: a listener may unsubscribe while being notified
        for subscription in list(self._subscriptions):
            if subscription.active:
                self._notify(subscription, snapshot)

    # -------------------------------------------------------------------------
    # Internal mutation path
    # -------------------------------------------------------------------------

    def _commit(
        self,
        nodes: tuple[Node, ...],
        edges: tuple[Edge, ...],
        event: str,
        **context: Any,
    ) -> None:
        snapshot = Snapshot(nodes=nodes, edges=edges)
        self._registry = build_registry(snapshot)
        self._snapshot = snapshot
        self._history.save_state(snapshot)
        log.info(event, **context)
        self._publish(snapshot)

    def _restore(self, snapshot: Snapshot) -> None:
        self._registry = build_registry(snapshot)
        self._snapshot = snapshot
        self._publish(snapshot)

    def _claim_id(self) -> str:
        element_id = self._id_factory()
        if element_id in self._registry:
            raise DuplicateIdError(element_id, existing_kind=self._registry[element_id])
        return element_id

    @staticmethod
    def _validated(element: _ElementT, updates: dict[str, Any]) -> _ElementT:
        try:
            return element.updated(**updates)
        except ValidationError as e:
            reason = "; ".join(err["msg"] for err in e.errors())
            raise InvalidValueError(element.id, tuple(sorted(updates)), reason) from e

    def _replace_node(self, node_id: str, **updates: Any) -> bool:
        node = self.get_element(node_id)
        if not isinstance(node, Node):
            log.debug("node_not_found", node_id=node_id)
            return False
        replacement = self._validated(node, updates)
        nodes = tuple(replacement if n.id == node_id else n for n in self.get_nodes())
        self._commit(
            nodes, self.get_edges(), "node_updated", node_id=node_id, fields=sorted(updates)
        )
        return True

    def _replace_edge(self, edge_id: str, **updates: Any) -> bool:
        edge = self.get_element(edge_id)
        if not isinstance(edge, Edge):
            log.debug("edge_not_found", edge_id=edge_id)
            return False
        replacement = self._validated(edge, updates)
        edges = tuple(replacement if e.id == edge_id else e for e in self.get_edges())
        self._commit(
            self.get_nodes(), edges, "edge_updated", edge_id=edge_id, fields=sorted(updates)
        )
        return True

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def add_node(self, name: str, parent_id: str | None = None) -> str:
        """Create a node with default styling and return its id.

        Raises:
            ParentNotFoundError: If *parent_id* is given but names no node.
        """
        if parent_id is not None and self._registry.get(parent_id) != "node":
            raise ParentNotFoundError("", parent_id)
        node = Node(id=self._claim_id(), name=name, parent=parent_id)
        self._commit(
            (*self.get_nodes(), node),
            self.get_edges(),
            "node_added",
            node_id=node.id,
            parent=parent_id,
        )
        return node.id

    def add_edge(
        self,
        source: str,
        target: str,
        label: str = "",
        direction: EdgeDirection | str = DEFAULT_DIRECTION,
    ) -> str:
        """Create an edge with default styling and return its id.

        Endpoints are taken as given; see the module docstring.

        Raises:
            InvalidDirectionError: If *direction* is not a supported value.
        """
        direction = validate_direction(direction)
        edge = Edge(
            id=self._claim_id(),
            source=source,
            target=target,
            label=label,
            direction=direction,
        )
        self._commit(
            self.get_nodes(),
            (*self.get_edges(), edge),
            "edge_added",
            edge_id=edge.id,
            source=source,
            target=target,
        )
        return edge.id

    def remove_element(self, element_id: str) -> bool:
        """Remove a node (with every edge touching it) or a single edge.

        Removing a node and its edges is one mutation: one snapshot, one
        history entry. Returns False if the id is unknown.
        """
        kind = self._registry.get(element_id)
        if kind == "node":
            nodes = tuple(n for n in self.get_nodes() if n.id != element_id)
            edges = tuple(
                e for e in self.get_edges() if element_id not in (e.source, e.target)
            )
            self._commit(
                nodes,
                edges,
                "node_removed",
                node_id=element_id,
                edges_removed=len(self.get_edges()) - len(edges),
            )
            return True
        if kind == "edge":
            edges = tuple(e for e in self.get_edges() if e.id != element_id)
            self._commit(self.get_nodes(), edges, "edge_removed", edge_id=element_id)
            return True
        log.debug("element_not_found", element_id=element_id, operation="remove_element")
        return False

    def update_node_name(self, node_id: str, name: str) -> bool:
        return self._replace_node(node_id, name=name)

    def update_edge_label(self, edge_id: str, label: str) -> bool:
        return self._replace_edge(edge_id, label=label)

    def update_edge_direction(self, edge_id: str, direction: EdgeDirection | str) -> bool:
        """Change an edge's direction.

        Raises:
            InvalidDirectionError: If *direction* is not a supported value.
        """
        return self._replace_edge(edge_id, direction=validate_direction(direction))

    def set_node_parent(self, node_id: str, parent_id: str | None) -> bool:
        """Nest *node_id* under *parent_id*, or un-nest it with None.

        Returns False if *node_id* is unknown.

        Raises:
            ParentNotFoundError: If *parent_id* names no node.
            HierarchyCycleError: If the node would become its own ancestor.
        """
        if self._registry.get(node_id) != "node":
            log.debug("node_not_found", node_id=node_id, operation="set_node_parent")
            return False
        if parent_id is not None:
            if self._registry.get(parent_id) != "node":
                raise ParentNotFoundError(node_id, parent_id)
            chain = would_create_cycle(node_id, parent_id, self._snapshot)
            if chain is not None:
                raise HierarchyCycleError(node_id, parent_id, chain=chain)
        return self._replace_node(node_id, parent=parent_id)

    def update_element_style(self, element_id: str, prop: str, value: Any) -> bool:
        """Set one style property on whichever element *element_id* names.

        *prop* may use the camelCase wire name (``borderColor``) or the
        Python field name (``border_color``). Properties that are not
        predefined are stored as extra style keys.

        Raises:
            ReservedFieldError: If *prop* is a structural field.
            InvalidDirectionError: If *prop* is an edge's direction and
                *value* is not a supported value.
            InvalidValueError: If *value* does not fit a predefined
                property, e.g. None for ``borderColor``.
        """
        if prop in STRUCTURAL_FIELDS:
            raise ReservedFieldError(prop)
        kind = self._registry.get(element_id)
        if kind == "node":
            return self._replace_node(element_id, **{Node.field_name_for(prop): value})
        if kind == "edge":
            field_name = Edge.field_name_for(prop)
            if field_name == "direction":
                value = validate_direction(value)
            return self._replace_edge(element_id, **{field_name: value})
        log.debug("element_not_found", element_id=element_id, operation="update_element_style")
        return False

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def can_undo(self) -> bool:
        return self._history.can_undo()

    def can_redo(self) -> bool:
        return self._history.can_redo()

    def undo(self) -> bool:
        """Restore the previous snapshot without recording a new entry."""
        snapshot = self._history.undo()
        if snapshot is None:
            return False
        self._restore(snapshot)
        log.info("undo", pointer=self._history.pointer)
        return True

    def redo(self) -> bool:
        """Restore the next snapshot without recording a new entry."""
        snapshot = self._history.redo()
        if snapshot is None:
            return False
        self._restore(snapshot)
        log.info("redo", pointer=self._history.pointer)
        return True

    def reset(self, snapshot: Snapshot) -> None:
        """Replace the document and start a fresh history from it.

        Raises:
            DuplicateIdError: If *snapshot* reuses an id.
        """
        snapshot = snapshot.clone()
        self._registry = build_registry(snapshot)
        self._snapshot = snapshot
        self._history.reset(snapshot)
        log.info("store_reset", nodes=len(snapshot.nodes), edges=len(snapshot.edges))
        self._publish(snapshot)

    def __repr__(self) -> str:
        return (
            f"GraphStore(nodes={len(self._snapshot.nodes)}, edges={len(self._snapshot.edges)}, "
            f"history={len(self._history)})"
        )
