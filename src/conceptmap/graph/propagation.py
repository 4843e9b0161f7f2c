"""Cascading style changes from a node to everything nested inside it."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from conceptmap.graph.hierarchy import get_descendants
from conceptmap.observability.logging import get_logger

if TYPE_CHECKING:
    from conceptmap.graph.store import GraphStore

log = get_logger(__name__)


class StylePropagator:
    """Apply a style property to a node and all of its descendants.

    Every element is updated through GraphStore.update_element_style(), so
    each one gets its own history entry. Undoing a cascade over N elements
    takes N undo steps.
    """

    def __init__(self, store: GraphStore) -> None:
        self._store = store

    def apply_style_to_children(self, parent_id: str, prop: str, value: Any) -> int:
        """Set *prop* on *parent_id* and then on each descendant in pre-order.

        Descendants are resolved once, against the snapshot current at the
        time of the call.

        Returns:
            Number of elements updated (0 if *parent_id* is not a node).

        Raises:
            ReservedFieldError: If *prop* is a structural field.
        """
        if self._store.kind_of(parent_id) != "node":
            log.warning("propagation_parent_not_found", parent_id=parent_id, prop=prop)
            return 0

        descendants = get_descendants(parent_id, self._store.snapshot)
        log.info(
            "propagation_started",
            parent_id=parent_id,
            prop=prop,
            descendants=len(descendants),
        )

        updated = int(self._store.update_element_style(parent_id, prop, value))
        for node in descendants:
            updated += int(self._store.update_element_style(node.id, prop, value))

        log.info("propagation_completed", parent_id=parent_id, prop=prop, updated=updated)
        return updated
