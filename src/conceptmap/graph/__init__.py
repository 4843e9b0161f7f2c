"""Concept map document store.

The store is the single source of truth for the document. Collaborators
(rendering, persistence, selection) subscribe to it and see immutable
snapshots; they change the document only through its mutation API.
"""

from conceptmap.graph.errors import (
    ConceptMapError,
    DuplicateIdError,
    HierarchyCycleError,
    HierarchyError,
    InvalidDirectionError,
    InvalidValueError,
    ParentNotFoundError,
    ReservedFieldError,
    StorageError,
)
from conceptmap.graph.hierarchy import get_ancestors, get_descendants, would_create_cycle
from conceptmap.graph.history import MAX_HISTORY_SIZE, History
from conceptmap.graph.models import (
    EDGE_DIRECTIONS,
    Edge,
    EdgeDirection,
    ElementKind,
    Node,
    Snapshot,
)
from conceptmap.graph.propagation import StylePropagator
from conceptmap.graph.selection import SelectionEvent, SelectionTracker
from conceptmap.graph.store import GraphStore, Subscription

__all__ = [
    "EDGE_DIRECTIONS",
    "MAX_HISTORY_SIZE",
    "ConceptMapError",
    "DuplicateIdError",
    "Edge",
    "EdgeDirection",
    "ElementKind",
    "GraphStore",
    "HierarchyCycleError",
    "HierarchyError",
    "History",
    "InvalidDirectionError",
    "InvalidValueError",
    "Node",
    "ParentNotFoundError",
    "ReservedFieldError",
    "SelectionEvent",
    "SelectionTracker",
    "Snapshot",
    "StorageError",
    "StylePropagator",
    "Subscription",
    "get_ancestors",
    "get_descendants",
    "would_create_cycle",
]
