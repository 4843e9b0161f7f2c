"""Document store error types.

Unknown ids are never errors: mutations that target a missing element are
silent no-ops. The exceptions below cover the cases that cannot degrade
that way - a broken id namespace, an invalid nesting, or a bad argument.
"""

from __future__ import annotations

from dataclasses import dataclass, field


class ConceptMapError(Exception):
    """Base class for all conceptmap errors."""


@dataclass
class DuplicateIdError(ConceptMapError):
    """Raised when an id is already taken by a node or an edge.

    Node and edge ids share one namespace, so a single id can resolve to
    at most one element of either kind.

    Attributes:
        element_id: The id that collided.
        existing_kind: Kind of the element already holding the id.
    """

    element_id: str
    existing_kind: str = ""

    def __post_init__(self) -> None:
        msg = f"Element id '{self.element_id}' is already in use"
        if self.existing_kind:
            msg += f" by a {self.existing_kind}"
        super().__init__(msg)


class HierarchyError(ConceptMapError):
    """Base class for invalid parent assignments."""


@dataclass
class ParentNotFoundError(HierarchyError):
    """Raised when a parent reference names a node that does not exist.

    Attributes:
        node_id: The node being nested (empty for a node not yet created).
        parent_id: The missing parent id.
    """

    node_id: str
    parent_id: str

    def __post_init__(self) -> None:
        target = f"node '{self.node_id}'" if self.node_id else "new node"
        super().__init__(f"Cannot nest {target} under '{self.parent_id}': parent not found")


@dataclass
class HierarchyCycleError(HierarchyError):
    """Raised when a parent assignment would make a node its own ancestor.

    Attributes:
        node_id: The node being nested.
        parent_id: The requested parent.
        chain: Ancestor chain from parent_id upwards that reaches node_id.
    """

    node_id: str
    parent_id: str
    chain: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        msg = f"Cannot nest '{self.node_id}' under '{self.parent_id}': would create a cycle"
        if self.chain:
            msg += f" ({' -> '.join(self.chain)})"
        super().__init__(msg)


@dataclass
class InvalidDirectionError(ConceptMapError, ValueError):
    """Raised for an edge direction outside the supported set."""

    direction: str
    allowed: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        msg = f"Invalid edge direction '{self.direction}'"
        if self.allowed:
            msg += f"; expected one of: {', '.join(self.allowed)}"
        super().__init__(msg)


@dataclass
class ReservedFieldError(ConceptMapError, ValueError):
    """Raised when the generic style setter is asked to change a structural field."""

    field_name: str

    def __post_init__(self) -> None:
        super().__init__(
            f"'{self.field_name}' is a structural field and cannot be set as a style"
        )


@dataclass
class InvalidValueError(ConceptMapError, ValueError):
    """Raised when an update gives a property a value its type can't hold.

    Attributes:
        element_id: The element being updated.
        fields: Names of the fields in the rejected update.
        reason: Validation message.
    """

    element_id: str
    fields: tuple[str, ...]
    reason: str

    def __post_init__(self) -> None:
        super().__init__(
            f"Invalid value for {', '.join(self.fields)} on '{self.element_id}': {self.reason}"
        )


@dataclass
class StorageError(ConceptMapError):
    """Raised by storage backends when a record cannot be read or written.

    Attributes:
        key: Storage key of the record.
        reason: Description of the underlying failure.
    """

    key: str
    reason: str

    def __post_init__(self) -> None:
        super().__init__(f"Storage failure for '{self.key}': {self.reason}")
