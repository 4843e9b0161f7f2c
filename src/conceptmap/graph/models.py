"""Element models and the immutable document snapshot.

Nodes and edges are frozen pydantic models. Field names are snake_case in
Python and camelCase on the wire (``border_color`` <-> ``borderColor``),
matching the record format the rendering layer and durable storage use.
Extra properties are allowed so that any style key set through the
generic style setter survives a save/load cycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Self, get_args

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from conceptmap.graph.errors import InvalidDirectionError

EdgeDirection = Literal["none", "source-to-target", "target-to-source", "both"]
ElementKind = Literal["node", "edge"]

EDGE_DIRECTIONS: tuple[str, ...] = get_args(EdgeDirection)
DEFAULT_DIRECTION: EdgeDirection = "source-to-target"

# Node style defaults
DEFAULT_NODE_BACKGROUND_COLOR = "#666"
DEFAULT_NODE_SHAPE = "round-rectangle"
DEFAULT_NODE_BORDER_COLOR = "#000"
DEFAULT_NODE_BORDER_WIDTH = 2
DEFAULT_NODE_WIDTH = "label"
DEFAULT_NODE_HEIGHT = "label"
DEFAULT_NODE_PADDING = "10px"

# Edge style defaults
DEFAULT_EDGE_LINE_COLOR = "#ccc"
DEFAULT_EDGE_ARROW_SHAPE = "triangle"
DEFAULT_EDGE_WIDTH = 3
DEFAULT_EDGE_CURVE_STYLE = "bezier"

# Fields that define graph structure rather than appearance
STRUCTURAL_FIELDS = frozenset({"id", "source", "target", "parent"})


def validate_direction(direction: str) -> EdgeDirection:
    """Return *direction* if it is a supported edge direction.

    Raises:
        InvalidDirectionError: If the value is not one of EDGE_DIRECTIONS.
    """
    if direction not in EDGE_DIRECTIONS:
        raise InvalidDirectionError(direction, allowed=EDGE_DIRECTIONS)
    return direction  # type: ignore[return-value]


class _Element(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
        alias_generator=to_camel,
        coerce_numbers_to_str=True,
    )

    id: str = Field(min_length=1)

    @classmethod
    def field_name_for(cls, prop: str) -> str:
        """Map a property name in either spelling to the Python attribute.

        Unknown properties are returned unchanged and end up as extras.
        """
        if prop in cls.model_fields:
            return prop
        for name, info in cls.model_fields.items():
            if info.alias == prop:
                return name
        return prop

    def updated(self, **updates: Any) -> Self:
        """Return a validated copy with *updates* applied.

        Numbers given for string fields are stored as strings; values that
        fit no field type are rejected.

        Raises:
            pydantic.ValidationError: If a value does not fit its field.
        """
        return type(self).model_validate({**self.model_dump(), **updates})

    def with_property(self, prop: str, value: Any) -> Self:
        """Return a validated copy with one property replaced."""
        return self.updated(**{self.field_name_for(prop): value})

    def get_property(self, prop: str) -> Any:
        """Read a property by either spelling, including extras."""
        name = self.field_name_for(prop)
        if name in type(self).model_fields:
            return getattr(self, name)
        return (self.model_extra or {}).get(prop)

    def to_data(self) -> dict[str, Any]:
        """Serialize to the camelCase ``data`` payload.

        None values are left out, so a custom property set to None does not
        survive a save.
        """
        return self.model_dump(by_alias=True, exclude_none=True)


class Node(_Element):
    """A concept. ``parent`` nests it inside another node."""

    name: str = ""
    parent: str | None = None
    background_color: str = DEFAULT_NODE_BACKGROUND_COLOR
    shape: str = DEFAULT_NODE_SHAPE
    border_color: str = DEFAULT_NODE_BORDER_COLOR
    border_width: int | float | str = DEFAULT_NODE_BORDER_WIDTH
    width: int | float | str = DEFAULT_NODE_WIDTH
    height: int | float | str = DEFAULT_NODE_HEIGHT
    padding: str | int | float = DEFAULT_NODE_PADDING


class Edge(_Element):
    """A labeled relation between two nodes."""

    source: str
    target: str
    label: str = ""
    direction: EdgeDirection = DEFAULT_DIRECTION
    line_color: str = DEFAULT_EDGE_LINE_COLOR
    arrow_shape: str = DEFAULT_EDGE_ARROW_SHAPE
    edge_width: int | float | str = DEFAULT_EDGE_WIDTH
    curve_style: str = DEFAULT_EDGE_CURVE_STYLE


@dataclass(frozen=True)
class Snapshot:
    """The whole document at one instant.

    Both collections are tuples of frozen elements, so a snapshot can be
    retained and compared independently of later mutations.
    """

    nodes: tuple[Node, ...] = field(default_factory=tuple)
    edges: tuple[Edge, ...] = field(default_factory=tuple)

    def clone(self) -> Snapshot:
        """Return a structural copy sharing no element objects with this one."""
        return Snapshot(
            nodes=tuple(n.model_copy(deep=True) for n in self.nodes),
            edges=tuple(e.model_copy(deep=True) for e in self.edges),
        )

    def find_node(self, node_id: str) -> Node | None:
        return next((n for n in self.nodes if n.id == node_id), None)

    def find_edge(self, edge_id: str) -> Edge | None:
        return next((e for e in self.edges if e.id == edge_id), None)

    def to_records(self) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        """Convert to the ``[{"data": {...}}, ...]`` record lists."""
        return (
            [{"data": n.to_data()} for n in self.nodes],
            [{"data": e.to_data()} for e in self.edges],
        )

    @classmethod
    def from_records(
        cls,
        node_records: list[dict[str, Any]],
        edge_records: list[dict[str, Any]],
    ) -> Snapshot:
        """Build a snapshot from record lists.

        Raises:
            pydantic.ValidationError: If a record's payload is malformed.
            KeyError: If a record lacks its ``data`` envelope.
        """
        return cls(
            nodes=tuple(Node.model_validate(r["data"]) for r in node_records),
            edges=tuple(Edge.model_validate(r["data"]) for r in edge_records),
        )

    def __repr__(self) -> str:
        return f"Snapshot(nodes={len(self.nodes)}, edges={len(self.edges)})"
