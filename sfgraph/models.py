"""Data models for metadata graphs and layout results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Literal, Mapping

from .categories import Category, RelationshipType

ViolationKind = Literal["dangling_endpoint", "illegal_self_loop", "negative_value", "duplicate_node"]


@dataclass(frozen=True)
class Node:
    """A metadata component (object, class, trigger, flow...)."""

    id: str
    display_name: str
    category: Category = Category.OTHER
    weight: float = 1.0  # field count, traffic volume

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "category": self.category.value,
            "weight": self.weight,
        }


@dataclass(frozen=True)
class Edge:
    """A directed relationship; direction only matters for flow layouts."""

    source: str
    target: str
    relationship_type: RelationshipType = RelationshipType.LOOKUP
    value: float = 1.0

    @property
    def key(self) -> tuple[str, str, RelationshipType]:
        return (self.source, self.target, self.relationship_type)

    @property
    def is_self_loop(self) -> bool:
        return self.source == self.target

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "relationship_type": self.relationship_type.value,
            "value": self.value,
        }


@dataclass(frozen=True)
class GraphViolation:
    """An input record dropped while building a graph in lenient mode."""

    kind: ViolationKind
    message: str
    edge: Edge | None = None
    node: Node | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.edge is not None:
            d["edge"] = self.edge.to_dict()
        if self.node is not None:
            d["node"] = self.node.to_dict()
        return d


class LayoutKind(str, Enum):
    FORCE = "force"
    CIRCULAR = "circular"
    RADIAL = "radial"
    SANKEY = "sankey"


@dataclass(frozen=True)
class LayoutState:
    """Position of one node in one layout run."""

    x: float
    y: float
    vx: float = 0.0
    vy: float = 0.0
    radius: float = 0.0
    pinned: bool = False
    settled: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "x": round(self.x, 3),
            "y": round(self.y, 3),
            "radius": round(self.radius, 3),
            "pinned": self.pinned,
            "settled": self.settled,
        }


@dataclass(frozen=True)
class BoundingBox:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @classmethod
    def around(cls, states: Iterable[LayoutState], *, default: tuple[float, float] = (0.0, 0.0)) -> BoundingBox:
        """Smallest box containing every node disc; degenerate at `default` when empty."""
        min_x = min_y = float("inf")
        max_x = max_y = float("-inf")
        for s in states:
            min_x = min(min_x, s.x - s.radius)
            min_y = min(min_y, s.y - s.radius)
            max_x = max(max_x, s.x + s.radius)
            max_y = max(max_y, s.y + s.radius)
        if min_x == float("inf"):
            x, y = default
            return cls(x, y, x, y)
        return cls(min_x, min_y, max_x, max_y)

    def to_dict(self) -> dict[str, float]:
        return {
            "min_x": round(self.min_x, 3),
            "min_y": round(self.min_y, 3),
            "max_x": round(self.max_x, 3),
            "max_y": round(self.max_y, 3),
        }


def freeze(mapping: Mapping[str, Any] | None = None) -> Mapping[str, Any]:
    """Read-only view over a private copy of `mapping`."""
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class LayoutResult:
    """Snapshot of one layout run, safe to hand to a renderer.

    `positions` and `rings` are read-only views; a result never changes after
    it has been produced.
    """

    kind: LayoutKind
    positions: Mapping[str, LayoutState]
    bounding_box: BoundingBox
    run_id: int = 0
    tick: int = 0
    settled: bool = True
    timed_out: bool = False
    rings: Mapping[str, int] = field(default_factory=freeze)
    warnings: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "positions", freeze(self.positions))
        object.__setattr__(self, "rings", freeze(self.rings))
        object.__setattr__(self, "warnings", tuple(self.warnings))

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "kind": self.kind.value,
            "run_id": self.run_id,
            "tick": self.tick,
            "settled": self.settled,
            "timed_out": self.timed_out,
            "bounding_box": self.bounding_box.to_dict(),
            "positions": {nid: s.to_dict() for nid, s in self.positions.items()},
        }
        if self.rings:
            d["rings"] = dict(self.rings)
        if self.warnings:
            d["warnings"] = list(self.warnings)
        return d


@dataclass(frozen=True)
class SankeyNodeHint:
    node_id: str
    rank: int
    order: int
    x: float
    y: float
    width: float
    height: float
    incoming_value: float
    outgoing_value: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "node_id": self.node_id,
            "rank": self.rank,
            "order": self.order,
            "x": round(self.x, 3),
            "y": round(self.y, 3),
            "width": round(self.width, 3),
            "height": round(self.height, 3),
            "incoming_value": self.incoming_value,
            "outgoing_value": self.outgoing_value,
        }


@dataclass(frozen=True)
class SankeyEdgeHint:
    source: str
    target: str
    relationship_type: RelationshipType
    value: float
    thickness: float
    is_back_edge: bool
    source_y: float  # band center where the link leaves the source node
    target_y: float  # band center where the link enters the target node

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "relationship_type": self.relationship_type.value,
            "value": self.value,
            "thickness": round(self.thickness, 3),
            "is_back_edge": self.is_back_edge,
            "source_y": round(self.source_y, 3),
            "target_y": round(self.target_y, 3),
        }


@dataclass(frozen=True)
class FlowConservationViolation:
    """Node whose forward inflow and outflow disagree beyond tolerance."""

    node_id: str
    incoming: float
    outgoing: float

    @property
    def difference(self) -> float:
        return self.outgoing - self.incoming

    def to_dict(self) -> dict[str, Any]:
        return {
            "node_id": self.node_id,
            "incoming": self.incoming,
            "outgoing": self.outgoing,
            "difference": self.difference,
        }


@dataclass(frozen=True)
class FlowLayoutResult(LayoutResult):
    """Sankey result with per-node and per-edge rendering hints."""

    node_hints: Mapping[str, SankeyNodeHint] = field(default_factory=freeze)
    edge_hints: tuple[SankeyEdgeHint, ...] = ()
    violations: tuple[FlowConservationViolation, ...] = ()
    crossings: int = 0

    def __post_init__(self) -> None:
        super().__post_init__()
        object.__setattr__(self, "node_hints", freeze(self.node_hints))
        object.__setattr__(self, "edge_hints", tuple(self.edge_hints))
        object.__setattr__(self, "violations", tuple(self.violations))

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["node_hints"] = {nid: h.to_dict() for nid, h in self.node_hints.items()}
        d["edge_hints"] = [h.to_dict() for h in self.edge_hints]
        d["violations"] = [v.to_dict() for v in self.violations]
        d["crossings"] = self.crossings
        return d
