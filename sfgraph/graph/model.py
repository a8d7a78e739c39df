"""Metadata relationship graph construction and queries."""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Iterable

from ..categories import Category, RelationshipType
from ..models import Edge, GraphViolation, Node

logger = logging.getLogger(__name__)


class GraphError(Exception):
    """Base class for graph construction failures."""


class InvalidNodeError(GraphError, ValueError):
    def __init__(self, node: Node, reason: str):
        super().__init__(f"invalid node {node.id!r}: {reason}")
        self.node = node
        self.reason = reason


class DuplicateNodeError(InvalidNodeError):
    def __init__(self, node: Node):
        super().__init__(node, "duplicate node id")


class InvalidEdgeError(GraphError, ValueError):
    def __init__(self, edge: Edge, reason: str):
        super().__init__(f"invalid edge {edge.source!r} -> {edge.target!r} ({edge.relationship_type.value}): {reason}")
        self.edge = edge
        self.reason = reason


@dataclass(frozen=True)
class Graph:
    """Immutable graph of metadata components.

    Node order is the insertion order of the snapshot and is the stable
    ordering every deterministic layout relies on. Equality compares nodes and
    edges only.
    """

    nodes: tuple[Node, ...] = ()
    edges: tuple[Edge, ...] = ()
    violations: tuple[GraphViolation, ...] = field(default=(), compare=False)

    _by_id: dict[str, Node] = field(init=False, repr=False, compare=False)
    _order: dict[str, int] = field(init=False, repr=False, compare=False)
    _out: dict[str, list[int]] = field(init=False, repr=False, compare=False)  # node -> edge positions
    _in: dict[str, list[int]] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", tuple(self.nodes))
        object.__setattr__(self, "edges", tuple(self.edges))
        object.__setattr__(self, "violations", tuple(self.violations))

        by_id: dict[str, Node] = {}
        order: dict[str, int] = {}
        for i, node in enumerate(self.nodes):
            if node.id in by_id:
                raise DuplicateNodeError(node)
            by_id[node.id] = node
            order[node.id] = i

        out: dict[str, list[int]] = {nid: [] for nid in by_id}
        inc: dict[str, list[int]] = {nid: [] for nid in by_id}
        for pos, edge in enumerate(self.edges):
            if edge.source not in by_id or edge.target not in by_id:
                raise InvalidEdgeError(edge, "endpoint not in graph")
            out[edge.source].append(pos)
            inc[edge.target].append(pos)

        object.__setattr__(self, "_by_id", by_id)
        object.__setattr__(self, "_order", order)
        object.__setattr__(self, "_out", out)
        object.__setattr__(self, "_in", inc)

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._by_id

    @property
    def node_ids(self) -> tuple[str, ...]:
        return tuple(n.id for n in self.nodes)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._by_id

    def node(self, node_id: str) -> Node:
        """Look up a node; raises KeyError for unknown ids."""
        return self._by_id[node_id]

    def order_of(self, node_id: str) -> int:
        """Insertion index of a node (stable sort key)."""
        return self._order[node_id]

    def sort_key(self, node_id: str) -> tuple[int, str]:
        return (self._order[node_id], node_id)

    def out_edges(self, node_id: str) -> tuple[Edge, ...]:
        return tuple(self.edges[p] for p in self._out[node_id])

    def in_edges(self, node_id: str) -> tuple[Edge, ...]:
        return tuple(self.edges[p] for p in self._in[node_id])

    def incident_edges(self, node_id: str) -> tuple[Edge, ...]:
        """Edges touching a node in graph order; a self-loop appears once."""
        positions = sorted(set(self._out[node_id]) | set(self._in[node_id]))
        return tuple(self.edges[p] for p in positions)

    def successors(self, node_id: str) -> tuple[str, ...]:
        """Targets of a node's outgoing edges (its dependencies)."""
        return self._sorted_unique(e.target for e in self.out_edges(node_id) if e.target != node_id)

    def predecessors(self, node_id: str) -> tuple[str, ...]:
        """Sources of a node's incoming edges (its dependents)."""
        return self._sorted_unique(e.source for e in self.in_edges(node_id) if e.source != node_id)

    def neighbors(self, node_id: str) -> tuple[str, ...]:
        """Adjacent nodes ignoring direction, in stable order, excluding the node itself."""
        ids = [e.target for e in self.out_edges(node_id)] + [e.source for e in self.in_edges(node_id)]
        return self._sorted_unique(x for x in ids if x != node_id)

    def degree(self, node_id: str) -> int:
        """Number of incident edges (undirected view)."""
        return len(self.incident_edges(node_id))

    def edges_between(self, a: str, b: str) -> tuple[Edge, ...]:
        """All edges joining `a` and `b` in either direction."""
        if a not in self._by_id:
            raise KeyError(a)
        if b not in self._by_id:
            raise KeyError(b)
        return tuple(e for e in self.incident_edges(a) if {e.source, e.target} == {a, b})

    def category_counts(self) -> Counter[Category]:
        return Counter(n.category for n in self.nodes)

    def subgraph(self, node_ids: Iterable[str]) -> Graph:
        """Induced subgraph on `node_ids` (unknown ids are ignored)."""
        keep = set(node_ids)
        nodes = tuple(n for n in self.nodes if n.id in keep)
        edges = tuple(e for e in self.edges if e.source in keep and e.target in keep)
        return Graph(nodes=nodes, edges=edges)

    def _sorted_unique(self, ids: Iterable[str]) -> tuple[str, ...]:
        return tuple(sorted(set(ids), key=self.sort_key))


def build_graph(nodes: Iterable[Node], edges: Iterable[Edge], *, lenient: bool = False) -> Graph:
    """Validate a metadata snapshot and build a Graph from it.

    Strict mode raises on the first invalid record. Lenient mode drops invalid
    records, keeps the rest of the graph usable, and lists what was dropped in
    `graph.violations`.

    Edges sharing (source, target, relationship_type) are merged by summing
    their values.
    """
    violations: list[GraphViolation] = []

    def reject(exc: GraphError, violation: GraphViolation) -> None:
        if not lenient:
            raise exc
        logger.warning(f"Dropping {violation.message}")
        violations.append(violation)

    kept_nodes: dict[str, Node] = {}
    for node in nodes:
        if node.id in kept_nodes:
            reject(
                DuplicateNodeError(node),
                GraphViolation("duplicate_node", f"duplicate node id {node.id!r}", node=node),
            )
            continue
        if not math.isfinite(node.weight) or node.weight < 0:
            exc = InvalidNodeError(node, f"weight must be a non-negative number, got {node.weight!r}")
            reject(exc, GraphViolation("negative_value", f"weight of node {node.id!r} (clamped to 0)", node=node))
            node = replace(node, weight=0.0)
        kept_nodes[node.id] = node

    merged: dict[tuple[str, str, RelationshipType], Edge] = {}
    for edge in edges:
        missing = [x for x in (edge.source, edge.target) if x not in kept_nodes]
        if missing:
            reason = f"unknown endpoint {missing[0]!r}"
            reject(
                InvalidEdgeError(edge, reason),
                GraphViolation("dangling_endpoint", f"edge {edge.source!r} -> {edge.target!r}: {reason}", edge=edge),
            )
            continue
        if edge.is_self_loop and edge.relationship_type is not RelationshipType.SELF_JOIN:
            reason = f"self-loop on {edge.source!r} must be a SelfJoin"
            reject(InvalidEdgeError(edge, reason), GraphViolation("illegal_self_loop", reason, edge=edge))
            continue
        if not math.isfinite(edge.value) or edge.value < 0:
            reason = f"value must be a non-negative number, got {edge.value!r}"
            reject(
                InvalidEdgeError(edge, reason),
                GraphViolation("negative_value", f"edge {edge.source!r} -> {edge.target!r}: {reason}", edge=edge),
            )
            continue

        existing = merged.get(edge.key)
        if existing is not None:
            merged[edge.key] = replace(existing, value=existing.value + edge.value)
        else:
            merged[edge.key] = edge

    graph = Graph(nodes=tuple(kept_nodes.values()), edges=tuple(merged.values()), violations=tuple(violations))
    logger.debug(f"Built graph with {len(graph.nodes)} nodes, {len(graph.edges)} edges, {len(violations)} violations")
    return graph
