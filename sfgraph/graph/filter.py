"""Search/category filtering and focused subgraph extraction."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Iterable, Literal, Protocol

from ..categories import Category, RelationshipType, parse_category, parse_relationship_type
from ..models import Node
from .model import Graph

Direction = Literal["out", "in", "both"]


class NodePredicate(Protocol):
    def matches(self, node: Node) -> bool: ...


@dataclass(frozen=True)
class FilterCriteria:
    """Search term and category allow-list from the dashboard's filter bar.

    An empty or missing term matches every node; an empty or missing
    allow-list admits every category. Allow-list entries that name no known
    category raise ``ValueError``.
    """

    search_term: str | None = None
    categories: frozenset[Category] | None = None

    def __post_init__(self) -> None:
        term = (self.search_term or "").strip()
        object.__setattr__(self, "search_term", term or None)
        if self.categories is not None:
            cats = frozenset(parse_category(c, strict=True) for c in self.categories)
            object.__setattr__(self, "categories", cats or None)

    def matches(self, node: Node) -> bool:
        if self.categories and node.category not in self.categories:
            return False
        if self.search_term:
            needle = self.search_term.lower()
            if needle not in node.display_name.lower() and needle not in node.id.lower():
                return False
        return True

    def __and__(self, other: NodePredicate) -> AllOf:
        return AllOf((self, other))


@dataclass(frozen=True)
class AllOf:
    """Conjunction of criteria; `filter_graph(g, a & b)` keeps nodes matching both."""

    parts: tuple[NodePredicate, ...]

    def matches(self, node: Node) -> bool:
        return all(p.matches(node) for p in self.parts)

    def __and__(self, other: NodePredicate) -> AllOf:
        return AllOf(self.parts + (other,))


def filter_graph(graph: Graph, criteria: NodePredicate | None = None) -> Graph:
    """Induced subgraph of the nodes matching `criteria`.

    Node and edge order follow the input graph, so filtering is idempotent and
    successive filters commute.
    """
    if criteria is None:
        return graph.subgraph(graph.node_ids)
    return graph.subgraph(n.id for n in graph.nodes if criteria.matches(n))


def filter_relationships(graph: Graph, types: Iterable[RelationshipType | str] | None) -> Graph:
    """Keep every node but only the edges of the allowed relationship types.

    An empty or missing allow-list keeps all edges.
    """
    allowed = {parse_relationship_type(t) for t in (types or ())}
    if not allowed:
        return graph.subgraph(graph.node_ids)
    return Graph(nodes=graph.nodes, edges=tuple(e for e in graph.edges if e.relationship_type in allowed))


def neighborhood(graph: Graph, node_id: str, *, depth: int = 1, direction: Direction = "both") -> Graph:
    """Induced subgraph of nodes within `depth` hops of `node_id`.

    direction="out" follows dependencies (what the component uses),
    direction="in" follows dependents (where the component is used).
    """
    if direction not in ("out", "in", "both"):
        raise ValueError("direction must be one of: out, in, both")
    if depth < 0:
        raise ValueError("depth must be >= 0")
    graph.node(node_id)  # KeyError for unknown ids

    def step(nid: str) -> tuple[str, ...]:
        if direction == "out":
            return graph.successors(nid)
        if direction == "in":
            return graph.predecessors(nid)
        return graph.neighbors(nid)

    seen = {node_id: 0}
    queue = deque([node_id])
    while queue:
        current = queue.popleft()
        if seen[current] >= depth:
            continue
        for nxt in step(current):
            if nxt not in seen:
                seen[nxt] = seen[current] + 1
                queue.append(nxt)

    return graph.subgraph(seen)
