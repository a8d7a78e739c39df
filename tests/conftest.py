"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest

from sfgraph.categories import Category, RelationshipType
from sfgraph.graph import Graph, build_graph, load_snapshot
from sfgraph.models import Edge, Node


def make_graph(edges: list[tuple[str, str]] | list[tuple[str, str, float]], *, nodes: list[str] | None = None) -> Graph:
    """Build a graph from (source, target[, value]) tuples; nodes default to edge order."""
    ids = list(nodes or [])
    for e in edges:
        for nid in e[:2]:
            if nid not in ids:
                ids.append(nid)
    return build_graph(
        [Node(id=nid, display_name=nid) for nid in ids],
        [Edge(source=e[0], target=e[1], value=e[2] if len(e) > 2 else 1.0) for e in edges],
    )


@pytest.fixture
def fixture_snapshot_path() -> Path:
    """Path to the sample org snapshot."""
    return Path(__file__).parent / "fixtures" / "org_snapshot.json"


@pytest.fixture
def fixture_graph(fixture_snapshot_path: Path) -> Graph:
    """Strictly built graph of the sample org snapshot."""
    return load_snapshot(fixture_snapshot_path).build()


@pytest.fixture
def sales_graph() -> Graph:
    """Account with two child objects."""
    nodes = [
        Node("Account", "Account", Category.STANDARD_OBJECT, 42),
        Node("Contact", "Contact", Category.STANDARD_OBJECT, 30),
        Node("Opportunity", "Opportunity", Category.STANDARD_OBJECT, 25),
    ]
    edges = [
        Edge("Account", "Contact", RelationshipType.LOOKUP),
        Edge("Account", "Opportunity", RelationshipType.LOOKUP),
    ]
    return build_graph(nodes, edges)


@pytest.fixture
def graph_from_edges():
    """Factory fixture: `graph_from_edges([("A", "B"), ("B", "C", 2.0)])`."""
    return make_graph
