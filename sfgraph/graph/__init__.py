"""Metadata graph model, filtering and snapshot loading."""

from .filter import AllOf, FilterCriteria, filter_graph, filter_relationships, neighborhood
from .model import (
    DuplicateNodeError,
    Graph,
    GraphError,
    InvalidEdgeError,
    InvalidNodeError,
    build_graph,
)
from .snapshot import Snapshot, load_snapshot, parse_snapshot

__all__ = [
    "AllOf",
    "DuplicateNodeError",
    "FilterCriteria",
    "Graph",
    "GraphError",
    "InvalidEdgeError",
    "InvalidNodeError",
    "Snapshot",
    "build_graph",
    "filter_graph",
    "filter_relationships",
    "load_snapshot",
    "neighborhood",
    "parse_snapshot",
]
