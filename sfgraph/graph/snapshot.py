"""Loading metadata snapshots exported by the metadata provider.

A snapshot is untrusted input: records that cannot be turned into a Node or
Edge are skipped and counted here, and referential checks are left to
`build_graph`.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ..categories import parse_category, parse_relationship_type, strength_value
from ..models import Edge, Node
from .model import Graph, build_graph

logger = logging.getLogger(__name__)

_COMPONENT_KEYS = ("components", "nodes", "objects")
_RELATIONSHIP_KEYS = ("relationships", "edges", "links", "dependencies")


@dataclass
class Snapshot:
    """Components and relationships decoded from a snapshot file."""

    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)  # human-readable reasons

    def build(self, *, lenient: bool = False) -> Graph:
        return build_graph(self.nodes, self.edges, lenient=lenient)


def _first(raw: dict, *keys: str) -> Any:
    for k in keys:
        if k in raw and raw[k] is not None:
            return raw[k]
    return None


def _number(value: Any, default: float) -> float:
    if value is None or isinstance(value, bool):
        return default
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"not a finite number: {value!r}")
    return number


def _parse_component(raw: Any) -> Node:
    if not isinstance(raw, dict):
        raise ValueError("component is not a mapping")
    node_id = _first(raw, "id", "apiName", "name")
    if node_id is None or not str(node_id).strip():
        raise ValueError("component has no id")
    node_id = str(node_id).strip()
    name = str(_first(raw, "displayName", "display_name", "label", "name") or node_id)
    category = parse_category(_first(raw, "category", "type", "componentType"), name=node_id)
    weight = _number(_first(raw, "weight", "fieldCount", "value", "size"), 1.0)
    return Node(id=node_id, display_name=name, category=category, weight=weight)


def _parse_relationship(raw: Any, index_ids: list[str]) -> Edge:
    if not isinstance(raw, dict):
        raise ValueError("relationship is not a mapping")

    def endpoint(*keys: str) -> str:
        value = _first(raw, *keys)
        if value is None:
            raise ValueError(f"relationship has no {keys[0]}")
        # Sankey-style exports reference components by list index
        if isinstance(value, int) and not isinstance(value, bool):
            if not 0 <= value < len(index_ids):
                raise ValueError(f"{keys[0]} index {value} out of range")
            return index_ids[value]
        return str(value).strip()

    source = endpoint("source", "sourceId", "from")
    target = endpoint("target", "targetId", "to")
    rel_type = parse_relationship_type(_first(raw, "type", "relationshipType", "dependencyType"))
    value = _first(raw, "value", "magnitude", "weight")
    if value is None:
        value = strength_value(_first(raw, "strength", "dependencyStrength"))
    return Edge(source=source, target=target, relationship_type=rel_type, value=_number(value, 1.0))


def parse_snapshot(data: Any) -> Snapshot:
    """Decode components and relationships from an already-parsed document."""
    if not isinstance(data, dict):
        raise ValueError("snapshot must be a mapping with components and relationships")

    snapshot = Snapshot()
    components = next((data[k] for k in _COMPONENT_KEYS if isinstance(data.get(k), list)), [])
    relationships = next((data[k] for k in _RELATIONSHIP_KEYS if isinstance(data.get(k), list)), [])

    index_ids: list[str] = []
    for i, raw in enumerate(components):
        try:
            node = _parse_component(raw)
        except (TypeError, ValueError) as e:
            snapshot.skipped.append(f"component #{i}: {e}")
            index_ids.append("")
            continue
        snapshot.nodes.append(node)
        index_ids.append(node.id)

    for i, raw in enumerate(relationships):
        try:
            snapshot.edges.append(_parse_relationship(raw, index_ids))
        except (TypeError, ValueError) as e:
            snapshot.skipped.append(f"relationship #{i}: {e}")

    for reason in snapshot.skipped:
        logger.warning(f"Skipped snapshot record {reason}")
    return snapshot


def load_snapshot(path: Path) -> Snapshot:
    """Read a JSON or YAML snapshot file."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yml", ".yaml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    snapshot = parse_snapshot(data)
    logger.info(f"Loaded {len(snapshot.nodes)} components and {len(snapshot.edges)} relationships from {path}")
    return snapshot
