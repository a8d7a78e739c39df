"""Circular and radial (focal node) placement.

Both are pure functions of the graph: no randomness, no iteration, so the
same input always produces bit-identical positions.
"""

from __future__ import annotations

import logging
import math
from collections import deque

from ..graph.model import Graph
from ..models import BoundingBox, LayoutKind, LayoutResult, LayoutState
from .config import CircularConfig

logger = logging.getLogger(__name__)


def _ring_positions(
    node_ids: list[str], cx: float, cy: float, radius: float, node_radius: float
) -> dict[str, LayoutState]:
    if radius == 0:
        return {nid: LayoutState(x=cx, y=cy, radius=node_radius, settled=True) for nid in node_ids}
    step = 2 * math.pi / len(node_ids) if node_ids else 0.0
    return {
        nid: LayoutState(
            x=cx + radius * math.cos(i * step),
            y=cy + radius * math.sin(i * step),
            radius=node_radius,
            settled=True,
        )
        for i, nid in enumerate(node_ids)
    }


def bfs_rings(graph: Graph, focal_node_id: str) -> dict[str, int]:
    """Undirected hop distance from the focal node; unreachable nodes get max+1."""
    depth = {focal_node_id: 0}
    queue = deque([focal_node_id])
    while queue:
        current = queue.popleft()
        for nxt in graph.neighbors(current):
            if nxt not in depth:
                depth[nxt] = depth[current] + 1
                queue.append(nxt)

    unreachable = [nid for nid in graph.node_ids if nid not in depth]
    if unreachable:
        outer = max(depth.values()) + 1
        for nid in unreachable:
            depth[nid] = outer
    return depth


def layout_circular(
    graph: Graph,
    *,
    focal_node_id: str | None = None,
    config: CircularConfig | None = None,
    run_id: int = 0,
) -> LayoutResult:
    """
    Place nodes on a circle, or on concentric rings around `focal_node_id`.

    Ring 0 (the focal node) sits at the center and ring k at
    k * radius / outermost_ring. Inside a ring, nodes keep insertion order
    and are spaced evenly starting at angle 0.
    """
    cfg = config or CircularConfig()
    cx, cy = cfg.center
    ordered = sorted(graph.node_ids, key=graph.sort_key)
    warnings: list[str] = []

    if focal_node_id is not None and focal_node_id not in graph:
        message = f"focal node {focal_node_id!r} is not in the graph; using circular layout"
        logger.warning(f"Focal node {focal_node_id!r} missing after filtering, falling back to circular")
        warnings.append(message)
        focal_node_id = None

    if focal_node_id is None:
        positions = _ring_positions(ordered, cx, cy, cfg.radius, cfg.node_radius)
        kind = LayoutKind.CIRCULAR
        rings: dict[str, int] = {}
    else:
        rings = bfs_rings(graph, focal_node_id)
        outermost = max(rings.values())
        positions = {}
        for ring in range(outermost + 1):
            members = [nid for nid in ordered if rings[nid] == ring]
            ring_radius = ring * cfg.radius / outermost if outermost else 0.0
            positions.update(_ring_positions(members, cx, cy, ring_radius, cfg.node_radius))
        # keep result order aligned with graph order
        positions = {nid: positions[nid] for nid in ordered}
        kind = LayoutKind.RADIAL

    return LayoutResult(
        kind=kind,
        positions=positions,
        bounding_box=BoundingBox.around(positions.values(), default=(cx, cy)),
        run_id=run_id,
        settled=True,
        rings=rings,
        warnings=tuple(warnings),
    )
