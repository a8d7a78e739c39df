"""Layered flow (Sankey) layout.

Pipeline: classify back-edges with a DFS, rank nodes by longest path over
forward edges, reorder each rank with barycenter sweeps, then size and place
node rectangles and link bands. Cycles never fail the layout; the edges that
close them are flagged as back-edges and rendered as feedback links.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict

from ..graph.model import Graph
from ..models import (
    BoundingBox,
    Edge,
    FlowConservationViolation,
    FlowLayoutResult,
    LayoutKind,
    LayoutState,
    SankeyEdgeHint,
    SankeyNodeHint,
)
from .config import SankeyConfig

logger = logging.getLogger(__name__)

_WHITE, _GRAY, _BLACK = 0, 1, 2


def find_back_edges(graph: Graph) -> frozenset[int]:
    """Positions (in `graph.edges`) of edges that close a cycle.

    DFS roots and out-edges are visited in graph order, so the choice of
    which edge of a cycle is "back" is stable across runs. Self-loops are
    never returned; they take no part in layering at all.
    """
    out_positions: dict[str, list[int]] = {nid: [] for nid in graph.node_ids}
    for pos, edge in enumerate(graph.edges):
        if not edge.is_self_loop:
            out_positions[edge.source].append(pos)

    color = dict.fromkeys(graph.node_ids, _WHITE)
    back: set[int] = set()
    for root in graph.node_ids:
        if color[root] != _WHITE:
            continue
        color[root] = _GRAY
        stack = [(root, iter(out_positions[root]))]
        while stack:
            node, pending = stack[-1]
            pos = next(pending, None)
            if pos is None:
                color[node] = _BLACK
                stack.pop()
                continue
            target = graph.edges[pos].target
            if color[target] == _GRAY:
                back.add(pos)
            elif color[target] == _WHITE:
                color[target] = _GRAY
                stack.append((target, iter(out_positions[target])))
    return frozenset(back)


def assign_ranks(graph: Graph, forward: list[Edge]) -> dict[str, int]:
    """Longest-path layering: sources at 0, others one past their deepest predecessor."""
    indegree = dict.fromkeys(graph.node_ids, 0)
    successors: dict[str, list[str]] = defaultdict(list)
    for edge in forward:
        indegree[edge.target] += 1
        successors[edge.source].append(edge.target)

    rank = dict.fromkeys(graph.node_ids, 0)
    ready = [nid for nid in graph.node_ids if indegree[nid] == 0]
    while ready:
        node = ready.pop(0)
        for nxt in successors[node]:
            rank[nxt] = max(rank[nxt], rank[node] + 1)
            indegree[nxt] -= 1
            if indegree[nxt] == 0:
                ready.append(nxt)
    return rank


def count_crossings(layers: list[list[str]], rank: dict[str, int], forward: list[Edge]) -> int:
    """Pairs of forward edges spanning the same ranks whose endpoints are in opposite order."""
    position = {nid: i for layer in layers for i, nid in enumerate(layer)}
    by_span: dict[tuple[int, int], list[tuple[int, int]]] = defaultdict(list)
    for edge in forward:
        by_span[(rank[edge.source], rank[edge.target])].append((position[edge.source], position[edge.target]))

    crossings = 0
    for segments in by_span.values():
        for i, (s1, t1) in enumerate(segments):
            for s2, t2 in segments[i + 1 :]:
                if (s1 - s2) * (t1 - t2) < 0:
                    crossings += 1
    return crossings


def _normalized(layer: list[str]) -> dict[str, float]:
    if len(layer) == 1:
        return {layer[0]: 0.5}
    return {nid: i / (len(layer) - 1) for i, nid in enumerate(layer)}


def _sweep(layers: list[list[str]], neighbors: dict[str, list[str]], ranks: range) -> None:
    """Reorder each rank in `ranks` by the mean normalized position of `neighbors`."""
    normalized: dict[str, float] = {}
    for layer in layers:
        normalized.update(_normalized(layer))

    for r in ranks:
        layer = layers[r]
        keyed = []
        for i, nid in enumerate(layer):
            linked = neighbors.get(nid, ())
            bary = sum(normalized[n] for n in linked) / len(linked) if linked else normalized[nid]
            keyed.append((bary, i, nid))
        keyed.sort()
        layers[r] = [nid for _, _, nid in keyed]
        normalized.update(_normalized(layers[r]))


def order_ranks(
    graph: Graph, rank: dict[str, int], forward: list[Edge], passes: int
) -> tuple[list[list[str]], int]:
    """Barycenter crossing reduction; returns the best ordering seen and its crossing count."""
    depth = max(rank.values(), default=-1) + 1
    layers: list[list[str]] = [[] for _ in range(depth)]
    for nid in graph.node_ids:
        layers[rank[nid]].append(nid)

    preds: dict[str, list[str]] = defaultdict(list)
    succs: dict[str, list[str]] = defaultdict(list)
    for edge in forward:
        preds[edge.target].append(edge.source)
        succs[edge.source].append(edge.target)

    best = [list(layer) for layer in layers]
    best_crossings = count_crossings(layers, rank, forward)
    for i in range(passes):
        if best_crossings == 0:
            break
        before = [list(layer) for layer in layers]
        if i % 2 == 0:
            _sweep(layers, preds, range(1, depth))
        else:
            _sweep(layers, succs, range(depth - 2, -1, -1))
        crossings = count_crossings(layers, rank, forward)
        if crossings < best_crossings:
            best = [list(layer) for layer in layers]
            best_crossings = crossings
        if layers == before and i > 0:
            break
    return best, best_crossings


def layout_sankey(graph: Graph, config: SankeyConfig | None = None, *, run_id: int = 0) -> FlowLayoutResult:
    """Compute a left-to-right flow layout with node and link rendering hints."""
    cfg = config or SankeyConfig()
    back = find_back_edges(graph)
    drawn = [(pos, e) for pos, e in enumerate(graph.edges) if not e.is_self_loop]
    forward = [e for pos, e in drawn if pos not in back]

    rank = assign_ranks(graph, forward)
    layers, crossings = order_ranks(graph, rank, forward, cfg.crossing_passes)

    incoming = dict.fromkeys(graph.node_ids, 0.0)
    outgoing = dict.fromkeys(graph.node_ids, 0.0)
    for _, edge in drawn:
        outgoing[edge.source] += edge.value
        incoming[edge.target] += edge.value
    value = {nid: incoming[nid] + outgoing[nid] for nid in graph.node_ids}

    # Scale that lets the fullest rank fit the canvas height
    ky = math.inf
    for layer in layers:
        total = sum(value[nid] for nid in layer)
        if total > 0:
            room = cfg.inner_height - (len(layer) - 1) * cfg.node_padding
            ky = min(ky, room / total)
    ky = 0.0 if math.isinf(ky) else max(0.0, ky)
    if ky == 0.0 and drawn:
        logger.debug("Sankey ranks leave no room for flow; node heights fall back to the minimum")

    max_rank = len(layers) - 1
    column_step = (cfg.inner_width - cfg.node_width) / max_rank if max_rank > 0 else 0.0

    node_hints: dict[str, SankeyNodeHint] = {}
    for r, layer in enumerate(layers):
        x = cfg.margin_left + r * column_step
        y = cfg.margin_top
        for order, nid in enumerate(layer):
            height = max(cfg.min_node_height, value[nid] * ky)
            node_hints[nid] = SankeyNodeHint(
                node_id=nid,
                rank=r,
                order=order,
                x=x,
                y=y,
                width=cfg.node_width,
                height=height,
                incoming_value=incoming[nid],
                outgoing_value=outgoing[nid],
            )
            y += height + cfg.node_padding

    edge_hints = _edge_hints(drawn, back, node_hints, ky)
    violations = _flow_violations(graph, forward, cfg)

    node_hints = {nid: node_hints[nid] for nid in graph.node_ids}
    positions = {
        nid: LayoutState(x=h.x + h.width / 2, y=h.y + h.height / 2, radius=h.width / 2, settled=True)
        for nid, h in node_hints.items()
    }
    if node_hints:
        bbox = BoundingBox(
            min(h.x for h in node_hints.values()),
            min(h.y for h in node_hints.values()),
            max(h.x + h.width for h in node_hints.values()),
            max(h.y + h.height for h in node_hints.values()),
        )
    else:
        bbox = BoundingBox.around((), default=(cfg.width / 2, cfg.height / 2))

    logger.debug(
        f"Sankey layout: {len(layers)} ranks, {len(back)} back-edges, {crossings} crossings, "
        f"{len(violations)} flow violations"
    )
    return FlowLayoutResult(
        kind=LayoutKind.SANKEY,
        positions=positions,
        bounding_box=bbox,
        run_id=run_id,
        settled=True,
        node_hints=node_hints,
        edge_hints=edge_hints,
        violations=violations,
        crossings=crossings,
    )


def _edge_hints(
    drawn: list[tuple[int, Edge]],
    back: frozenset[int],
    node_hints: dict[str, SankeyNodeHint],
    ky: float,
) -> list[SankeyEdgeHint]:
    """Stack link bands on each node, ordered by the far end's vertical position."""

    def center(nid: str) -> float:
        h = node_hints[nid]
        return h.y + h.height / 2

    out_bands: dict[str, list[tuple[int, Edge]]] = defaultdict(list)
    in_bands: dict[str, list[tuple[int, Edge]]] = defaultdict(list)
    for pos, edge in drawn:
        out_bands[edge.source].append((pos, edge))
        in_bands[edge.target].append((pos, edge))

    source_y: dict[int, float] = {}
    target_y: dict[int, float] = {}
    for nid, bands in out_bands.items():
        bands.sort(key=lambda item: (center(item[1].target), item[0]))
        _stack(node_hints[nid], bands, ky, source_y)
    for nid, bands in in_bands.items():
        bands.sort(key=lambda item: (center(item[1].source), item[0]))
        _stack(node_hints[nid], bands, ky, target_y)

    return [
        SankeyEdgeHint(
            source=edge.source,
            target=edge.target,
            relationship_type=edge.relationship_type,
            value=edge.value,
            thickness=edge.value * ky,
            is_back_edge=pos in back,
            source_y=source_y[pos],
            target_y=target_y[pos],
        )
        for pos, edge in drawn
    ]


def _stack(hint: SankeyNodeHint, bands: list[tuple[int, Edge]], ky: float, into: dict[int, float]) -> None:
    total = sum(edge.value for _, edge in bands) * ky
    y = hint.y + (hint.height - total) / 2
    for pos, edge in bands:
        thickness = edge.value * ky
        into[pos] = y + thickness / 2
        y += thickness


def _flow_violations(graph: Graph, forward: list[Edge], cfg: SankeyConfig) -> list[FlowConservationViolation]:
    """Interior nodes whose forward inflow and outflow disagree."""
    fin: dict[str, float] = defaultdict(float)
    fout: dict[str, float] = defaultdict(float)
    for edge in forward:
        fout[edge.source] += edge.value
        fin[edge.target] += edge.value

    violations = []
    for nid in graph.node_ids:
        if nid not in fin or nid not in fout:
            continue
        if not math.isclose(fin[nid], fout[nid], rel_tol=cfg.flow_rel_tolerance, abs_tol=cfg.flow_abs_tolerance):
            violations.append(FlowConservationViolation(node_id=nid, incoming=fin[nid], outgoing=fout[nid]))
    if violations:
        logger.info(f"{len(violations)} node(s) do not conserve flow")
    return violations
