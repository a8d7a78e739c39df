import math

import pytest

from sfgraph.graph import Graph
from sfgraph.layout import CircularConfig, bfs_rings, layout_circular
from sfgraph.models import LayoutKind


def test_circular_is_bit_identical_across_calls(fixture_graph: Graph) -> None:
    a = layout_circular(fixture_graph)
    b = layout_circular(fixture_graph)
    assert a == b
    assert a.kind is LayoutKind.CIRCULAR


def test_circular_spaces_nodes_evenly_from_angle_zero(graph_from_edges) -> None:
    g = graph_from_edges([("A", "B"), ("C", "D")])
    cfg = CircularConfig()
    result = layout_circular(g, config=cfg)
    cx, cy = cfg.center

    a = result.positions["A"]
    assert (a.x, a.y) == (cx + cfg.radius, cy)
    c = result.positions["C"]
    assert c.x == pytest.approx(cx - cfg.radius)
    assert c.y == pytest.approx(cy)
    for state in result.positions.values():
        assert math.hypot(state.x - cx, state.y - cy) == pytest.approx(cfg.radius)


def test_radial_rings_on_a_path(graph_from_edges) -> None:
    g = graph_from_edges([("A", "B"), ("B", "C")])
    cfg = CircularConfig()
    result = layout_circular(g, focal_node_id="A", config=cfg)
    cx, cy = cfg.center

    assert result.kind is LayoutKind.RADIAL
    assert dict(result.rings) == {"A": 0, "B": 1, "C": 2}
    assert (result.positions["A"].x, result.positions["A"].y) == (cx, cy)
    assert math.hypot(result.positions["B"].x - cx, result.positions["B"].y - cy) == pytest.approx(cfg.radius / 2)
    assert math.hypot(result.positions["C"].x - cx, result.positions["C"].y - cy) == pytest.approx(cfg.radius)


def test_radial_ignores_edge_direction(graph_from_edges) -> None:
    g = graph_from_edges([("B", "A"), ("C", "B")])
    assert bfs_rings(g, "A") == {"A": 0, "B": 1, "C": 2}


def test_unreachable_nodes_get_an_outer_ring(graph_from_edges) -> None:
    g = graph_from_edges([("A", "B")], nodes=["A", "B", "Lonely", "Other"])
    rings = layout_circular(g, focal_node_id="A").rings
    assert rings["Lonely"] == rings["Other"] == 2


def test_missing_focal_falls_back_to_circular(sales_graph: Graph, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level("WARNING"):
        result = layout_circular(sales_graph, focal_node_id="FilteredOut")

    assert result.kind is LayoutKind.CIRCULAR
    assert result.positions == layout_circular(sales_graph).positions
    assert not result.rings
    assert "FilteredOut" in result.warnings[0]
    assert "FilteredOut" in caplog.text


def test_empty_graph_has_degenerate_box_at_center() -> None:
    result = layout_circular(Graph(), focal_node_id=None)
    box = result.bounding_box
    assert (box.min_x, box.min_y, box.max_x, box.max_y) == (250.0, 200.0, 250.0, 200.0)
    assert result.positions == {}


def test_single_focal_node_sits_at_center(graph_from_edges) -> None:
    g = graph_from_edges([], nodes=["Solo"])
    state = layout_circular(g, focal_node_id="Solo").positions["Solo"]
    assert (state.x, state.y) == (250.0, 200.0)
