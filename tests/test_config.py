from pathlib import Path

import pytest

from sfgraph.layout import CircularConfig, ForceConfig, LayoutConfig, SankeyConfig, load_layout_config


def test_defaults_match_dashboard_tuning() -> None:
    cfg = LayoutConfig()
    assert (cfg.force.width, cfg.force.height) == (500.0, 400.0)
    assert cfg.force.alpha_decay == 0.95
    assert cfg.force.max_ticks == 1000
    assert cfg.force.link_distance == 100.0
    assert cfg.circular.radius == 160.0
    assert cfg.circular.center == (250.0, 200.0)
    assert cfg.sankey.node_padding == 30.0
    assert cfg.sankey.inner_width == 960.0 - 240.0


def test_load_layout_config(tmp_path: Path) -> None:
    path = tmp_path / "layout.toml"
    path.write_text(
        "\n".join(
            [
                "[force]",
                "max_ticks = 200",
                "charge = 1500",
                "time_budget = 2",
                "",
                "[sankey]",
                "crossing_passes = 4",
                "",
            ]
        ),
        encoding="utf-8",
    )

    cfg = load_layout_config(path)
    assert cfg.force.max_ticks == 200
    assert isinstance(cfg.force.max_ticks, int)
    assert cfg.force.charge == 1500.0
    assert cfg.force.time_budget == 2.0
    assert cfg.sankey.crossing_passes == 4
    assert cfg.circular == CircularConfig()


def test_unknown_keys_are_ignored_with_warning(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "layout.toml"
    path.write_text("[force]\nspin = 3\n\n[colors]\nred = 1\n", encoding="utf-8")

    with caplog.at_level("WARNING"):
        cfg = load_layout_config(path)

    assert cfg.force == ForceConfig()
    assert "force.spin" in caplog.text
    assert "[colors]" in caplog.text


@pytest.mark.parametrize(
    "body",
    [
        "[force]\nalpha_decay = 1.5\n",
        "[force]\nmax_ticks = 0\n",
        "[force]\ncharge = \"lots\"\n",
        "[force]\ndamping = true\n",
        "[circular]\nradius = -1\n",
        "[sankey]\nmargin_left = 900\n",
        "force = 3\n",
    ],
)
def test_invalid_values_raise(tmp_path: Path, body: str) -> None:
    path = tmp_path / "layout.toml"
    path.write_text(body, encoding="utf-8")
    with pytest.raises(ValueError):
        load_layout_config(path)


def test_direct_construction_validates() -> None:
    with pytest.raises(ValueError):
        ForceConfig(alpha_min=2.0)
    with pytest.raises(ValueError):
        SankeyConfig(node_width=0)
