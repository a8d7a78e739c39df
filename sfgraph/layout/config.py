"""Tunable layout constants and their TOML loader.

Defaults reproduce the dashboard's visual tuning (500x400 canvas, 160px
circle, 0.95 cooling, 1000 iterations, 100px ideal edge length, Sankey node
padding 30 with 120/20 margins).
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ValueError(message)


@dataclass(frozen=True)
class ForceConfig:
    width: float = 500.0
    height: float = 400.0

    charge: float = 3000.0  # repulsion constant, force = charge / d^2
    min_distance: float = 10.0  # floor on d for repulsion
    link_distance: float = 100.0  # spring rest length
    link_strength: float = 0.05
    center_strength: float = 0.02

    node_radius: float = 12.0
    radius_scale: float = 2.0  # extra radius per sqrt(weight)
    max_radius: float = 40.0
    collision_padding: float = 2.0
    collision_iterations: int = 3
    final_collision_iterations: int = 50

    alpha: float = 1.0
    alpha_decay: float = 0.95  # alpha *= alpha_decay each tick
    alpha_min: float = 0.001
    damping: float = 0.6  # velocity retained per tick
    max_velocity: float = 50.0

    max_ticks: int = 1000
    time_budget: float | None = None  # seconds of wall clock per run
    initial_spacing: float = 10.0  # phyllotaxis step for default positions

    def __post_init__(self) -> None:
        _require(self.width > 0 and self.height > 0, "force canvas width/height must be positive")
        _require(self.charge >= 0, "force.charge must be >= 0")
        _require(self.min_distance > 0, "force.min_distance must be > 0")
        _require(self.link_distance >= 0, "force.link_distance must be >= 0")
        _require(self.link_strength >= 0, "force.link_strength must be >= 0")
        _require(self.center_strength >= 0, "force.center_strength must be >= 0")
        _require(self.node_radius > 0, "force.node_radius must be > 0")
        _require(self.max_radius >= self.node_radius, "force.max_radius must be >= node_radius")
        _require(self.collision_iterations >= 0, "force.collision_iterations must be >= 0")
        _require(0 < self.alpha_decay < 1, "force.alpha_decay must be in (0, 1)")
        _require(0 < self.alpha_min < self.alpha, "force.alpha_min must be in (0, alpha)")
        _require(0 <= self.damping < 1, "force.damping must be in [0, 1)")
        _require(self.max_velocity > 0, "force.max_velocity must be > 0")
        _require(self.max_ticks >= 1, "force.max_ticks must be >= 1")
        _require(self.time_budget is None or self.time_budget > 0, "force.time_budget must be > 0")

    @property
    def center(self) -> tuple[float, float]:
        return (self.width / 2, self.height / 2)


@dataclass(frozen=True)
class CircularConfig:
    width: float = 500.0
    height: float = 400.0
    radius: float = 160.0
    node_radius: float = 12.0

    def __post_init__(self) -> None:
        _require(self.width > 0 and self.height > 0, "circular canvas width/height must be positive")
        _require(self.radius > 0, "circular.radius must be > 0")
        _require(self.node_radius >= 0, "circular.node_radius must be >= 0")

    @property
    def center(self) -> tuple[float, float]:
        return (self.width / 2, self.height / 2)


@dataclass(frozen=True)
class SankeyConfig:
    width: float = 960.0
    height: float = 450.0
    margin_left: float = 120.0
    margin_right: float = 120.0
    margin_top: float = 20.0
    margin_bottom: float = 20.0
    node_width: float = 10.0
    node_padding: float = 30.0
    min_node_height: float = 4.0
    crossing_passes: int = 24
    flow_rel_tolerance: float = 1e-6
    flow_abs_tolerance: float = 1e-9

    def __post_init__(self) -> None:
        _require(self.inner_width > self.node_width, "sankey canvas too narrow for its margins")
        _require(self.inner_height > 0, "sankey canvas too short for its margins")
        _require(self.node_width > 0, "sankey.node_width must be > 0")
        _require(self.node_padding >= 0, "sankey.node_padding must be >= 0")
        _require(self.min_node_height >= 0, "sankey.min_node_height must be >= 0")
        _require(self.crossing_passes >= 0, "sankey.crossing_passes must be >= 0")
        _require(self.flow_rel_tolerance >= 0 and self.flow_abs_tolerance >= 0, "sankey flow tolerances must be >= 0")

    @property
    def inner_width(self) -> float:
        return self.width - self.margin_left - self.margin_right

    @property
    def inner_height(self) -> float:
        return self.height - self.margin_top - self.margin_bottom


@dataclass(frozen=True)
class LayoutConfig:
    force: ForceConfig = field(default_factory=ForceConfig)
    circular: CircularConfig = field(default_factory=CircularConfig)
    sankey: SankeyConfig = field(default_factory=SankeyConfig)


def _coerce_section(cls: type, section: str, raw: Any) -> Any:
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ValueError(f"[{section}] must be a table")

    known = {f.name: f for f in fields(cls)}
    kwargs: dict[str, Any] = {}
    for key, value in raw.items():
        if key not in known:
            logger.warning(f"Ignoring unknown layout option {section}.{key}")
            continue
        default = getattr(cls, key, None)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{section}.{key} must be a number, got {value!r}")
        kwargs[key] = int(value) if isinstance(default, int) else float(value)
    return cls(**kwargs)


def load_layout_config(path: Path) -> LayoutConfig:
    """
    Load layout tuning from TOML.

    Recognized tables are [force], [circular] and [sankey]; keys match the
    dataclass fields. Missing tables and keys keep their defaults.
    """
    data = tomllib.loads(path.read_text(encoding="utf-8"))

    for section in data:
        if section not in ("force", "circular", "sankey"):
            logger.warning(f"Ignoring unknown layout config table [{section}]")

    return LayoutConfig(
        force=_coerce_section(ForceConfig, "force", data.get("force")),
        circular=_coerce_section(CircularConfig, "circular", data.get("circular")),
        sankey=_coerce_section(SankeyConfig, "sankey", data.get("sankey")),
    )
