"""Tick-based force-directed layout simulation.

One ForceSimulation is one run: it owns the positions and velocities of every
node and moves through Idle -> Running -> Settled | Cancelled. Each tick:

1. repulsion between every unordered pair (charge / d^2, d floored),
2. spring attraction along every edge toward the rest length,
3. a weak pull toward the canvas center,
4. velocity integration with damping (pinned nodes stay put),
5. pairwise collision resolution on the integrated positions,
6. geometric alpha decay; below alpha_min the run settles.

Pinned nodes still push and pull their neighbors. Given the same initial
positions (or seed) and tick count, the result is bit-for-bit reproducible.
"""

from __future__ import annotations

import logging
import math
import random
import time
from enum import Enum
from typing import Mapping

from ..graph.model import Graph
from ..models import BoundingBox, LayoutKind, LayoutResult, LayoutState
from .config import ForceConfig

logger = logging.getLogger(__name__)

_GOLDEN_ANGLE = math.pi * (3 - math.sqrt(5))
_EPSILON = 1e-9


class SimulationStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SETTLED = "settled"
    CANCELLED = "cancelled"


class _Body:
    __slots__ = ("x", "y", "vx", "vy", "fx", "fy", "radius", "pinned")

    def __init__(self, x: float, y: float, radius: float):
        self.x = x
        self.y = y
        self.vx = 0.0
        self.vy = 0.0
        self.fx = 0.0
        self.fy = 0.0
        self.radius = radius
        self.pinned = False


def node_radius(weight: float, config: ForceConfig) -> float:
    """Display radius for a node of the given weight."""
    return min(config.max_radius, config.node_radius + config.radius_scale * math.sqrt(max(0.0, weight)))


def _jiggle(i: int, j: int) -> tuple[float, float]:
    """Deterministic unit vector used to split coincident nodes."""
    angle = math.radians((i * 92821 + j * 68917) % 360)
    return math.cos(angle), math.sin(angle)


class ForceSimulation:
    """A single force layout run over an immutable graph."""

    def __init__(
        self,
        graph: Graph,
        config: ForceConfig | None = None,
        *,
        initial_positions: Mapping[str, tuple[float, float]] | None = None,
        seed: int | None = None,
        run_id: int = 0,
    ):
        self.graph = graph
        self.config = config or ForceConfig()
        self.run_id = run_id
        self.status = SimulationStatus.IDLE
        self.alpha = self.config.alpha
        self.tick_count = 0
        self.timed_out = False

        self._ids: tuple[str, ...] = graph.node_ids
        self._index: dict[str, int] = {nid: i for i, nid in enumerate(self._ids)}
        self._bodies: list[_Body] = self._initial_bodies(initial_positions or {}, seed)
        self._links: list[tuple[int, int]] = [
            (self._index[e.source], self._index[e.target]) for e in graph.edges if not e.is_self_loop
        ]
        self._started_at: float | None = None

    def _initial_bodies(self, given: Mapping[str, tuple[float, float]], seed: int | None) -> list[_Body]:
        cx, cy = self.config.center
        rng = random.Random(seed) if seed is not None else None
        bodies: list[_Body] = []
        for i, nid in enumerate(self._ids):
            radius = node_radius(self.graph.node(nid).weight, self.config)
            if nid in given:
                x, y = given[nid]
            elif rng is not None:
                x = cx + rng.uniform(-0.5, 0.5) * self.config.width
                y = cy + rng.uniform(-0.5, 0.5) * self.config.height
            else:
                # Phyllotaxis spiral: spread out and deterministic
                r = self.config.initial_spacing * math.sqrt(0.5 + i)
                angle = i * _GOLDEN_ANGLE
                x = cx + r * math.cos(angle)
                y = cy + r * math.sin(angle)
            bodies.append(_Body(float(x), float(y), radius))
        return bodies

    # -- lifecycle -----------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self.status is SimulationStatus.RUNNING

    @property
    def is_finished(self) -> bool:
        return self.status in (SimulationStatus.SETTLED, SimulationStatus.CANCELLED)

    def start(self) -> None:
        if self.status is not SimulationStatus.IDLE:
            raise RuntimeError(f"cannot start a simulation that is {self.status.value}")
        self.status = SimulationStatus.RUNNING
        self._started_at = time.monotonic()
        logger.debug(f"Force run {self.run_id} started with {len(self._bodies)} nodes")

    def cancel(self) -> bool:
        """Stop the run; returns False if it had already finished."""
        if self.is_finished:
            return False
        self.status = SimulationStatus.CANCELLED
        logger.debug(f"Force run {self.run_id} cancelled at tick {self.tick_count}")
        return True

    def tick(self) -> bool:
        """Advance one step. Returns True while the run keeps going."""
        if self.status is SimulationStatus.IDLE:
            self.start()
        if self.status is not SimulationStatus.RUNNING:
            return False

        self._step()
        self.tick_count += 1
        self.alpha *= self.config.alpha_decay

        if self.alpha < self.config.alpha_min:
            self._settle(timed_out=False)
        elif self.tick_count >= self.config.max_ticks or self._over_time_budget():
            self._settle(timed_out=True)
        return self.is_running

    def run(self, max_ticks: int | None = None) -> LayoutResult:
        """Tick synchronously until the run finishes or `max_ticks` more ticks ran."""
        taken = 0
        while self.tick():
            taken += 1
            if max_ticks is not None and taken >= max_ticks:
                break
        return self.snapshot()

    def _over_time_budget(self) -> bool:
        budget = self.config.time_budget
        if budget is None or self._started_at is None:
            return False
        return time.monotonic() - self._started_at > budget

    def _settle(self, *, timed_out: bool) -> None:
        self._resolve_collisions(self.config.final_collision_iterations)
        self.status = SimulationStatus.SETTLED
        self.timed_out = timed_out
        if timed_out:
            logger.warning(
                f"Force run {self.run_id} hit its budget after {self.tick_count} ticks "
                f"(alpha={self.alpha:.4f}); keeping best-effort positions"
            )
        else:
            logger.debug(f"Force run {self.run_id} settled after {self.tick_count} ticks")

    # -- interaction ---------------------------------------------------------

    def pin(self, node_id: str, x: float, y: float) -> None:
        """Hold a node at (x, y); it stays there until unpinned."""
        body = self._bodies[self._index[node_id]]
        body.x, body.y = float(x), float(y)
        body.vx = body.vy = 0.0
        body.pinned = True

    def unpin(self, node_id: str) -> None:
        self._bodies[self._index[node_id]].pinned = False

    def is_pinned(self, node_id: str) -> bool:
        return self._bodies[self._index[node_id]].pinned

    # -- physics -------------------------------------------------------------

    def _step(self) -> None:
        cfg = self.config
        bodies = self._bodies
        n = len(bodies)
        cx, cy = cfg.center

        for b in bodies:
            b.fx = cfg.center_strength * (cx - b.x)
            b.fy = cfg.center_strength * (cy - b.y)

        if cfg.charge > 0:
            min_d = cfg.min_distance
            for i in range(n):
                a = bodies[i]
                for j in range(i + 1, n):
                    b = bodies[j]
                    dx = b.x - a.x
                    dy = b.y - a.y
                    d = math.hypot(dx, dy)
                    if d < _EPSILON:
                        ux, uy = _jiggle(i, j)
                    else:
                        ux, uy = dx / d, dy / d
                    dist = max(d, min_d)
                    f = cfg.charge / (dist * dist)
                    a.fx -= ux * f
                    a.fy -= uy * f
                    b.fx += ux * f
                    b.fy += uy * f

        for i, j in self._links:
            a = bodies[i]
            b = bodies[j]
            dx = b.x - a.x
            dy = b.y - a.y
            d = math.hypot(dx, dy)
            if d < _EPSILON:
                continue
            f = cfg.link_strength * (d - cfg.link_distance)
            ux, uy = dx / d, dy / d
            a.fx += ux * f
            a.fy += uy * f
            b.fx -= ux * f
            b.fy -= uy * f

        for b in bodies:
            if b.pinned:
                b.vx = b.vy = 0.0
                continue
            b.vx = (b.vx + b.fx * self.alpha) * cfg.damping
            b.vy = (b.vy + b.fy * self.alpha) * cfg.damping
            speed = math.hypot(b.vx, b.vy)
            if speed > cfg.max_velocity:
                scale = cfg.max_velocity / speed
                b.vx *= scale
                b.vy *= scale
            b.x += b.vx
            b.y += b.vy

        self._resolve_collisions(cfg.collision_iterations)

    def _resolve_collisions(self, iterations: int) -> bool:
        """Push overlapping discs apart; True once no pair overlaps."""
        bodies = self._bodies
        n = len(bodies)
        pad = self.config.collision_padding
        for _ in range(iterations):
            moved = False
            for i in range(n):
                a = bodies[i]
                for j in range(i + 1, n):
                    b = bodies[j]
                    if a.pinned and b.pinned:
                        continue
                    min_d = a.radius + b.radius + pad
                    dx = b.x - a.x
                    dy = b.y - a.y
                    d = math.hypot(dx, dy)
                    if d >= min_d:
                        continue
                    if d < _EPSILON:
                        ux, uy = _jiggle(i, j)
                    else:
                        ux, uy = dx / d, dy / d
                    overlap = min_d - d
                    if a.pinned:
                        b.x += ux * overlap
                        b.y += uy * overlap
                    elif b.pinned:
                        a.x -= ux * overlap
                        a.y -= uy * overlap
                    else:
                        half = overlap / 2
                        a.x -= ux * half
                        a.y -= uy * half
                        b.x += ux * half
                        b.y += uy * half
                    moved = True
            if not moved:
                return True
        return False

    # -- output --------------------------------------------------------------

    @property
    def kinetic_energy(self) -> float:
        return sum(b.vx * b.vx + b.vy * b.vy for b in self._bodies)

    def positions(self) -> dict[str, tuple[float, float]]:
        return {nid: (b.x, b.y) for nid, b in zip(self._ids, self._bodies)}

    def snapshot(self) -> LayoutResult:
        """Immutable copy of the current state."""
        converged = self.status is SimulationStatus.SETTLED and not self.timed_out
        states = {
            nid: LayoutState(
                x=b.x,
                y=b.y,
                vx=b.vx,
                vy=b.vy,
                radius=b.radius,
                pinned=b.pinned,
                settled=converged,
            )
            for nid, b in zip(self._ids, self._bodies)
        }
        warnings: tuple[str, ...] = ()
        if self.timed_out:
            warnings = (f"ConvergenceTimeout: stopped after {self.tick_count} ticks with alpha {self.alpha:.4f}",)
        return LayoutResult(
            kind=LayoutKind.FORCE,
            positions=states,
            bounding_box=BoundingBox.around(states.values(), default=self.config.center),
            run_id=self.run_id,
            tick=self.tick_count,
            settled=converged,
            timed_out=self.timed_out,
            warnings=warnings,
        )
