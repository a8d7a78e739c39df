"""Layout session: owns the single active layout run and relays its results.

The session never blocks. Deterministic and flow layouts publish once, on the
caller's stack. A force layout publishes its starting frame, then one frame
per tick, with each tick scheduled on the host loop through a Scheduler.

Every run gets a fresh run id. Starting a run, swapping the graph or calling
`cancel()` cancels the scheduled tick of the previous run, and a callback
that fires anyway is dropped because its run id is no longer current.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Callable, Protocol

from ..graph.model import Graph
from ..models import LayoutKind, LayoutResult
from .circular import layout_circular
from .config import LayoutConfig
from .force import ForceSimulation
from .sankey import layout_sankey

logger = logging.getLogger(__name__)

Subscriber = Callable[[LayoutResult], None]


class Handle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Runs a callback later on the host loop."""

    def schedule(self, callback: Callable[[], None]) -> Handle: ...


class _ManualHandle:
    __slots__ = ("callback", "cancelled")

    def __init__(self, callback: Callable[[], None]):
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Queue of callbacks pumped explicitly; used by tests and the CLI."""

    def __init__(self) -> None:
        self._queue: deque[_ManualHandle] = deque()

    def schedule(self, callback: Callable[[], None]) -> _ManualHandle:
        handle = _ManualHandle(callback)
        self._queue.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for h in self._queue if not h.cancelled)

    def step(self) -> bool:
        """Run the next live callback. Returns False when nothing was queued."""
        while self._queue:
            handle = self._queue.popleft()
            if not handle.cancelled:
                handle.callback()
                return True
        return False

    def run_until_idle(self, limit: int | None = None) -> int:
        """Pump callbacks until the queue drains (or `limit` ran); returns how many ran."""
        ran = 0
        while (limit is None or ran < limit) and self.step():
            ran += 1
        return ran


class AsyncioScheduler:
    """Schedules one callback per animation frame on an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None, frame_interval: float = 1 / 60):
        if frame_interval < 0:
            raise ValueError("frame_interval must be >= 0")
        self._loop = loop
        self.frame_interval = frame_interval

    def schedule(self, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(self.frame_interval, callback)


# kind -> strategy(session, run_id, **params); returns a finished result or
# an unstarted ForceSimulation and must not touch session state.
Strategy = Callable[..., "LayoutResult | ForceSimulation"]
_STRATEGIES: dict[LayoutKind, Strategy] = {}


def _strategy(kind: LayoutKind) -> Callable[[Strategy], Strategy]:
    def register(fn: Strategy) -> Strategy:
        _STRATEGIES[kind] = fn
        return fn

    return register


def available_layouts() -> list[str]:
    return [k.value for k in _STRATEGIES]


class LayoutSession:
    """Controller for which layout is active over the current graph."""

    def __init__(
        self,
        graph: Graph,
        *,
        scheduler: Scheduler | None = None,
        config: LayoutConfig | None = None,
    ):
        self.graph = graph
        self.scheduler: Scheduler = scheduler or ManualScheduler()
        self.config = config or LayoutConfig()
        self.latest: LayoutResult | None = None
        self.kind: LayoutKind | None = None

        self._run_id = 0
        self._simulation: ForceSimulation | None = None
        self._handle: Handle | None = None
        self._subscribers: list[Subscriber] = []

    @property
    def run_id(self) -> int:
        """Id of the most recently started run (0 before the first)."""
        return self._run_id

    @property
    def simulation(self) -> ForceSimulation | None:
        """The current force run, if the active layout is a force layout."""
        return self._simulation

    @property
    def is_running(self) -> bool:
        return self._simulation is not None and self._simulation.is_running

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Receive every published result; call the returned function to stop."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def select_layout(self, kind: LayoutKind | str, **params: Any) -> int:
        """Cancel the active run and start `kind`; returns the new run id.

        The new run is built before anything else changes, so bad `params`
        raise with the active run and `latest` untouched.
        """
        kind = LayoutKind(kind)
        strategy = _STRATEGIES[kind]
        run_id = self._run_id + 1
        prepared = strategy(self, run_id, **params)

        self.cancel()
        self._run_id = run_id
        self.kind = kind
        logger.debug(f"Starting {kind.value} layout as run {run_id}")
        if isinstance(prepared, ForceSimulation):
            self._start_simulation(prepared)
        else:
            self._publish(prepared)
        return run_id

    def set_graph(self, graph: Graph) -> None:
        """Replace the graph; the active run is cancelled and nothing restarts."""
        self.cancel()
        self.graph = graph

    def cancel(self) -> bool:
        """Stop the active run. Returns True if a force run was still going."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        stopped = False
        if self._simulation is not None:
            stopped = self._simulation.cancel()
            self._simulation = None
        return stopped

    def pin(self, node_id: str, x: float, y: float) -> None:
        """Forward a drag to the force run and republish its state."""
        sim = self._require_simulation("pin")
        sim.pin(node_id, x, y)
        self._publish(sim.snapshot())

    def unpin(self, node_id: str) -> None:
        sim = self._require_simulation("unpin")
        sim.unpin(node_id)
        self._publish(sim.snapshot())

    def _require_simulation(self, action: str) -> ForceSimulation:
        if self._simulation is None:
            raise RuntimeError(f"cannot {action}: no force layout is active")
        return self._simulation

    # -- force run plumbing --------------------------------------------------

    def _start_simulation(self, sim: ForceSimulation) -> None:
        self._simulation = sim
        sim.start()
        self._publish(sim.snapshot())
        if self._is_current(sim):
            self._schedule_tick(sim.run_id)

    def _is_current(self, sim: ForceSimulation) -> bool:
        # Subscribers may cancel or start another run while being notified.
        return self._simulation is sim and sim.run_id == self._run_id and sim.is_running

    def _schedule_tick(self, run_id: int) -> None:
        self._handle = self.scheduler.schedule(lambda: self._on_tick(run_id))

    def _on_tick(self, run_id: int) -> None:
        sim = self._simulation
        if sim is None or run_id != self._run_id or sim.run_id != run_id:
            logger.debug(f"Dropping stale tick for run {run_id}")
            return
        self._handle = None
        keep_going = sim.tick()
        self._publish(sim.snapshot())
        if keep_going and self._is_current(sim):
            self._schedule_tick(run_id)

    def _publish(self, result: LayoutResult) -> None:
        self.latest = result
        for callback in list(self._subscribers):
            callback(result)


@_strategy(LayoutKind.FORCE)
def _run_force(
    session: LayoutSession,
    run_id: int,
    *,
    initial_positions: dict[str, tuple[float, float]] | None = None,
    seed: int | None = None,
) -> ForceSimulation:
    return ForceSimulation(
        session.graph,
        session.config.force,
        initial_positions=initial_positions,
        seed=seed,
        run_id=run_id,
    )


@_strategy(LayoutKind.CIRCULAR)
def _run_circular(session: LayoutSession, run_id: int) -> LayoutResult:
    return layout_circular(session.graph, config=session.config.circular, run_id=run_id)


@_strategy(LayoutKind.RADIAL)
def _run_radial(session: LayoutSession, run_id: int, *, focal_node_id: str) -> LayoutResult:
    return layout_circular(session.graph, focal_node_id=focal_node_id, config=session.config.circular, run_id=run_id)


@_strategy(LayoutKind.SANKEY)
def _run_sankey(session: LayoutSession, run_id: int) -> LayoutResult:
    return layout_sankey(session.graph, session.config.sankey, run_id=run_id)
