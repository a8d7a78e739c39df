import asyncio

import pytest

from sfgraph.graph import Graph
from sfgraph.layout import (
    AsyncioScheduler,
    ForceConfig,
    LayoutConfig,
    LayoutSession,
    ManualScheduler,
    SimulationStatus,
    available_layouts,
)
from sfgraph.models import FlowLayoutResult, LayoutKind, LayoutResult


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def session(fixture_graph: Graph, scheduler: ManualScheduler) -> LayoutSession:
    return LayoutSession(fixture_graph, scheduler=scheduler)


def _collect(session: LayoutSession) -> list[LayoutResult]:
    seen: list[LayoutResult] = []
    session.subscribe(seen.append)
    return seen


def test_all_kinds_are_registered() -> None:
    assert set(available_layouts()) == {k.value for k in LayoutKind}


def test_deterministic_layouts_publish_once(session: LayoutSession, scheduler: ManualScheduler) -> None:
    seen = _collect(session)

    run_id = session.select_layout("circular")
    assert run_id == 1
    assert len(seen) == 1
    assert seen[0].kind is LayoutKind.CIRCULAR
    assert seen[0].run_id == 1
    assert scheduler.pending == 0

    session.select_layout(LayoutKind.SANKEY)
    assert isinstance(session.latest, FlowLayoutResult)
    assert session.latest.run_id == 2

    session.select_layout("radial", focal_node_id="Account")
    assert session.latest.rings["Account"] == 0
    assert len(seen) == 3


def test_force_layout_streams_ticks_until_settled(session: LayoutSession, scheduler: ManualScheduler) -> None:
    seen = _collect(session)
    session.select_layout("force")

    assert len(seen) == 1
    assert seen[0].tick == 0
    assert session.is_running

    scheduler.step()
    scheduler.step()
    assert [r.tick for r in seen] == [0, 1, 2]

    scheduler.run_until_idle()
    assert seen[-1].settled
    assert session.simulation.status is SimulationStatus.SETTLED
    assert not session.is_running
    assert scheduler.pending == 0
    ticks = [r.tick for r in seen]
    assert ticks == sorted(ticks)


def test_new_run_cancels_running_one(session: LayoutSession, scheduler: ManualScheduler) -> None:
    seen = _collect(session)
    session.select_layout("force", seed=1)
    scheduler.step()
    first = session.simulation
    assert first.status is SimulationStatus.RUNNING

    session.select_layout("force", seed=2)
    assert first.status is SimulationStatus.CANCELLED
    first_ticks = first.tick_count

    scheduler.run_until_idle()
    assert first.tick_count == first_ticks
    later = seen[2:]
    assert later
    assert all(r.run_id == 2 for r in later)
    assert session.latest.run_id == 2


def test_stale_callbacks_are_dropped(fixture_graph: Graph) -> None:
    class LeakyScheduler(ManualScheduler):
        """Ignores cancellation so stale callbacks still fire."""

        def step(self) -> bool:
            if not self._queue:
                return False
            self._queue.popleft().callback()
            return True

    scheduler = LeakyScheduler()
    session = LayoutSession(fixture_graph, scheduler=scheduler)
    seen = _collect(session)

    session.select_layout("force")
    session.select_layout("circular")
    scheduler.run_until_idle()

    assert [r.run_id for r in seen] == [1, 2]
    assert session.latest.kind is LayoutKind.CIRCULAR


def test_set_graph_cancels_and_swaps(session: LayoutSession, scheduler: ManualScheduler, sales_graph: Graph) -> None:
    session.select_layout("force")
    sim = session.simulation
    session.set_graph(sales_graph)

    assert sim.status is SimulationStatus.CANCELLED
    assert scheduler.pending == 0
    session.select_layout("circular")
    assert set(session.latest.positions) == {"Account", "Contact", "Opportunity"}


def test_cancel(session: LayoutSession, scheduler: ManualScheduler) -> None:
    assert not session.cancel()
    session.select_layout("force")
    assert session.cancel()
    assert scheduler.run_until_idle() == 0


def test_pin_and_unpin_republish(session: LayoutSession, scheduler: ManualScheduler) -> None:
    session.select_layout("force")
    seen = _collect(session)

    session.pin("Contact", 10.0, 20.0)
    assert seen[-1].positions["Contact"].pinned
    assert (seen[-1].positions["Contact"].x, seen[-1].positions["Contact"].y) == (10.0, 20.0)

    scheduler.run_until_idle()
    assert (session.latest.positions["Contact"].x, session.latest.positions["Contact"].y) == (10.0, 20.0)

    session.unpin("Contact")
    assert not session.latest.positions["Contact"].pinned


def test_pin_without_force_run_raises(session: LayoutSession) -> None:
    with pytest.raises(RuntimeError):
        session.pin("Account", 0, 0)
    session.select_layout("circular")
    with pytest.raises(RuntimeError):
        session.unpin("Account")


def test_unsubscribe(session: LayoutSession) -> None:
    seen: list[LayoutResult] = []
    unsubscribe = session.subscribe(seen.append)
    session.select_layout("circular")
    unsubscribe()
    unsubscribe()
    session.select_layout("sankey")
    assert len(seen) == 1


def test_radial_requires_focal(session: LayoutSession, scheduler: ManualScheduler) -> None:
    seen = _collect(session)
    session.select_layout("force")
    scheduler.step()
    sim = session.simulation

    with pytest.raises(TypeError):
        session.select_layout("radial")

    assert sim.status is SimulationStatus.RUNNING
    assert session.simulation is sim
    assert session.run_id == 1
    assert session.kind is LayoutKind.FORCE
    assert session.latest is seen[-1]
    assert scheduler.pending == 1


def test_bad_params_leave_active_run_alone(session: LayoutSession, scheduler: ManualScheduler) -> None:
    session.select_layout("circular")
    before = session.latest

    with pytest.raises(TypeError):
        session.select_layout("force", sead=3)

    assert session.latest is before
    assert session.run_id == 1
    assert session.kind is LayoutKind.CIRCULAR
    assert scheduler.pending == 0


def test_subscriber_cancelling_mid_stream_stops_ticks(session: LayoutSession, scheduler: ManualScheduler) -> None:
    seen: list[LayoutResult] = []

    def on_result(result: LayoutResult) -> None:
        seen.append(result)
        if result.tick == 1:
            session.cancel()

    session.subscribe(on_result)
    session.select_layout("force")
    scheduler.step()

    assert [r.tick for r in seen] == [0, 1]
    assert scheduler.pending == 0
    assert session._handle is None
    assert not session.is_running
    assert scheduler.run_until_idle() == 0


def test_subscriber_switching_layout_mid_stream(session: LayoutSession, scheduler: ManualScheduler) -> None:
    seen: list[LayoutResult] = []

    def on_result(result: LayoutResult) -> None:
        seen.append(result)
        if result.run_id == 1 and result.tick == 1:
            session.select_layout("force", seed=4)

    session.subscribe(on_result)
    session.select_layout("force")
    scheduler.step()

    assert session.run_id == 2
    assert scheduler.pending == 1
    second = session.simulation
    assert session.cancel()
    assert second.status is SimulationStatus.CANCELLED
    assert scheduler.pending == 0
    assert [r.run_id for r in seen] == [1, 1, 2]


def test_unknown_kind(session: LayoutSession) -> None:
    with pytest.raises(ValueError):
        session.select_layout("hexagonal")


def test_asyncio_scheduler_drives_force_run(fixture_graph: Graph) -> None:
    async def main() -> LayoutResult:
        config = LayoutConfig(force=ForceConfig(max_ticks=20))
        session = LayoutSession(fixture_graph, scheduler=AsyncioScheduler(frame_interval=0), config=config)
        session.select_layout("force")
        while session.is_running:
            await asyncio.sleep(0)
        return session.latest

    result = asyncio.run(main())
    assert result.tick == 20
    assert result.timed_out
