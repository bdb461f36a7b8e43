"""Unit tests for wave allocation and window scheduling."""

from __future__ import annotations

from recovery_sim.domain.errors import CycleDetectedError
from recovery_sim.domain.models import (
    NodeOwner,
    SimulationConstraint,
    SimulationDependency,
    SimulationGraph,
    SimulationNode,
    SimulationWindow,
)
from recovery_sim.planning.allocator import (
    build_allocations,
    build_window_schedule,
    build_windows,
    resolve_window_count,
    resolve_window_coverage,
    score_plan_from_allocations,
    suppress_blackouts,
    window_minute,
)

try:
    from hypothesis import given, settings
    from hypothesis import strategies as st
except ModuleNotFoundError:  # pragma: no cover - fallback path
    HYPOTHESIS_AVAILABLE = False
else:
    HYPOTHESIS_AVAILABLE = True

_OWNERS = (NodeOwner.SRE, NodeOwner.PLATFORM, NodeOwner.CORE, NodeOwner.SECURITY)


def _constraint(
    *,
    max_signals: int = 6,
    max_parallel: int = 4,
    blackout_starts: tuple[int, ...] = (),
) -> SimulationConstraint:
    return SimulationConstraint(
        max_signals_per_wave=max_signals,
        max_parallel_nodes=max_parallel,
        max_risk_score=10,
        min_window_coverage=0.5,
        blackout_windows=tuple(
            SimulationWindow(
                wave_id=f"freeze-{start}",
                start_utc=start,
                end_utc=start + 60_000,
                expected_signals=0,
                target_count=0,
                window_index=0,
            )
            for start in blackout_starts
        ),
    )


def _graph(count: int) -> SimulationGraph:
    return SimulationGraph(
        nodes=tuple(
            SimulationNode(
                id=f"n{index}",
                owner=_OWNERS[index % len(_OWNERS)],
                criticality=5 - (index % 5),
                expected_signals_per_minute=float(index),
            )
            for index in range(count)
        )
    )


def test_window_count_is_capped_at_six_and_at_least_one() -> None:
    assert resolve_window_count(0) == 1
    assert resolve_window_count(3) == 3
    assert resolve_window_count(40) == 6


def test_window_coverage_takes_larger_of_hour_share_and_signal_share() -> None:
    assert resolve_window_coverage(_constraint(max_signals=6), 3) == 20
    assert resolve_window_coverage(_constraint(max_signals=300), 3) == 100


def test_build_windows_spaces_one_minute_apart_from_epoch() -> None:
    windows = build_windows("run-1", 3, _constraint(), node_count=4, epoch_ms=1_000)

    assert [window.start_utc for window in windows] == [1_000, 61_000, 121_000]
    assert [window.end_utc for window in windows] == [61_000, 121_000, 181_000]
    assert [window.target_count for window in windows] == [2, 1, 1]
    assert {window.expected_signals for window in windows} == {6}
    assert [window.wave_id for window in windows] == [
        "run-1:wave-0",
        "run-1:wave-1",
        "run-1:wave-2",
    ]


def test_blackout_suppresses_windows_in_the_same_minute() -> None:
    constraint = _constraint(blackout_starts=(60_000,))
    windows = build_windows("run-1", 3, constraint, node_count=3, epoch_ms=1_000)

    assert window_minute(61_000) == 1
    suppressed = suppress_blackouts(constraint, windows)
    assert [window.expected_signals for window in suppressed] == [6, 0, 6]


def test_schedule_drops_windows_with_neither_signals_nor_targets() -> None:
    constraint = _constraint(blackout_starts=(60_000,))
    windows = build_windows("run-1", 3, constraint, node_count=1)

    schedule = build_window_schedule(constraint, windows)

    # Window 1 is blacked out and has no targets; window 2 keeps its signals.
    assert [window.window_index for window in schedule] == [0, 2]


def test_allocations_round_robin_by_criticality_only() -> None:
    graph = SimulationGraph(
        nodes=(
            SimulationNode(id="low", owner=NodeOwner.SRE, criticality=1),
            SimulationNode(id="high", owner=NodeOwner.CORE, criticality=5),
            SimulationNode(id="mid", owner=NodeOwner.SECURITY, criticality=3),
        ),
        # Dependency order is ignored by the allocator.
        dependencies=(SimulationDependency(from_id="low", to_id="high"),),
    )

    planned = build_allocations(graph, _constraint(), "run-1").unwrap()

    assert [item.wave.sequence for item in planned] == [("high",), ("mid",), ("low",)]
    assert [item.wave.ready_at for item in planned] == [0, 20, 40]


def test_allocations_fold_overflow_into_the_first_windows() -> None:
    planned = build_allocations(_graph(8), _constraint(max_parallel=1), "run-1", epoch_ms=500)
    unwrapped = planned.unwrap()

    assert len(unwrapped) == 6
    assert [len(item.wave.sequence) for item in unwrapped] == [2, 2, 1, 1, 1, 1]
    assert {item.wave.parallelism for item in unwrapped} == {1}
    assert unwrapped[0].wave.ready_at == 500
    assert unwrapped[1].wave.ready_at == 510
    assert unwrapped[0].allocation.coverage_ratio == 0.25
    assert unwrapped[0].wave.signal_count == unwrapped[0].allocation.expected_signals


def test_owner_mix_is_the_global_distribution_on_every_wave() -> None:
    unwrapped = build_allocations(_graph(5), _constraint(), "run-1").unwrap()

    mixes = [dict(item.allocation.owner_mix) for item in unwrapped]
    assert mixes == [{"sre": 2, "platform": 1, "core": 1, "security": 1}] * len(unwrapped)


def test_empty_graph_allocates_nothing() -> None:
    planned = build_allocations(SimulationGraph(), _constraint(), "run-1").unwrap()

    assert planned == ()
    assert score_plan_from_allocations(planned) == 0.0


def test_cyclic_graph_fails_allocation() -> None:
    graph = SimulationGraph(
        nodes=_graph(2).nodes,
        dependencies=(
            SimulationDependency(from_id="n0", to_id="n1"),
            SimulationDependency(from_id="n1", to_id="n0"),
        ),
    )

    result = build_allocations(graph, _constraint(), "run-1")

    assert isinstance(result.error, CycleDetectedError)


def test_score_is_mean_wave_signal_count() -> None:
    planned = build_allocations(_graph(3), _constraint(), "run-1").unwrap()
    # Signal rates are 0, 1 and 2 per minute.
    assert score_plan_from_allocations(planned) == 1.0


if HYPOTHESIS_AVAILABLE:

    @settings(max_examples=80, derandomize=True, deadline=None)
    @given(
        count=st.integers(min_value=0, max_value=40),
        max_parallel=st.integers(min_value=1, max_value=8),
    )
    def test_property_every_node_is_assigned_exactly_once(count: int, max_parallel: int) -> None:
        planned = build_allocations(
            _graph(count), _constraint(max_parallel=max_parallel), "run-p"
        ).unwrap()

        assigned = [node_id for item in planned for node_id in item.allocation.node_ids]
        assert len(assigned) == count
        assert sorted(assigned) == sorted(f"n{index}" for index in range(count))
        assert all(item.wave.parallelism <= max_parallel for item in planned)
