"""Wave planning and window scheduling over a normalized dependency graph.

Nodes are ordered by criticality and dealt round-robin into at most six windows. The
assignment follows criticality priority only, not dependency order.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, replace

from recovery_sim.constants import MAX_WINDOWS, MINUTES_PER_HOUR, OWNERS, WINDOW_SPAN_MS
from recovery_sim.domain.errors import Result
from recovery_sim.domain.models import (
    PlainDataModel,
    SimulationAllocation,
    SimulationConstraint,
    SimulationGraph,
    SimulationNode,
    SimulationWave,
    SimulationWindow,
)
from recovery_sim.planning.graph import normalize_graph, sort_by_criticality


@dataclass(frozen=True, slots=True)
class PlannedWave(PlainDataModel):
    wave: SimulationWave
    allocation: SimulationAllocation


def resolve_window_count(node_count: int) -> int:
    return min(max(node_count, 1), MAX_WINDOWS)


def resolve_window_coverage(constraints: SimulationConstraint, window_count: int) -> float:
    """Synthetic spacing between wave ``ready_at`` offsets."""
    count = max(1, window_count)
    return max(MINUTES_PER_HOUR / count, math.floor(constraints.max_signals_per_wave / count))


def window_minute(offset_ms: int) -> int:
    """Minute-of-hour of a millisecond offset."""
    return (int(offset_ms) // WINDOW_SPAN_MS) % MINUTES_PER_HOUR


def build_windows(
    run_id: str,
    window_count: int,
    constraints: SimulationConstraint,
    *,
    node_count: int = 0,
    epoch_ms: int = 0,
) -> tuple[SimulationWindow, ...]:
    """Build ``window_count`` windows spaced one minute apart from ``epoch_ms``."""
    windows: list[SimulationWindow] = []
    for index in range(max(1, window_count)):
        start = epoch_ms + index * WINDOW_SPAN_MS
        windows.append(
            SimulationWindow(
                wave_id=wave_id_for(run_id, index),
                start_utc=start,
                end_utc=start + WINDOW_SPAN_MS,
                expected_signals=constraints.max_signals_per_wave,
                target_count=len(range(index, node_count, max(1, window_count))),
                window_index=index,
            )
        )
    return tuple(windows)


def suppress_blackouts(
    constraints: SimulationConstraint,
    windows: Sequence[SimulationWindow],
) -> tuple[SimulationWindow, ...]:
    """Zero the expected signals of windows starting in a blackout minute."""
    blackout_minutes = {window_minute(window.start_utc) for window in constraints.blackout_windows}
    return tuple(
        replace(window, expected_signals=0)
        if window_minute(window.start_utc) in blackout_minutes
        else window
        for window in windows
    )


def build_window_schedule(
    constraints: SimulationConstraint,
    windows: Sequence[SimulationWindow],
) -> tuple[SimulationWindow, ...]:
    """
    Apply blackout suppression.

    Windows starting in the same minute-of-hour as a blackout window expect no
    signals; windows left with neither signals nor targets are dropped.
    """
    scheduled: list[SimulationWindow] = []
    for window in suppress_blackouts(constraints, windows):
        if window.expected_signals == 0 and window.target_count == 0:
            continue
        scheduled.append(window)
    return tuple(scheduled)


def build_allocations(
    graph: SimulationGraph,
    constraints: SimulationConstraint,
    run_id: str,
    *,
    epoch_ms: int = 0,
) -> Result[tuple[PlannedWave, ...]]:
    normalized = normalize_graph(graph, constraints)
    if not normalized.ok:
        return Result.failure(normalized.error)  # type: ignore[arg-type]

    ordered = sort_by_criticality(normalized.unwrap().nodes)
    node_count = len(ordered)
    window_count = resolve_window_count(node_count)
    coverage = resolve_window_coverage(constraints, window_count)
    windows = suppress_blackouts(
        constraints,
        build_windows(
            run_id,
            window_count,
            constraints,
            node_count=node_count,
            epoch_ms=epoch_ms,
        ),
    )

    assigned: list[list[SimulationNode]] = [[] for _ in range(window_count)]
    for node_index, node in enumerate(ordered):
        assigned[node_index % window_count].append(node)

    # TODO: owner mix is computed over the full node set and repeated on every wave;
    # switch to a per-wave mix once product confirms which one dashboards expect.
    owner_mix = owner_distribution(ordered)

    planned: list[PlannedWave] = []
    for window, members in zip(windows, assigned, strict=True):
        if not members:
            continue

        node_ids = tuple(node.id for node in members)
        signal_count = float(sum(node.expected_signals_per_minute for node in members))
        wave = SimulationWave(
            id=window.wave_id,
            sequence=node_ids,
            ready_at=epoch_ms + int(coverage * window.window_index),
            parallelism=min(len(members), max(1, constraints.max_parallel_nodes)),
            signal_count=signal_count,
            window=window,
        )
        allocation = SimulationAllocation(
            wave_id=wave.id,
            node_ids=node_ids,
            owner_mix=owner_mix,
            expected_signals=signal_count,
            coverage_ratio=len(members) / node_count,
        )
        planned.append(PlannedWave(wave=wave, allocation=allocation))

    return Result.success(tuple(planned))


def owner_distribution(nodes: Sequence[SimulationNode]) -> dict[str, int]:
    counts = Counter(node.owner.value for node in nodes)
    return {owner: counts.get(owner, 0) for owner in OWNERS}


def score_plan_from_allocations(allocations: Sequence[PlannedWave]) -> float:
    """Mean wave signal count; zero when nothing was allocated."""
    if not allocations:
        return 0.0
    return sum(item.wave.signal_count for item in allocations) / len(allocations)


def wave_id_for(run_id: str, index: int) -> str:
    return f"{run_id}:wave-{index}"


__all__ = [
    "PlannedWave",
    "build_allocations",
    "build_window_schedule",
    "build_windows",
    "owner_distribution",
    "resolve_window_count",
    "resolve_window_coverage",
    "score_plan_from_allocations",
    "suppress_blackouts",
    "wave_id_for",
    "window_minute",
]
