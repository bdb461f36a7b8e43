"""Unit tests for planning.plan_engine."""

from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from recovery_sim.domain.errors import CycleDetectedError, RiskRejectedError
from recovery_sim.domain.models import (
    NodeOwner,
    ReadinessDraft,
    ReadinessPolicy,
    ReadinessSignal,
    RiskProfile,
    SimulationConstraint,
    SimulationDependency,
    SimulationGraph,
    SimulationNode,
    SimulationPlanInput,
    SimulationStatus,
    SimulationWindow,
)
from recovery_sim.planning.plan_engine import build_plan, compute_risk_profile, finalize_metrics


def _three_node_input(
    *,
    constraints: SimulationConstraint | None = None,
    signals: tuple[ReadinessSignal, ...] = (),
    target_ids: tuple[str, ...] = ("a", "b", "c"),
    dependencies: tuple[SimulationDependency, ...] = (),
) -> SimulationPlanInput:
    return SimulationPlanInput(
        tenant="tenant-a",
        run_id="run-1",
        draft=ReadinessDraft(target_ids=target_ids, title="quarterly drill"),
        graph=SimulationGraph(
            nodes=(
                SimulationNode(
                    id="a", owner=NodeOwner.SRE, criticality=5, expected_signals_per_minute=2.0
                ),
                SimulationNode(
                    id="b",
                    owner=NodeOwner.PLATFORM,
                    criticality=3,
                    expected_signals_per_minute=1.0,
                ),
                SimulationNode(
                    id="c", owner=NodeOwner.CORE, criticality=1, expected_signals_per_minute=0.5
                ),
            ),
            dependencies=dependencies,
        ),
        policy=ReadinessPolicy(policy_id="policy-1"),
        signals=signals,
        constraints=constraints
        if constraints is not None
        else SimulationConstraint(
            max_signals_per_wave=6,
            max_parallel_nodes=3,
            max_risk_score=10,
            min_window_coverage=0.5,
        ),
    )


def _signal(signal_id: str, severity: str, minute: int) -> ReadinessSignal:
    return ReadinessSignal(
        signal_id=signal_id,
        target_id="a",
        source="probe",
        severity=severity,  # type: ignore[arg-type]
        captured_at=f"2026-03-01T10:{minute:02d}:00Z",  # type: ignore[arg-type]
    )


def test_three_nodes_land_in_three_waves_and_plan_is_running() -> None:
    envelope = build_plan(_three_node_input()).unwrap()
    plan = envelope.plan
    summary = plan.summary

    assert len(plan.waves) == 3
    assert [wave.sequence for wave in plan.waves] == [("a",), ("b",), ("c",)]
    assert summary.status is SimulationStatus.RUNNING
    assert summary.coverage_ratio == 1
    assert summary.node_coverage == 1
    assert summary.signal_coverage == pytest.approx(1.1667)
    assert summary.risk_profile is RiskProfile.GREEN
    assert summary.policy_violations == ()
    assert plan.created_at == 0
    assert plan.projected_signals == (0.0,) * 60


def test_seed_is_reproducible_and_derived_from_input_shape() -> None:
    first = build_plan(_three_node_input()).unwrap()
    second = build_plan(_three_node_input()).unwrap()

    assert first == second
    # run id (5) + tenant (8) + node ids (3) + buckets (0) + windows (3) + int(score) (1)
    assert first.plan.seed == 20


def test_epoch_offsets_every_synthetic_time() -> None:
    plan = build_plan(_three_node_input(), epoch_ms=1_000_000).unwrap().plan

    assert plan.created_at == 1_000_000
    assert [wave.window.start_utc for wave in plan.waves] == [1_000_000, 1_060_000, 1_120_000]
    assert [wave.ready_at for wave in plan.waves] == [1_000_000, 1_000_020, 1_000_040]


def test_metrics_and_notes_describe_the_unexecuted_plan() -> None:
    envelope = build_plan(_three_node_input(signals=(_signal("s1", "high", 4),))).unwrap()

    metrics = envelope.metrics
    assert metrics.waves_executed == 0
    assert metrics.waves_total == 3
    assert metrics.execution_rate == 0.0
    assert metrics.latency_ms == 0
    assert metrics.owner_coverage == 0.75
    assert metrics.risk_signal_count == 1
    assert envelope.notes[:3] == ("tenant=tenant-a", "run=run-1", "risk-budget=2/10")
    assert "waves=3" in envelope.notes


def test_finalize_metrics_counts_executed_window_latency() -> None:
    plan_input = _three_node_input()
    plan = build_plan(plan_input).unwrap().plan

    metrics = finalize_metrics(plan_input, plan, waves_executed=2)

    assert metrics.waves_executed == 2
    assert metrics.execution_rate == pytest.approx(2 / 3)
    assert metrics.latency_ms == 120_000


def test_risk_budget_above_ceiling_rejects_before_any_wave() -> None:
    signals = tuple(_signal(f"s{index}", "critical", index) for index in range(3))

    with capture_logs() as logs:
        result = build_plan(_three_node_input(signals=signals))

    assert not result.ok
    assert result.value is None
    assert isinstance(result.error, RiskRejectedError)
    assert str(result.error) == "risk gate rejected plan: risk-limit"
    assert [entry["event"] for entry in logs] == ["risk_gate_rejected"]
    assert logs[0]["risk_budget_used"] == 12


def test_empty_targets_fail_with_reason_in_message() -> None:
    result = build_plan(_three_node_input(target_ids=()))

    assert isinstance(result.error, RiskRejectedError)
    assert "empty-targets" in str(result.error)
    assert "empty-targets" in result.error.reasons


def test_cyclic_graph_error_is_propagated() -> None:
    result = build_plan(
        _three_node_input(
            dependencies=(
                SimulationDependency(from_id="a", to_id="b"),
                SimulationDependency(from_id="b", to_id="a"),
            )
        )
    )

    assert isinstance(result.error, CycleDetectedError)


def test_missing_constraints_fall_back_to_target_sized_defaults() -> None:
    plan_input = _three_node_input()
    defaulted = SimulationPlanInput(
        tenant=plan_input.tenant,
        run_id=plan_input.run_id,
        draft=plan_input.draft,
        graph=plan_input.graph,
        policy=plan_input.policy,
    )

    summary = build_plan(defaulted).unwrap().plan.summary

    assert summary.constraints.max_signals_per_wave == 6
    assert summary.constraints.max_parallel_nodes == 3
    assert summary.constraints.max_risk_score == 24


def test_blacked_out_waves_are_reported_as_violations() -> None:
    constraints = SimulationConstraint(
        max_signals_per_wave=6,
        max_parallel_nodes=3,
        max_risk_score=10,
        min_window_coverage=0.5,
        blackout_windows=(
            SimulationWindow(
                wave_id="freeze",
                start_utc=60_000,
                end_utc=120_000,
                expected_signals=0,
                target_count=0,
                window_index=0,
            ),
        ),
    )

    summary = build_plan(_three_node_input(constraints=constraints)).unwrap().plan.summary

    assert [wave.window.expected_signals for wave in summary.waves] == [6, 0, 6]
    assert [(item.reason, item.node_id, item.severity) for item in summary.policy_violations] == [
        ("blackout-window", "run-1:wave-1", 1)
    ]


def test_zero_signal_capacity_fails_the_final_check() -> None:
    constraints = SimulationConstraint(
        max_signals_per_wave=0,
        max_parallel_nodes=3,
        max_risk_score=10,
        min_window_coverage=0.5,
    )

    result = build_plan(_three_node_input(constraints=constraints))

    assert not result.ok
    assert result.error is not None
    assert result.error.reasons == ("max-signals-per-wave",)


def test_plan_built_event_is_logged() -> None:
    with capture_logs() as logs:
        build_plan(_three_node_input())

    assert [entry["event"] for entry in logs] == ["plan_built"]
    assert logs[0]["waves"] == 3
    assert logs[0]["status"] == "running"


@pytest.mark.parametrize(
    ("signal_coverage", "expected"),
    [
        (5.0, RiskProfile.GREEN),
        (10.0, RiskProfile.GREEN),
        (10.5, RiskProfile.AMBER),
        (20.0, RiskProfile.AMBER),
        (20.5, RiskProfile.RED),
    ],
)
def test_risk_profile_thresholds(signal_coverage: float, expected: RiskProfile) -> None:
    assert compute_risk_profile(signal_coverage, 10) is expected
