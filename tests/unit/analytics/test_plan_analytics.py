"""Unit tests for plan summary metrics, heat map and constraint fit."""

from __future__ import annotations

from dataclasses import replace

import pytest

from recovery_sim.analytics.plan_analytics import (
    derive_heat_map,
    evaluate_constraint_fit,
    summarize_plan,
)
from recovery_sim.domain.models import (
    NodeOwner,
    ReadinessDraft,
    ReadinessPolicy,
    ReadinessSignal,
    RiskProfile,
    SimulationConstraint,
    SimulationGraph,
    SimulationNode,
    SimulationPlan,
    SimulationPlanInput,
)
from recovery_sim.planning.plan_engine import build_plan

_CONSTRAINT = SimulationConstraint(
    max_signals_per_wave=6,
    max_parallel_nodes=3,
    max_risk_score=10,
    min_window_coverage=0.5,
)


def _plan(signals: tuple[ReadinessSignal, ...] = ()) -> SimulationPlan:
    plan_input = SimulationPlanInput(
        tenant="tenant-a",
        run_id="run-1",
        draft=ReadinessDraft(target_ids=("a", "b", "c")),
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
            )
        ),
        policy=ReadinessPolicy(policy_id="policy-1"),
        signals=signals,
        constraints=_CONSTRAINT,
    )
    return build_plan(plan_input).unwrap().plan


def test_summary_metrics_average_the_three_coverages() -> None:
    metrics = summarize_plan(_plan())

    assert metrics.run_id == "run-1"
    assert metrics.coverage == pytest.approx((1.1667 + 1 + 1) / 3)
    assert metrics.risk_profile is RiskProfile.GREEN
    assert metrics.profile_risk_scalar == pytest.approx(0.8)
    assert metrics.wave_count == 3
    assert metrics.node_count == 3
    assert metrics.total_signals == 3.5


def test_profile_risk_scalar_follows_the_traffic_light() -> None:
    plan = _plan()
    amber = replace(plan, summary=replace(plan.summary, risk_profile=RiskProfile.AMBER))
    red = replace(plan, summary=replace(plan.summary, risk_profile=RiskProfile.RED))

    assert summarize_plan(amber).profile_risk_scalar == pytest.approx(0.45)
    assert summarize_plan(red).profile_risk_scalar == 0.0


def test_heat_map_without_projection_has_zero_coverage() -> None:
    points = derive_heat_map(_plan())

    assert [point.wave_id for point in points] == ["run-1:wave-0", "run-1:wave-1", "run-1:wave-2"]
    assert [point.window_index for point in points] == [0, 1, 2]
    assert {point.normalized_coverage for point in points} == {0.0}
    assert [point.normalized_risk for point in points] == pytest.approx(
        [1 - 2 / 6, 1 - 1 / 6, 1 - 0.5 / 6]
    )


def test_heat_map_normalizes_against_projected_density() -> None:
    signal = ReadinessSignal(
        signal_id="s1",
        target_id="a",
        source="probe",
        severity="high",  # type: ignore[arg-type]
        captured_at="2026-03-01T10:04:00Z",  # type: ignore[arg-type]
    )

    points = derive_heat_map(_plan((signal,)))

    # One high signal projects a density of 1 + 3 into minute four.
    assert [point.normalized_coverage for point in points] == pytest.approx([0.5, 0.25, 0.125])


def test_heat_map_marks_windows_without_expected_signals_as_full_risk() -> None:
    plan = _plan()
    silent = replace(plan.waves[0], window=replace(plan.waves[0].window, expected_signals=0))

    points = derive_heat_map(replace(plan, waves=(silent, *plan.waves[1:])))

    assert points[0].normalized_risk == 1.0


def test_constraint_fit_flags_low_coverage() -> None:
    plan = _plan()

    violations = evaluate_constraint_fit(_CONSTRAINT, plan.summary)

    assert [(item.reason, item.node_id, item.severity) for item in violations] == [
        ("low-coverage", "run-1", 3)
    ]


def test_constraint_fit_flags_red_profile() -> None:
    plan = _plan()
    red_summary = replace(plan.summary, risk_profile=RiskProfile.RED)
    relaxed = replace(_CONSTRAINT, min_window_coverage=0.0)

    violations = evaluate_constraint_fit(relaxed, red_summary)

    assert [(item.reason, item.severity) for item in violations] == [("risk-profile-red", 4)]


def test_constraint_fit_is_clean_when_coverage_meets_the_floor() -> None:
    plan = _plan()
    relaxed = replace(_CONSTRAINT, min_window_coverage=0.1)

    assert evaluate_constraint_fit(relaxed, plan.summary) == ()
