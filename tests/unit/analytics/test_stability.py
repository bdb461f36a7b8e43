"""Unit tests for the stability matrix."""

from __future__ import annotations

from dataclasses import replace

import pytest

from recovery_sim.analytics.stability import (
    GRADE_STABLE,
    GRADE_UNSTABLE,
    GRADE_WATCH,
    build_stability_envelope,
    build_stability_matrix,
    grade_for,
)
from recovery_sim.domain.errors import EmptyPlanError
from recovery_sim.domain.models import (
    NodeOwner,
    ReadinessDraft,
    ReadinessPolicy,
    RiskProfile,
    SimulationConstraint,
    SimulationGraph,
    SimulationNode,
    SimulationPlan,
    SimulationPlanInput,
    SimulationStatus,
    SimulationSummary,
    SimulationWindow,
)
from recovery_sim.planning.plan_engine import build_plan

try:
    from hypothesis import given, settings
    from hypothesis import strategies as st
except ModuleNotFoundError:  # pragma: no cover - fallback path
    HYPOTHESIS_AVAILABLE = False
else:
    HYPOTHESIS_AVAILABLE = True

_FREEZE = SimulationWindow(
    wave_id="freeze",
    start_utc=60_000,
    end_utc=120_000,
    expected_signals=0,
    target_count=0,
    window_index=0,
)


def _constraint(*, blackouts: tuple[SimulationWindow, ...] = ()) -> SimulationConstraint:
    return SimulationConstraint(
        max_signals_per_wave=6,
        max_parallel_nodes=3,
        max_risk_score=10,
        min_window_coverage=0.5,
        blackout_windows=blackouts,
    )


def _plan(constraint: SimulationConstraint) -> SimulationPlan:
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
        constraints=constraint,
    )
    return build_plan(plan_input).unwrap().plan


def test_matrix_cells_for_a_clean_three_wave_plan() -> None:
    constraint = _constraint()
    matrix = build_stability_matrix(_plan(constraint).summary, constraint)

    assert [cell.dimension for cell in matrix.cells] == [
        "coverage",
        "risk",
        "parallelism",
        "blackout",
    ]
    assert matrix.cell("coverage").value == 1.0
    assert matrix.cell("risk").value == 1.0
    assert matrix.cell("parallelism").value == pytest.approx(1 / 3)
    assert matrix.cell("blackout").value == 1.0
    assert sum(cell.weight for cell in matrix.cells) == pytest.approx(1.0)
    assert matrix.stability_risk_score == pytest.approx(0.8667)
    assert matrix.signal_coverage_score == pytest.approx(1.1667 / 6)
    assert matrix.operator_mix_score == 0.75
    assert matrix.violations == ()


def test_blackout_lowers_risk_and_blackout_cells() -> None:
    constraint = _constraint(blackouts=(_FREEZE,))
    matrix = build_stability_matrix(_plan(constraint).summary, constraint)

    assert matrix.cell("risk").value == pytest.approx(0.9)
    assert matrix.cell("blackout").value == pytest.approx(0.8)
    assert [violation.reason for violation in matrix.violations] == ["blackout-window"]
    assert matrix.stability_risk_score == pytest.approx(0.8017)


def test_unknown_cell_dimension_raises_key_error() -> None:
    constraint = _constraint()
    matrix = build_stability_matrix(_plan(constraint).summary, constraint)

    with pytest.raises(KeyError, match="latency"):
        matrix.cell("latency")


def test_envelope_grades_scored_plans() -> None:
    constraint = _constraint()
    envelope = build_stability_envelope(_plan(constraint), constraint).unwrap()

    assert envelope.run_id == "run-1"
    assert envelope.tenant == "tenant-a"
    assert envelope.wave_count == 3
    assert envelope.grade == GRADE_STABLE


def test_envelope_refuses_plan_without_waves() -> None:
    constraint = _constraint()
    empty = replace(_plan(constraint), waves=())

    result = build_stability_envelope(empty, constraint)

    assert isinstance(result.error, EmptyPlanError)
    assert "run-1" in str(result.error)


@pytest.mark.parametrize(
    ("score", "grade"),
    [
        (1.0, GRADE_STABLE),
        (0.75, GRADE_STABLE),
        (0.74, GRADE_WATCH),
        (0.5, GRADE_WATCH),
        (0.49, GRADE_UNSTABLE),
        (0.0, GRADE_UNSTABLE),
    ],
)
def test_grade_thresholds(score: float, grade: str) -> None:
    assert grade_for(score) == grade


def test_empty_summary_scores_zero_operator_mix() -> None:
    summary = SimulationSummary(
        run_id="run-empty",
        status=SimulationStatus.PENDING,
        coverage_ratio=0.0,
        signal_coverage=0.0,
        node_coverage=0.0,
        risk_profile=RiskProfile.GREEN,
        constraints=_constraint(),
        waves=(),
        allocations=(),
    )

    matrix = build_stability_matrix(summary, _constraint())

    assert matrix.operator_mix_score == 0.0
    assert matrix.cell("coverage").value == 0.0
    assert matrix.stability_risk_score == pytest.approx(0.45)


if HYPOTHESIS_AVAILABLE:
    _RATIO = st.floats(min_value=-1e6, max_value=1e6, allow_nan=False)
    _COUNT = st.integers(min_value=-50, max_value=50)

    @settings(max_examples=120, derandomize=True, deadline=None)
    @given(
        coverage_ratio=_RATIO,
        signal_coverage=_RATIO,
        node_coverage=_RATIO,
        max_signals=_COUNT,
        max_parallel=_COUNT,
        max_risk=_COUNT,
        blackout_count=st.integers(min_value=0, max_value=8),
    )
    def test_property_every_score_stays_within_unit_interval(
        coverage_ratio: float,
        signal_coverage: float,
        node_coverage: float,
        max_signals: int,
        max_parallel: int,
        max_risk: int,
        blackout_count: int,
    ) -> None:
        constraint = SimulationConstraint(
            max_signals_per_wave=max_signals,
            max_parallel_nodes=max_parallel,
            max_risk_score=max_risk,
            blackout_windows=(_FREEZE,) * blackout_count,
        )
        summary = SimulationSummary(
            run_id="run-p",
            status=SimulationStatus.RUNNING,
            coverage_ratio=coverage_ratio,
            signal_coverage=signal_coverage,
            node_coverage=node_coverage,
            risk_profile=RiskProfile.AMBER,
            constraints=constraint,
            waves=(),
            allocations=(),
        )

        matrix = build_stability_matrix(summary, constraint)

        for cell in matrix.cells:
            assert 0.0 <= cell.value <= 1.0
        assert 0.0 <= matrix.stability_risk_score <= 1.0
        assert 0.0 <= matrix.signal_coverage_score <= 1.0
        assert 0.0 <= matrix.operator_mix_score <= 1.0
