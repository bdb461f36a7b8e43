"""
Plan analytics: summary metrics, per-wave heat map and constraint fit.

The coverage figure here is the same three-way average the stability matrix uses for its
coverage cell, computed independently so each surface can evolve on its own.
``profile_risk_scalar`` is derived from the traffic-light risk profile and is a third,
differently scaled notion of risk next to the gate budget and the stability score.
"""

from __future__ import annotations

from dataclasses import dataclass

from recovery_sim.constants import RISK_PROFILE_SCALAR
from recovery_sim.domain.models import (
    PlainDataModel,
    RiskProfile,
    SimulationConstraint,
    SimulationPlan,
    SimulationPolicyViolation,
    SimulationSummary,
)


@dataclass(frozen=True, slots=True)
class PlanSummaryMetrics(PlainDataModel):
    run_id: str
    coverage: float
    profile_risk_scalar: float
    risk_profile: RiskProfile
    wave_count: int
    node_count: int
    total_signals: float


@dataclass(frozen=True, slots=True)
class HeatMapPoint(PlainDataModel):
    wave_id: str
    window_index: int
    normalized_coverage: float
    normalized_risk: float


def summarize_plan(plan: SimulationPlan) -> PlanSummaryMetrics:
    summary = plan.summary
    coverage = (summary.signal_coverage + summary.node_coverage + summary.coverage_ratio) / 3
    return PlanSummaryMetrics(
        run_id=plan.run_id,
        coverage=coverage,
        profile_risk_scalar=1 - RISK_PROFILE_SCALAR[summary.risk_profile.value],
        risk_profile=summary.risk_profile,
        wave_count=len(plan.waves),
        node_count=sum(len(wave.sequence) for wave in plan.waves),
        total_signals=plan.total_signals,
    )


def derive_heat_map(plan: SimulationPlan) -> tuple[HeatMapPoint, ...]:
    """One point per wave.

    Coverage is normalized against the total projected signal density (zero when the
    projection is empty). Risk is the unused share of the window's expected signals,
    which is 1 for a window that expects nothing.
    """
    projected_total = sum(plan.projected_signals)
    points: list[HeatMapPoint] = []
    for wave in plan.waves:
        expected = wave.window.expected_signals
        normalized_risk = 1.0 if expected <= 0 else _clamp(1 - wave.signal_count / expected)
        points.append(
            HeatMapPoint(
                wave_id=wave.id,
                window_index=wave.window.window_index,
                normalized_coverage=(
                    wave.signal_count / projected_total if projected_total > 0 else 0.0
                ),
                normalized_risk=normalized_risk,
            )
        )
    return tuple(points)


def evaluate_constraint_fit(
    constraints: SimulationConstraint,
    summary: SimulationSummary,
) -> tuple[SimulationPolicyViolation, ...]:
    violations: list[SimulationPolicyViolation] = []
    capacity = constraints.max_signals_per_wave
    ratio = summary.signal_coverage / capacity if capacity > 0 else 0.0
    if ratio < constraints.min_window_coverage:
        violations.append(
            SimulationPolicyViolation(reason="low-coverage", node_id=summary.run_id, severity=3)
        )
    if summary.risk_profile is RiskProfile.RED:
        violations.append(
            SimulationPolicyViolation(
                reason="risk-profile-red", node_id=summary.run_id, severity=4
            )
        )
    return tuple(violations)


def _clamp(value: float) -> float:
    return float(min(1.0, max(0.0, value)))


__all__ = [
    "HeatMapPoint",
    "PlanSummaryMetrics",
    "derive_heat_map",
    "evaluate_constraint_fit",
    "summarize_plan",
]
