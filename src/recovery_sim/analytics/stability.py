"""Stability matrix: weighted quality index over a plan summary.

``stability_risk_score`` is a quality index where higher is better. It is unrelated to
the risk gate's additive ``risk_budget_used``, where higher is worse.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from recovery_sim.constants import OWNERS, STABILITY_BLACKOUT_SATURATION, STABILITY_WEIGHTS
from recovery_sim.domain.errors import EmptyPlanError, Result
from recovery_sim.domain.models import (
    PlainDataModel,
    SimulationConstraint,
    SimulationPlan,
    SimulationSummary,
    StabilityCell,
    StabilityMatrix,
)

GRADE_STABLE: Final[str] = "stable"
GRADE_WATCH: Final[str] = "watch"
GRADE_UNSTABLE: Final[str] = "unstable"


@dataclass(frozen=True, slots=True)
class StabilityEnvelope(PlainDataModel):
    run_id: str
    tenant: str
    wave_count: int
    grade: str
    matrix: StabilityMatrix


def build_stability_matrix(
    summary: SimulationSummary,
    constraints: SimulationConstraint,
) -> StabilityMatrix:
    coverage = _clamp(
        (summary.signal_coverage + summary.node_coverage + summary.coverage_ratio) / 3
    )
    risk = _clamp(1 - len(summary.policy_violations) / max(1, constraints.max_risk_score))
    parallelism = _clamp(summary.coverage_ratio / max(1, constraints.max_parallel_nodes))
    blackout_count = len(constraints.blackout_windows)
    blackout = _clamp(1 - min(1.0, blackout_count / STABILITY_BLACKOUT_SATURATION))

    cells = (
        StabilityCell(
            dimension="coverage",
            value=coverage,
            weight=STABILITY_WEIGHTS["coverage"],
            reason="mean of signal, node and wave coverage",
        ),
        StabilityCell(
            dimension="risk",
            value=risk,
            weight=STABILITY_WEIGHTS["risk"],
            reason=f"{len(summary.policy_violations)} violation(s) "
            f"against risk ceiling {constraints.max_risk_score}",
        ),
        StabilityCell(
            dimension="parallelism",
            value=parallelism,
            weight=STABILITY_WEIGHTS["parallelism"],
            reason=f"coverage ratio over {constraints.max_parallel_nodes} parallel node(s)",
        ),
        StabilityCell(
            dimension="blackout",
            value=blackout,
            weight=STABILITY_WEIGHTS["blackout"],
            reason=f"{blackout_count} blackout window(s)",
        ),
    )
    score = round(sum(cell.value * cell.weight for cell in cells), 4)

    return StabilityMatrix(
        run_id=summary.run_id,
        cells=cells,
        stability_risk_score=_clamp(score),
        signal_coverage_score=_clamp(
            summary.signal_coverage / max(1, constraints.max_signals_per_wave)
        ),
        operator_mix_score=_operator_mix_score(summary),
        violations=summary.policy_violations,
    )


def build_stability_envelope(
    plan: SimulationPlan,
    constraints: SimulationConstraint,
) -> Result[StabilityEnvelope]:
    """Score a plan, refusing plans without waves."""
    if not plan.waves:
        return Result.failure(EmptyPlanError(f"plan {plan.run_id} has no waves to score"))

    matrix = build_stability_matrix(plan.summary, constraints)
    return Result.success(
        StabilityEnvelope(
            run_id=plan.run_id,
            tenant=plan.tenant,
            wave_count=len(plan.waves),
            grade=grade_for(matrix.stability_risk_score),
            matrix=matrix,
        )
    )


def grade_for(score: float) -> str:
    if score >= 0.75:
        return GRADE_STABLE
    if score >= 0.5:
        return GRADE_WATCH
    return GRADE_UNSTABLE


def _operator_mix_score(summary: SimulationSummary) -> float:
    if not summary.allocations:
        return 0.0
    owner_mix = summary.allocations[0].owner_mix
    present = sum(1 for owner in OWNERS if owner_mix.get(owner, 0) > 0)
    return present / len(OWNERS)


def _clamp(value: float) -> float:
    return float(min(1.0, max(0.0, value)))


__all__ = [
    "GRADE_STABLE",
    "GRADE_UNSTABLE",
    "GRADE_WATCH",
    "StabilityEnvelope",
    "build_stability_envelope",
    "build_stability_matrix",
    "grade_for",
]
