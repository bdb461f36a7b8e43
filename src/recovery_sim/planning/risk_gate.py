"""Pre-flight admission gate: severity budget and minimum target count."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from recovery_sim.constants import RISK_BUDGET_DEFAULT_WEIGHT, RISK_BUDGET_WEIGHT
from recovery_sim.domain.models import (
    PlainDataModel,
    ReadinessPolicy,
    ReadinessSignal,
    SignalSeverity,
    SimulationConstraint,
    SimulationPlanInput,
    SimulationPolicyViolation,
)


@dataclass(frozen=True, slots=True)
class RiskGateDecision(PlainDataModel):
    """Gate outcome. ``risk_budget_used`` is additive: higher is worse."""

    ok: bool
    risk_budget_used: int
    violations: tuple[SimulationPolicyViolation, ...]


def risk_budget_weight(severity: SignalSeverity | str) -> int:
    return RISK_BUDGET_WEIGHT.get(SignalSeverity(severity).value, RISK_BUDGET_DEFAULT_WEIGHT)


def compute_risk_budget(signals: Sequence[ReadinessSignal]) -> int:
    return sum(risk_budget_weight(signal.severity) for signal in signals)


def minimum_target_count(policy: ReadinessPolicy) -> int:
    """Smallest target count a policy admits. Every policy currently requires one."""
    del policy
    return 1


def evaluate_risk(
    plan_input: SimulationPlanInput,
    constraints: SimulationConstraint,
) -> RiskGateDecision:
    risk = compute_risk_budget(plan_input.signals)
    target_count = len(plan_input.draft.target_ids)
    violations: list[SimulationPolicyViolation] = []

    if target_count == 0:
        violations.append(
            SimulationPolicyViolation(
                reason="empty-targets", node_id=plan_input.run_id, severity=3
            )
        )
    if risk > constraints.max_risk_score:
        violations.append(
            SimulationPolicyViolation(reason="risk-limit", node_id=plan_input.run_id, severity=5)
        )
    if target_count < minimum_target_count(plan_input.policy):
        violations.append(
            SimulationPolicyViolation(
                reason="minimum-target-count", node_id=plan_input.run_id, severity=2
            )
        )

    return RiskGateDecision(
        ok=not violations,
        risk_budget_used=risk,
        violations=tuple(violations),
    )


__all__ = [
    "RiskGateDecision",
    "compute_risk_budget",
    "evaluate_risk",
    "minimum_target_count",
    "risk_budget_weight",
]
