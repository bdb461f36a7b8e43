"""
Plan engine: turn a planning input into a ``SimulationPlan`` and its summary.

Steps run in a fixed order and stop at the first failure:
- normalize constraints (or synthesize defaults from the draft's target count)
- risk gate admission
- signal bucketing and 60-minute density projection
- wave allocation and window scheduling
- summary, plan, metrics and trace notes

All outputs are derived from the input alone; nothing reads a clock. ``created_at`` and
every window offset are relative to the caller-supplied ``epoch_ms``.
"""

from __future__ import annotations

from typing import Any

import structlog

from recovery_sim.constants import OWNERS
from recovery_sim.domain.errors import ConstraintViolationError, Result, RiskRejectedError
from recovery_sim.domain.models import (
    PlanMetrics,
    RiskProfile,
    SignalSeverity,
    SimulationConstraint,
    SimulationPlan,
    SimulationPlanEnvelope,
    SimulationPlanInput,
    SimulationPolicyViolation,
    SimulationStatus,
    SimulationSummary,
)
from recovery_sim.planning.allocator import (
    PlannedWave,
    build_allocations,
    build_window_schedule,
    score_plan_from_allocations,
)
from recovery_sim.planning.constraints import default_constraint, normalize_constraint
from recovery_sim.planning.graph import normalize_id
from recovery_sim.planning.risk_gate import evaluate_risk
from recovery_sim.planning.signals import build_signal_buckets, project_signals

_RISK_SIGNAL_SEVERITIES = frozenset({SignalSeverity.HIGH, SignalSeverity.CRITICAL})


def compute_risk_profile(signal_coverage: float, max_risk_score: int) -> RiskProfile:
    if signal_coverage > 2 * max_risk_score:
        return RiskProfile.RED
    if signal_coverage > max_risk_score:
        return RiskProfile.AMBER
    return RiskProfile.GREEN


def build_plan(
    plan_input: SimulationPlanInput,
    *,
    epoch_ms: int = 0,
    logger: Any | None = None,
) -> Result[SimulationPlanEnvelope]:
    log = logger if logger is not None else structlog.get_logger(__name__)
    constraints = (
        normalize_constraint(plan_input.constraints)
        if plan_input.constraints is not None
        else default_constraint(len(plan_input.draft.target_ids))
    )

    gate = evaluate_risk(plan_input, constraints)
    if not gate.ok:
        reasons = ",".join(violation.reason for violation in gate.violations)
        log.warning(
            "risk_gate_rejected",
            run_id=plan_input.run_id,
            reasons=[violation.reason for violation in gate.violations],
            risk_budget_used=gate.risk_budget_used,
            max_risk_score=constraints.max_risk_score,
        )
        return Result.failure(
            RiskRejectedError(f"risk gate rejected plan: {reasons}", violations=gate.violations)
        )

    buckets = build_signal_buckets(plan_input.signals)
    projected = project_signals(buckets)

    allocated = build_allocations(
        plan_input.graph,
        constraints,
        plan_input.run_id,
        epoch_ms=epoch_ms,
    )
    if not allocated.ok:
        log.warning("plan_graph_rejected", run_id=plan_input.run_id, error=str(allocated.error))
        return Result.failure(allocated.error)  # type: ignore[arg-type]
    planned = allocated.unwrap()

    schedule = build_window_schedule(constraints, [item.wave.window for item in planned])
    node_count = sum(len(item.wave.sequence) for item in planned)
    summary = _build_summary(plan_input, constraints, planned, node_count=node_count)
    score = score_plan_from_allocations(planned)

    seed = _derive_seed(
        plan_input,
        bucket_count=len(buckets),
        window_count=len(schedule),
        score=score,
    )
    plan = SimulationPlan(
        run_id=plan_input.run_id,
        tenant=plan_input.tenant,
        seed=seed,
        created_at=epoch_ms,
        waves=summary.waves,
        projected_signals=projected,
        summary=summary,
    )

    if constraints.max_signals_per_wave <= 0:
        violation = SimulationPolicyViolation(
            reason="max-signals-per-wave", node_id="constraints", severity=5
        )
        return Result.failure(
            ConstraintViolationError(
                "policy envelope has no signal capacity: max-signals-per-wave",
                violations=(violation,),
            )
        )

    notes = (
        f"tenant={plan_input.tenant}",
        f"run={plan_input.run_id}",
        f"risk-budget={gate.risk_budget_used}/{constraints.max_risk_score}",
        f"signal-buckets={len(buckets)}",
        f"waves={len(plan.waves)}",
        f"windows={len(schedule)}",
        f"profile={summary.risk_profile.value}",
        f"score={score:.4f}",
    )
    log.info(
        "plan_built",
        run_id=plan.run_id,
        tenant=plan.tenant,
        waves=len(plan.waves),
        windows=len(schedule),
        status=summary.status.value,
        risk_profile=summary.risk_profile.value,
        seed=seed,
    )
    return Result.success(
        SimulationPlanEnvelope(
            plan=plan,
            metrics=finalize_metrics(plan_input, plan, waves_executed=0),
            notes=notes,
        )
    )


def finalize_metrics(
    plan_input: SimulationPlanInput,
    plan: SimulationPlan,
    *,
    waves_executed: int = 0,
) -> PlanMetrics:
    """Execution metrics placeholders for a plan that has run ``waves_executed`` waves."""
    total = len(plan.waves)
    executed = min(max(0, waves_executed), total)
    owners = {
        owner
        for allocation in plan.summary.allocations
        for owner, count in allocation.owner_mix.items()
        if count > 0
    }
    return PlanMetrics(
        run_id=plan.run_id,
        waves_executed=executed,
        waves_total=total,
        execution_rate=executed / total if total else 0.0,
        latency_ms=sum(
            wave.window.end_utc - wave.window.start_utc for wave in plan.waves[:executed]
        ),
        owner_coverage=len(owners) / len(OWNERS),
        risk_signal_count=sum(
            1 for signal in plan_input.signals if signal.severity in _RISK_SIGNAL_SEVERITIES
        ),
    )


def _build_summary(
    plan_input: SimulationPlanInput,
    constraints: SimulationConstraint,
    planned: tuple[PlannedWave, ...],
    *,
    node_count: int,
) -> SimulationSummary:
    waves = tuple(item.wave for item in planned)
    allocations = tuple(item.allocation for item in planned)
    signal_coverage = round(score_plan_from_allocations(planned), 4)
    total_nodes = _graph_node_count(plan_input)

    violations = tuple(
        SimulationPolicyViolation(reason="blackout-window", node_id=wave.id, severity=1)
        for wave in waves
        if wave.window.expected_signals == 0 and constraints.max_signals_per_wave > 0
    )
    return SimulationSummary(
        run_id=plan_input.run_id,
        status=SimulationStatus.RUNNING if waves else SimulationStatus.PENDING,
        coverage_ratio=len(waves) / total_nodes if total_nodes else 0.0,
        signal_coverage=signal_coverage,
        node_coverage=node_count / total_nodes if total_nodes else 0.0,
        risk_profile=compute_risk_profile(signal_coverage, constraints.max_risk_score),
        constraints=constraints,
        waves=waves,
        allocations=allocations,
        policy_violations=violations,
    )


def _graph_node_count(plan_input: SimulationPlanInput) -> int:
    return len({normalize_id(node.id) for node in plan_input.graph.nodes})


def _derive_seed(
    plan_input: SimulationPlanInput,
    *,
    bucket_count: int,
    window_count: int,
    score: float,
) -> int:
    """Reproducible plan seed; not suitable for anything security related."""
    id_lengths = len(plan_input.run_id) + len(plan_input.tenant)
    id_lengths += sum(len(node.id) for node in plan_input.graph.nodes)
    return id_lengths + bucket_count + window_count + int(score)


__all__ = ["build_plan", "compute_risk_profile", "finalize_metrics"]
