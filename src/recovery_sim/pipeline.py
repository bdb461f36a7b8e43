"""
End-to-end readiness simulation: validate, plan, score and package one run.

The plan is always built from the validated, mode-adjusted constraint rather than the
raw input constraint. An optional tenant-wide constraint is merged in after the plan's
own constraint has passed validation, and the merged result is validated again.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

import structlog

from recovery_sim.analytics.plan_analytics import (
    HeatMapPoint,
    PlanSummaryMetrics,
    derive_heat_map,
    evaluate_constraint_fit,
    summarize_plan,
)
from recovery_sim.analytics.stability import build_stability_matrix
from recovery_sim.domain.errors import ConstraintViolationError, Result
from recovery_sim.domain.models import (
    PlainDataModel,
    PlanMode,
    SimulationConstraint,
    SimulationPlanEnvelope,
    SimulationPlanInput,
    SimulationPolicyViolation,
    SimulationStatus,
    StabilityMatrix,
)
from recovery_sim.observability.logging import correlation_scope
from recovery_sim.planning.constraints import (
    ConstraintEnvelope,
    build_constraint_envelope,
    coerce_mode,
    merge_constraints,
    normalize_constraint,
    validate_constraint,
    validate_plan_constraints,
)
from recovery_sim.planning.plan_engine import build_plan

if TYPE_CHECKING:
    from recovery_sim.config.schema import EngineSettings


@dataclass(frozen=True, slots=True)
class PipelineContext:
    mode: PlanMode = PlanMode.BALANCED
    epoch_ms: int = 0
    tenant_constraint: SimulationConstraint | None = None
    logger: Any | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "mode", coerce_mode(self.mode))
        if self.epoch_ms < 0:
            raise ValueError("epoch_ms must be >= 0")

    @classmethod
    def from_settings(
        cls,
        settings: EngineSettings,
        *,
        logger: Any | None = None,
    ) -> PipelineContext:
        return cls(
            mode=settings.mode,
            epoch_ms=settings.epoch_ms,
            tenant_constraint=settings.tenant_constraint,
            logger=logger,
        )


@dataclass(frozen=True, slots=True)
class PolicyEnvelope(PlainDataModel):
    """Tenant, plan and policy identity bundled with the constraint the plan ran under."""

    tenant: str
    run_id: str
    policy_id: str
    seed: int
    mode: PlanMode
    constraints: SimulationConstraint


@dataclass(frozen=True, slots=True)
class PipelineResult(PlainDataModel):
    tenant: str
    run_id: str
    status: SimulationStatus
    plan_envelope: SimulationPlanEnvelope
    policy_envelope: PolicyEnvelope
    heat_map_points: tuple[HeatMapPoint, ...]
    stability_risk_score: float
    policy_violations: tuple[SimulationPolicyViolation, ...]
    stability: StabilityMatrix
    summary_metrics: PlanSummaryMetrics


def execute_readiness_simulation(
    plan_input: SimulationPlanInput,
    context: PipelineContext | None = None,
) -> Result[PipelineResult]:
    ctx = context if context is not None else PipelineContext()
    log = ctx.logger if ctx.logger is not None else structlog.get_logger(__name__)

    with correlation_scope(run_id=plan_input.run_id, tenant=plan_input.tenant):
        validated = validate_plan_constraints(plan_input, ctx.mode)
        if not validated.ok:
            log.warning(
                "constraints_rejected",
                run_id=plan_input.run_id,
                error=str(validated.error),
            )
            return Result.failure(validated.error)  # type: ignore[arg-type]
        tenant_applied = _apply_tenant_constraint(validated.unwrap(), ctx)
        if not tenant_applied.ok:
            log.warning(
                "constraints_rejected",
                run_id=plan_input.run_id,
                error=str(tenant_applied.error),
                tenant_constraint=True,
            )
            return Result.failure(tenant_applied.error)  # type: ignore[arg-type]
        envelope = tenant_applied.unwrap()

        planned = build_plan(
            replace(plan_input, constraints=envelope.constraint),
            epoch_ms=ctx.epoch_ms,
            logger=log,
        )
        if not planned.ok:
            return Result.failure(planned.error)  # type: ignore[arg-type]
        plan_envelope = planned.unwrap()
        plan = plan_envelope.plan

        summary_metrics = summarize_plan(plan)
        stability = build_stability_matrix(plan.summary, envelope.constraint)
        fit_violations = evaluate_constraint_fit(envelope.constraint, plan.summary)
        heat_map = derive_heat_map(plan)
        policy_envelope = PolicyEnvelope(
            tenant=plan_input.tenant,
            run_id=plan_input.run_id,
            policy_id=plan_input.policy.policy_id,
            seed=plan.seed,
            mode=envelope.mode,
            constraints=envelope.constraint,
        )
        status = _pipeline_status(plan.summary.status)

        log.info(
            "pipeline_completed",
            run_id=plan_input.run_id,
            status=status.value,
            mode=envelope.mode.value,
            stability_risk_score=stability.stability_risk_score,
            fit_violations=[violation.reason for violation in fit_violations],
        )
        return Result.success(
            PipelineResult(
                tenant=plan_input.tenant,
                run_id=plan_input.run_id,
                status=status,
                plan_envelope=plan_envelope,
                policy_envelope=policy_envelope,
                heat_map_points=heat_map,
                stability_risk_score=stability.stability_risk_score,
                policy_violations=fit_violations,
                stability=stability,
                summary_metrics=summary_metrics,
            )
        )


def _apply_tenant_constraint(
    envelope: ConstraintEnvelope,
    ctx: PipelineContext,
) -> Result[ConstraintEnvelope]:
    if ctx.tenant_constraint is None:
        return Result.success(envelope)
    base = (
        ctx.tenant_constraint
        if envelope.synthesized
        else merge_constraints(ctx.tenant_constraint, envelope.base)
    )
    violations = validate_constraint(
        normalize_constraint(base),
        raw_min_window_coverage=float(base.min_window_coverage),
    )
    if violations:
        reasons = ",".join(violation.reason for violation in violations)
        return Result.failure(
            ConstraintViolationError(
                f"merged tenant constraint validation failed: {reasons}",
                violations=violations,
            )
        )
    return Result.success(build_constraint_envelope(base, envelope.mode, envelope.target_count))


def _pipeline_status(status: SimulationStatus) -> SimulationStatus:
    if status is SimulationStatus.COMPLETE:
        return SimulationStatus.COMPLETE
    if status is SimulationStatus.RUNNING:
        return SimulationStatus.RUNNING
    return SimulationStatus.PENDING


__all__ = [
    "PipelineContext",
    "PipelineResult",
    "PolicyEnvelope",
    "execute_readiness_simulation",
]
