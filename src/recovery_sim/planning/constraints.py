"""Constraint normalization, mode envelopes and structural validation."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Literal

from recovery_sim.constants import (
    DEFAULT_MAX_PARALLEL_CEILING,
    DEFAULT_MAX_RISK_SCORE,
    DEFAULT_MIN_WINDOW_COVERAGE,
    MAX_BLACKOUT_WINDOWS,
)
from recovery_sim.domain.errors import ConstraintViolationError, Result
from recovery_sim.domain.models import (
    PlainDataModel,
    PlanMode,
    SimulationConstraint,
    SimulationPlanInput,
    SimulationPolicyViolation,
    SimulationWindow,
)

Rounding = Literal["ceil", "floor"]


@dataclass(frozen=True, slots=True)
class ModeAdjustment:
    """Multipliers a planning mode applies on top of a normalized constraint."""

    mode: PlanMode
    signals_factor: float
    signals_rounding: Rounding
    parallel_factor: float
    parallel_rounding: Rounding
    coverage_delta: float
    risk_factor: float

    def apply(self, constraint: SimulationConstraint) -> SimulationConstraint:
        return SimulationConstraint(
            max_signals_per_wave=max(
                1,
                _round(constraint.max_signals_per_wave * self.signals_factor, self.signals_rounding),
            ),
            max_parallel_nodes=max(
                1,
                _round(constraint.max_parallel_nodes * self.parallel_factor, self.parallel_rounding),
            ),
            max_risk_score=max(1, math.floor(constraint.max_risk_score * self.risk_factor)),
            min_window_coverage=_clamp_unit(constraint.min_window_coverage + self.coverage_delta),
            blackout_windows=constraint.blackout_windows,
        )


MODE_ADJUSTMENTS: Mapping[PlanMode, ModeAdjustment] = MappingProxyType(
    {
        PlanMode.STRICT: ModeAdjustment(
            mode=PlanMode.STRICT,
            signals_factor=0.65,
            signals_rounding="ceil",
            parallel_factor=0.8,
            parallel_rounding="floor",
            coverage_delta=0.2,
            risk_factor=0.85,
        ),
        PlanMode.BALANCED: ModeAdjustment(
            mode=PlanMode.BALANCED,
            signals_factor=1.0,
            signals_rounding="floor",
            parallel_factor=1.0,
            parallel_rounding="floor",
            coverage_delta=0.0,
            risk_factor=1.0,
        ),
        PlanMode.AGGRESSIVE: ModeAdjustment(
            mode=PlanMode.AGGRESSIVE,
            signals_factor=1.4,
            signals_rounding="ceil",
            parallel_factor=1.2,
            parallel_rounding="ceil",
            coverage_delta=-0.08,
            risk_factor=1.35,
        ),
    }
)


@dataclass(frozen=True, slots=True)
class ConstraintEnvelope(PlainDataModel):
    """Mode-adjusted constraint together with the normalized base it came from."""

    mode: PlanMode
    target_count: int
    base: SimulationConstraint
    constraint: SimulationConstraint
    synthesized: bool


def normalize_constraint(
    raw: SimulationConstraint | Mapping[str, object],
) -> SimulationConstraint:
    """Floor count fields to non-negative integers and clamp coverage to ``[0, 1]``."""
    source = raw if isinstance(raw, SimulationConstraint) else SimulationConstraint.from_mapping(raw)
    return SimulationConstraint(
        max_signals_per_wave=_floor_count(source.max_signals_per_wave),
        max_parallel_nodes=_floor_count(source.max_parallel_nodes),
        max_risk_score=_floor_count(source.max_risk_score),
        min_window_coverage=_clamp_unit(source.min_window_coverage),
        blackout_windows=tuple(_normalize_window(window) for window in source.blackout_windows),
    )


def default_constraint(target_count: int) -> SimulationConstraint:
    """Synthesize a constraint sized to ``target_count`` targets."""
    count = max(0, int(target_count))
    return SimulationConstraint(
        max_signals_per_wave=max(2, count * 2),
        max_parallel_nodes=min(max(count, 1), DEFAULT_MAX_PARALLEL_CEILING),
        max_risk_score=DEFAULT_MAX_RISK_SCORE,
        min_window_coverage=DEFAULT_MIN_WINDOW_COVERAGE,
    )


def build_constraint_envelope(
    request: SimulationConstraint | Mapping[str, object] | None,
    mode: PlanMode | str,
    target_count: int,
) -> ConstraintEnvelope:
    """Normalize ``request`` (or synthesize a default) and apply the mode multipliers."""
    resolved_mode = coerce_mode(mode)
    synthesized = request is None
    base = default_constraint(target_count) if request is None else normalize_constraint(request)
    return ConstraintEnvelope(
        mode=resolved_mode,
        target_count=max(0, int(target_count)),
        base=base,
        constraint=MODE_ADJUSTMENTS[resolved_mode].apply(base),
        synthesized=synthesized,
    )


def validate_constraint(
    constraint: SimulationConstraint,
    *,
    raw_min_window_coverage: float | None = None,
) -> tuple[SimulationPolicyViolation, ...]:
    """Return structural violations for a constraint; empty when sound."""
    violations: list[SimulationPolicyViolation] = []
    if constraint.max_signals_per_wave <= 0:
        violations.append(_violation("max-signals-per-wave", 5))
    if constraint.max_parallel_nodes <= 0:
        violations.append(_violation("max-parallel-nodes", 4))

    coverage = (
        constraint.min_window_coverage
        if raw_min_window_coverage is None
        else raw_min_window_coverage
    )
    if not _is_unit_interval(coverage):
        violations.append(_violation("min-window-coverage", 4))
    if constraint.max_risk_score < 1:
        violations.append(_violation("max-risk-score", 5))
    if len(constraint.blackout_windows) > MAX_BLACKOUT_WINDOWS:
        violations.append(_violation("blackout-window-limit", 2))
    return tuple(violations)


def validate_plan_constraints(
    plan_input: SimulationPlanInput,
    mode: PlanMode | str,
) -> Result[ConstraintEnvelope]:
    """Normalize the input constraint, validate it, then apply ``mode``."""
    target_count = len(plan_input.draft.target_ids)
    raw = plan_input.constraints
    if raw is not None:
        normalized = normalize_constraint(raw)
        violations = validate_constraint(
            normalized,
            raw_min_window_coverage=_as_float(raw.min_window_coverage),
        )
        if violations:
            reasons = ",".join(violation.reason for violation in violations)
            return Result.failure(
                ConstraintViolationError(
                    f"constraint validation failed: {reasons}",
                    violations=violations,
                )
            )
    return Result.success(build_constraint_envelope(raw, mode, target_count))


def merge_constraints(
    left: SimulationConstraint,
    right: SimulationConstraint,
) -> SimulationConstraint:
    """Combine tenant-wide and plan-specific policy.

    Capacity fields take the larger value, coverage and risk ceilings the smaller, and
    blackout windows are unioned in order of first appearance.
    """
    a = normalize_constraint(left)
    b = normalize_constraint(right)
    blackout: list[SimulationWindow] = []
    for window in (*a.blackout_windows, *b.blackout_windows):
        if window not in blackout:
            blackout.append(window)
    return SimulationConstraint(
        max_signals_per_wave=max(a.max_signals_per_wave, b.max_signals_per_wave),
        max_parallel_nodes=max(a.max_parallel_nodes, b.max_parallel_nodes),
        max_risk_score=min(a.max_risk_score, b.max_risk_score),
        min_window_coverage=min(a.min_window_coverage, b.min_window_coverage),
        blackout_windows=tuple(blackout),
    )


def coerce_mode(value: PlanMode | str) -> PlanMode:
    if isinstance(value, PlanMode):
        return value
    if isinstance(value, str):
        try:
            return PlanMode(value.strip().lower())
        except ValueError:
            pass
    allowed = ", ".join(mode.value for mode in PlanMode)
    raise ValueError(f"mode must be one of: {allowed}")


def _normalize_window(window: SimulationWindow) -> SimulationWindow:
    return SimulationWindow(
        wave_id=window.wave_id,
        start_utc=_floor_count(window.start_utc),
        end_utc=_floor_count(window.end_utc),
        expected_signals=_floor_count(window.expected_signals),
        target_count=_floor_count(window.target_count),
        window_index=_floor_count(window.window_index),
    )


def _violation(reason: str, severity: int) -> SimulationPolicyViolation:
    return SimulationPolicyViolation(reason=reason, node_id="constraints", severity=severity)


def _as_float(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return math.nan
    return float(value)


def _floor_count(value: object) -> int:
    number = _as_float(value)
    if not math.isfinite(number):
        return 0
    return max(0, math.floor(number))


def _clamp_unit(value: object) -> float:
    number = _as_float(value)
    if math.isnan(number):
        return 0.0
    return float(min(1.0, max(0.0, number)))


def _is_unit_interval(value: float) -> bool:
    return math.isfinite(value) and 0.0 <= value <= 1.0


def _round(value: float, rounding: Rounding) -> int:
    return math.ceil(value) if rounding == "ceil" else math.floor(value)


__all__ = [
    "MODE_ADJUSTMENTS",
    "ConstraintEnvelope",
    "ModeAdjustment",
    "build_constraint_envelope",
    "coerce_mode",
    "default_constraint",
    "merge_constraints",
    "normalize_constraint",
    "validate_constraint",
    "validate_plan_constraints",
]
