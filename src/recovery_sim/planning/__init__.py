"""
recovery-readiness-sim: planning plane

File: src/recovery_sim/planning/__init__.py

Purpose
- Graph normalization, constraint envelopes, risk admission, wave allocation and plan
  assembly.

Functional requirements
- Must output a deterministic plan for identical inputs.
- Must fail with a typed ``Result`` rather than raising across the package boundary.
"""

from __future__ import annotations

from recovery_sim.planning.allocator import (
    PlannedWave,
    build_allocations,
    build_window_schedule,
    build_windows,
    resolve_window_coverage,
    score_plan_from_allocations,
)
from recovery_sim.planning.constraints import (
    ConstraintEnvelope,
    build_constraint_envelope,
    merge_constraints,
    normalize_constraint,
    validate_plan_constraints,
)
from recovery_sim.planning.graph import (
    DependencyGraph,
    NormalizedGraph,
    normalize_graph,
    partition_by_owner,
    sort_by_criticality,
)
from recovery_sim.planning.plan_engine import build_plan, compute_risk_profile, finalize_metrics
from recovery_sim.planning.risk_gate import RiskGateDecision, evaluate_risk
from recovery_sim.planning.signals import build_signal_buckets, project_signals

__all__ = [
    "ConstraintEnvelope",
    "DependencyGraph",
    "NormalizedGraph",
    "PlannedWave",
    "RiskGateDecision",
    "build_allocations",
    "build_constraint_envelope",
    "build_plan",
    "build_signal_buckets",
    "build_window_schedule",
    "build_windows",
    "compute_risk_profile",
    "evaluate_risk",
    "finalize_metrics",
    "merge_constraints",
    "normalize_constraint",
    "normalize_graph",
    "partition_by_owner",
    "project_signals",
    "resolve_window_coverage",
    "score_plan_from_allocations",
    "sort_by_criticality",
    "validate_plan_constraints",
]
