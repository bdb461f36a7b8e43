"""Scoring surfaces over built plans: stability matrix, summary metrics and heat map."""

from __future__ import annotations

from recovery_sim.analytics.plan_analytics import (
    HeatMapPoint,
    PlanSummaryMetrics,
    derive_heat_map,
    evaluate_constraint_fit,
    summarize_plan,
)
from recovery_sim.analytics.stability import (
    StabilityEnvelope,
    build_stability_envelope,
    build_stability_matrix,
    grade_for,
)

__all__ = [
    "HeatMapPoint",
    "PlanSummaryMetrics",
    "StabilityEnvelope",
    "build_stability_envelope",
    "build_stability_matrix",
    "derive_heat_map",
    "evaluate_constraint_fit",
    "grade_for",
    "summarize_plan",
]
