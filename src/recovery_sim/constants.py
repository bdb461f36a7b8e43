"""Stable constants shared across the simulation planes."""

from __future__ import annotations

from typing import Final

# Owner buckets, in partition order.
OWNERS: Final[tuple[str, ...]] = ("sre", "platform", "core", "security")

CRITICALITY_MIN: Final[int] = 1
CRITICALITY_MAX: Final[int] = 5

# Severity weights for the 60-minute signal density histogram.
SIGNAL_DENSITY_WEIGHT: Final[dict[str, int]] = {
    "low": 1,
    "medium": 2,
    "high": 3,
    "critical": 4,
}

# Severity weights for the risk gate budget. Unlisted severities weigh 1.
RISK_BUDGET_WEIGHT: Final[dict[str, int]] = {
    "critical": 4,
    "high": 2,
}
RISK_BUDGET_DEFAULT_WEIGHT: Final[int] = 1

# Window packing.
MAX_WINDOWS: Final[int] = 6
WINDOW_SPAN_MS: Final[int] = 60_000
MINUTES_PER_HOUR: Final[int] = 60
MAX_BLACKOUT_WINDOWS: Final[int] = 2

# Default constraint synthesis.
DEFAULT_MIN_WINDOW_COVERAGE: Final[float] = 0.2
DEFAULT_MAX_RISK_SCORE: Final[int] = 24
DEFAULT_MAX_PARALLEL_CEILING: Final[int] = 8

# Workspace.
MAX_WORKSPACE_STEPS: Final[int] = 100

# Stability matrix weights.
STABILITY_WEIGHTS: Final[dict[str, float]] = {
    "coverage": 0.35,
    "risk": 0.25,
    "parallelism": 0.2,
    "blackout": 0.2,
}
STABILITY_BLACKOUT_SATURATION: Final[int] = 5

# Plan analytics profile scalars.
RISK_PROFILE_SCALAR: Final[dict[str, float]] = {
    "red": 1.0,
    "amber": 0.55,
    "green": 0.2,
}

__all__ = [
    "CRITICALITY_MAX",
    "CRITICALITY_MIN",
    "DEFAULT_MAX_PARALLEL_CEILING",
    "DEFAULT_MAX_RISK_SCORE",
    "DEFAULT_MIN_WINDOW_COVERAGE",
    "MAX_BLACKOUT_WINDOWS",
    "MAX_WINDOWS",
    "MAX_WORKSPACE_STEPS",
    "MINUTES_PER_HOUR",
    "OWNERS",
    "RISK_BUDGET_DEFAULT_WEIGHT",
    "RISK_BUDGET_WEIGHT",
    "RISK_PROFILE_SCALAR",
    "SIGNAL_DENSITY_WEIGHT",
    "STABILITY_BLACKOUT_SATURATION",
    "STABILITY_WEIGHTS",
    "WINDOW_SPAN_MS",
]
