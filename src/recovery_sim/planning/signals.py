"""Minute-of-hour signal bucketing and severity-weighted density projection."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import UTC

from recovery_sim.constants import MINUTES_PER_HOUR, SIGNAL_DENSITY_WEIGHT
from recovery_sim.domain.models import ReadinessSignal, SignalSeverity


def signal_density_weight(severity: SignalSeverity | str) -> int:
    return SIGNAL_DENSITY_WEIGHT.get(SignalSeverity(severity).value, 1)


def build_signal_buckets(
    signals: Sequence[ReadinessSignal],
) -> dict[int, tuple[ReadinessSignal, ...]]:
    """Group signals by the minute-of-hour they were captured in, in minute order."""
    grouped: dict[int, list[ReadinessSignal]] = {}
    for signal in signals:
        grouped.setdefault(signal.captured_at.astimezone(UTC).minute, []).append(signal)
    return {minute: tuple(grouped[minute]) for minute in sorted(grouped)}


def project_signals(
    buckets: Mapping[int, Sequence[ReadinessSignal]],
) -> tuple[float, ...]:
    """
    Project a 60-bucket density histogram.

    A bucket holding signals scores ``count + mean(severity weight)``; empty minutes
    score zero.
    """
    histogram = [0.0] * MINUTES_PER_HOUR
    for minute, bucket in buckets.items():
        if not bucket or not 0 <= minute < MINUTES_PER_HOUR:
            continue
        weights = [signal_density_weight(signal.severity) for signal in bucket]
        histogram[minute] = round(len(bucket) + sum(weights) / len(weights), 4)
    return tuple(histogram)


__all__ = ["build_signal_buckets", "project_signals", "signal_density_weight"]
