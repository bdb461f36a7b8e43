"""Dataclass domain models for graphs, constraints, plans and run snapshots."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import UTC, datetime
from enum import Enum, StrEnum
from types import MappingProxyType
from typing import NoReturn

from recovery_sim.constants import CRITICALITY_MAX, CRITICALITY_MIN

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]


class NodeOwner(StrEnum):
    SRE = "sre"
    PLATFORM = "platform"
    CORE = "core"
    SECURITY = "security"


class SignalSeverity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SimulationStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    BLOCKED = "blocked"


class RiskProfile(StrEnum):
    GREEN = "green"
    AMBER = "amber"
    RED = "red"


class PlanMode(StrEnum):
    STRICT = "strict"
    BALANCED = "balanced"
    AGGRESSIVE = "aggressive"


class PlainDataModel:
    """Mixin for JSON-friendly dict serialization of frozen dataclasses."""

    __slots__ = ()

    def to_dict(self) -> dict[str, JSONValue]:
        serialized = _serialize_value(self)
        if not isinstance(serialized, dict):
            _fail(self.__class__.__name__, "serialized model must be an object")
        return serialized


def _serialize_value(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, Enum):
        return _serialize_value(value.value)
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, datetime):
        normalized = value if value.tzinfo is not None else value.replace(tzinfo=UTC)
        return normalized.astimezone(UTC).isoformat().replace("+00:00", "Z")
    if is_dataclass(value) and not isinstance(value, type):
        return {item.name: _serialize_value(getattr(value, item.name)) for item in fields(value)}
    if isinstance(value, Mapping):
        return {str(key): _serialize_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize_value(item) for item in value]
    raise ValueError(f"unsupported value type: {type(value).__name__}")


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def _require_str(value: object, path: str) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    if not value.strip():
        _fail(path, "must not be empty")
    return value


def _require_number(value: object, path: str, *, minimum: float | None = None) -> float | int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        _fail(path, f"expected number, got {type(value).__name__}")
    if isinstance(value, float) and not math.isfinite(value):
        _fail(path, "must be finite")
    if minimum is not None and value < minimum:
        _fail(path, f"must be >= {minimum}")
    return value


def _coerce_enum(enum_type: type[StrEnum], value: object, path: str) -> StrEnum:
    if isinstance(value, enum_type):
        return value
    if isinstance(value, str):
        try:
            return enum_type(value.strip().lower())
        except ValueError:
            pass
    allowed = ", ".join(member.value for member in enum_type)
    _fail(path, f"must be one of: {allowed}")


def _pick(payload: Mapping[str, object], *keys: str, default: object = None) -> object:
    for key in keys:
        if key in payload:
            return payload[key]
    return default


def _sequence(value: object, path: str) -> Sequence[object]:
    if value is None:
        return ()
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes, bytearray)):
        _fail(path, "expected a sequence")
    return value


def _mapping(value: object, path: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")
    return value


def parse_timestamp(value: object, path: str = "timestamp") -> datetime:
    """Parse an ISO-8601 string (``Z`` suffix allowed) or pass through a datetime."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            _fail(path, f"invalid ISO-8601 timestamp {value!r}")
    else:
        _fail(path, f"expected timestamp, got {type(value).__name__}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@dataclass(frozen=True, slots=True)
class SimulationNode(PlainDataModel):
    """A recovery target supplied by the caller."""

    id: str
    owner: NodeOwner
    criticality: int
    expected_signals_per_minute: float = 0.0
    region: str | None = None

    def __post_init__(self) -> None:
        _require_str(self.id, "SimulationNode.id")
        object.__setattr__(
            self, "owner", _coerce_enum(NodeOwner, self.owner, "SimulationNode.owner")
        )
        if isinstance(self.criticality, bool) or not isinstance(self.criticality, int):
            _fail("SimulationNode.criticality", "expected integer")
        if not CRITICALITY_MIN <= self.criticality <= CRITICALITY_MAX:
            _fail(
                "SimulationNode.criticality",
                f"must be within [{CRITICALITY_MIN}, {CRITICALITY_MAX}]",
            )
        _require_number(
            self.expected_signals_per_minute,
            "SimulationNode.expected_signals_per_minute",
            minimum=0,
        )

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> SimulationNode:
        data = _mapping(payload, "SimulationNode")
        return cls(
            id=_require_str(data.get("id"), "SimulationNode.id"),
            owner=data.get("owner"),  # type: ignore[arg-type]
            criticality=data.get("criticality"),  # type: ignore[arg-type]
            expected_signals_per_minute=_pick(
                data, "expected_signals_per_minute", "expectedSignalsPerMinute", default=0.0
            ),  # type: ignore[arg-type]
            region=_pick(data, "region"),  # type: ignore[arg-type]
        )


@dataclass(frozen=True, slots=True)
class SimulationDependency(PlainDataModel):
    """Directed edge ``from_id -> to_id`` over node ids."""

    from_id: str
    to_id: str
    reason: str = ""

    def __post_init__(self) -> None:
        _require_str(self.from_id, "SimulationDependency.from_id")
        _require_str(self.to_id, "SimulationDependency.to_id")

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> SimulationDependency:
        data = _mapping(payload, "SimulationDependency")
        return cls(
            from_id=_pick(data, "from_id", "from"),  # type: ignore[arg-type]
            to_id=_pick(data, "to_id", "to"),  # type: ignore[arg-type]
            reason=str(_pick(data, "reason", default="")),
        )


@dataclass(frozen=True, slots=True)
class SimulationGraph(PlainDataModel):
    nodes: tuple[SimulationNode, ...] = ()
    dependencies: tuple[SimulationDependency, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", tuple(self.nodes))
        object.__setattr__(self, "dependencies", tuple(self.dependencies))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> SimulationGraph:
        data = _mapping(payload, "SimulationGraph")
        nodes = _sequence(data.get("nodes"), "SimulationGraph.nodes")
        dependencies = _sequence(data.get("dependencies"), "SimulationGraph.dependencies")
        return cls(
            nodes=tuple(SimulationNode.from_mapping(item) for item in nodes),  # type: ignore[arg-type]
            dependencies=tuple(
                SimulationDependency.from_mapping(item)  # type: ignore[arg-type]
                for item in dependencies
            ),
        )


@dataclass(frozen=True, slots=True)
class SimulationWindow(PlainDataModel):
    """Time slot for one wave; times are millisecond offsets from a caller epoch."""

    wave_id: str
    start_utc: int
    end_utc: int
    expected_signals: int
    target_count: int
    window_index: int

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> SimulationWindow:
        data = _mapping(payload, "SimulationWindow")
        return cls(
            wave_id=str(_pick(data, "wave_id", "waveId", default="")),
            start_utc=_pick(data, "start_utc", "startUtc", default=0),  # type: ignore[arg-type]
            end_utc=_pick(data, "end_utc", "endUtc", default=0),  # type: ignore[arg-type]
            expected_signals=_pick(
                data, "expected_signals", "expectedSignals", default=0
            ),  # type: ignore[arg-type]
            target_count=_pick(data, "target_count", "targetCount", default=0),  # type: ignore[arg-type]
            window_index=_pick(data, "window_index", "windowIndex", default=0),  # type: ignore[arg-type]
        )


@dataclass(frozen=True, slots=True)
class SimulationConstraint(PlainDataModel):
    """Capacity and risk policy for one planning request.

    Raw caller values may be fractional or negative; ``normalize_constraint`` produces
    the canonical integer form.
    """

    max_signals_per_wave: int
    max_parallel_nodes: int
    max_risk_score: int
    min_window_coverage: float = 0.0
    blackout_windows: tuple[SimulationWindow, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "blackout_windows", tuple(self.blackout_windows))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> SimulationConstraint:
        data = _mapping(payload, "SimulationConstraint")
        windows = _sequence(
            _pick(data, "blackout_windows", "blackoutWindows"),
            "SimulationConstraint.blackout_windows",
        )
        return cls(
            max_signals_per_wave=_pick(
                data, "max_signals_per_wave", "maxSignalsPerWave", default=0
            ),  # type: ignore[arg-type]
            max_parallel_nodes=_pick(
                data, "max_parallel_nodes", "maxParallelNodes", default=0
            ),  # type: ignore[arg-type]
            max_risk_score=_pick(data, "max_risk_score", "maxRiskScore", default=0),  # type: ignore[arg-type]
            min_window_coverage=_pick(
                data, "min_window_coverage", "minWindowCoverage", default=0.0
            ),  # type: ignore[arg-type]
            blackout_windows=tuple(
                SimulationWindow.from_mapping(item)  # type: ignore[arg-type]
                for item in windows
            ),
        )


@dataclass(frozen=True, slots=True)
class SimulationPolicyViolation(PlainDataModel):
    """Diagnostic violation; always carried as data, never raised."""

    reason: str
    node_id: str
    severity: int


@dataclass(frozen=True, slots=True)
class SimulationWave(PlainDataModel):
    id: str
    sequence: tuple[str, ...]
    ready_at: int
    parallelism: int
    signal_count: float
    window: SimulationWindow


@dataclass(frozen=True, slots=True)
class SimulationAllocation(PlainDataModel):
    wave_id: str
    node_ids: tuple[str, ...]
    owner_mix: Mapping[str, int]
    expected_signals: float
    coverage_ratio: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "owner_mix", MappingProxyType(dict(self.owner_mix)))


@dataclass(frozen=True, slots=True)
class SimulationSummary(PlainDataModel):
    run_id: str
    status: SimulationStatus
    coverage_ratio: float
    signal_coverage: float
    node_coverage: float
    risk_profile: RiskProfile
    constraints: SimulationConstraint
    waves: tuple[SimulationWave, ...]
    allocations: tuple[SimulationAllocation, ...]
    policy_violations: tuple[SimulationPolicyViolation, ...] = ()


@dataclass(frozen=True, slots=True)
class SimulationPlan(PlainDataModel):
    """Top-level planning artifact; read-only once built."""

    run_id: str
    tenant: str
    seed: int
    created_at: int
    waves: tuple[SimulationWave, ...]
    projected_signals: tuple[float, ...]
    summary: SimulationSummary

    @property
    def total_signals(self) -> float:
        return sum(wave.signal_count for wave in self.waves)


@dataclass(frozen=True, slots=True)
class SimulationWorkspaceSnapshot(PlainDataModel):
    run_id: str
    executed_waves: int
    status: SimulationStatus
    completed_signals: float
    projected_signal_coverage: float
    stopped_at: int | None = None


@dataclass(frozen=True, slots=True)
class StabilityCell(PlainDataModel):
    dimension: str
    value: float
    weight: float
    reason: str


@dataclass(frozen=True, slots=True)
class StabilityMatrix(PlainDataModel):
    """Weighted quality index over a summary; higher ``stability_risk_score`` is better."""

    run_id: str
    cells: tuple[StabilityCell, ...]
    stability_risk_score: float
    signal_coverage_score: float
    operator_mix_score: float
    violations: tuple[SimulationPolicyViolation, ...] = ()

    def cell(self, dimension: str) -> StabilityCell:
        for candidate in self.cells:
            if candidate.dimension == dimension:
                return candidate
        raise KeyError(f"unknown stability dimension: {dimension}")


# Collaborator shapes supplied by the readiness-policy provider. Only the fields the
# engine reads are modelled.


@dataclass(frozen=True, slots=True)
class ReadinessSignal(PlainDataModel):
    signal_id: str
    target_id: str
    source: str
    severity: SignalSeverity
    captured_at: datetime

    def __post_init__(self) -> None:
        _require_str(self.signal_id, "ReadinessSignal.signal_id")
        object.__setattr__(
            self,
            "severity",
            _coerce_enum(SignalSeverity, self.severity, "ReadinessSignal.severity"),
        )
        object.__setattr__(
            self,
            "captured_at",
            parse_timestamp(self.captured_at, "ReadinessSignal.captured_at"),
        )

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> ReadinessSignal:
        data = _mapping(payload, "ReadinessSignal")
        return cls(
            signal_id=_pick(data, "signal_id", "signalId"),  # type: ignore[arg-type]
            target_id=str(_pick(data, "target_id", "targetId", default="")),
            source=str(_pick(data, "source", default="")),
            severity=_pick(data, "severity"),  # type: ignore[arg-type]
            captured_at=_pick(data, "captured_at", "capturedAt"),  # type: ignore[arg-type]
        )


@dataclass(frozen=True, slots=True)
class ReadinessDraft(PlainDataModel):
    target_ids: tuple[str, ...] = ()
    title: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "target_ids", tuple(self.target_ids))


@dataclass(frozen=True, slots=True)
class ReadinessPolicy(PlainDataModel):
    policy_id: str
    name: str = ""


@dataclass(frozen=True, slots=True)
class SimulationPlanInput(PlainDataModel):
    tenant: str
    run_id: str
    draft: ReadinessDraft
    graph: SimulationGraph
    policy: ReadinessPolicy
    signals: tuple[ReadinessSignal, ...] = ()
    constraints: SimulationConstraint | None = None

    def __post_init__(self) -> None:
        _require_str(self.tenant, "SimulationPlanInput.tenant")
        _require_str(self.run_id, "SimulationPlanInput.run_id")
        object.__setattr__(self, "signals", tuple(self.signals))


@dataclass(frozen=True, slots=True)
class PlanMetrics(PlainDataModel):
    run_id: str
    waves_executed: int
    waves_total: int
    execution_rate: float
    latency_ms: int
    owner_coverage: float
    risk_signal_count: int


@dataclass(frozen=True, slots=True)
class SimulationPlanEnvelope(PlainDataModel):
    plan: SimulationPlan
    metrics: PlanMetrics
    notes: tuple[str, ...] = field(default_factory=tuple)


__all__ = [
    "JSONScalar",
    "JSONValue",
    "NodeOwner",
    "PlainDataModel",
    "PlanMetrics",
    "PlanMode",
    "ReadinessDraft",
    "ReadinessPolicy",
    "ReadinessSignal",
    "RiskProfile",
    "SignalSeverity",
    "SimulationAllocation",
    "SimulationConstraint",
    "SimulationDependency",
    "SimulationGraph",
    "SimulationNode",
    "SimulationPlan",
    "SimulationPlanEnvelope",
    "SimulationPlanInput",
    "SimulationPolicyViolation",
    "SimulationStatus",
    "SimulationSummary",
    "SimulationWave",
    "SimulationWindow",
    "SimulationWorkspaceSnapshot",
    "StabilityCell",
    "StabilityMatrix",
    "parse_timestamp",
]
