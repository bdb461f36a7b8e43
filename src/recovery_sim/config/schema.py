"""
recovery-readiness-sim: configuration schema and validation.

File: src/recovery_sim/config/schema.py
Last updated: 2026-10-19

Purpose
- Define authoritative configuration defaults and strict validation rules.
- Project validated config into the typed ``EngineSettings`` used by callers.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Keep the optional ``[policy]`` section all-or-nothing for its required limits.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, NotRequired, TypedDict

from recovery_sim.constants import MAX_WORKSPACE_STEPS
from recovery_sim.domain.models import PlanMode, SimulationConstraint

LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")

# Config paths that should be normalized relative to config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (("observability", "log_dir"),)

# Policy keys that may be supplied through the environment even when the section is absent.
POLICY_BINDINGS: Final[tuple[tuple[str, type], ...]] = (
    ("max_signals_per_wave", int),
    ("max_parallel_nodes", int),
    ("max_risk_score", int),
    ("min_window_coverage", float),
)


class EngineSection(TypedDict):
    mode: Literal["strict", "balanced", "aggressive"]
    epoch_ms: int


class WorkspaceSection(TypedDict):
    max_steps: int


class PolicySection(TypedDict):
    max_signals_per_wave: int
    max_parallel_nodes: int
    max_risk_score: int
    min_window_coverage: NotRequired[float]


class ObservabilitySection(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_dir: str
    log_to_stdout: bool


class SimulatorConfig(TypedDict):
    engine: EngineSection
    workspace: WorkspaceSection
    observability: ObservabilitySection
    policy: NotRequired[PolicySection]


DEFAULT_CONFIG: Final[SimulatorConfig] = {
    "engine": {
        "mode": "balanced",
        "epoch_ms": 0,
    },
    "workspace": {
        "max_steps": MAX_WORKSPACE_STEPS,
    },
    "observability": {
        "log_level": "INFO",
        "log_dir": "logs",
        "log_to_stdout": True,
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


@dataclass(frozen=True, slots=True)
class EngineSettings:
    """Typed view of a validated config mapping."""

    mode: PlanMode = PlanMode.BALANCED
    epoch_ms: int = 0
    max_steps: int = MAX_WORKSPACE_STEPS
    tenant_constraint: SimulationConstraint | None = None
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_to_stdout: bool = True

    @classmethod
    def from_config(cls, config: Mapping[str, object]) -> EngineSettings:
        validated = assert_valid_config(config)
        engine = validated["engine"]
        observability = validated["observability"]
        policy = validated.get("policy")
        tenant_constraint = None
        if policy is not None:
            tenant_constraint = SimulationConstraint(
                max_signals_per_wave=policy["max_signals_per_wave"],
                max_parallel_nodes=policy["max_parallel_nodes"],
                max_risk_score=policy["max_risk_score"],
                min_window_coverage=policy.get("min_window_coverage", 0.0),
            )
        return cls(
            mode=PlanMode(engine["mode"]),
            epoch_ms=engine["epoch_ms"],
            max_steps=validated["workspace"]["max_steps"],
            tenant_constraint=tenant_constraint,
            log_level=observability["log_level"],
            log_dir=observability["log_dir"],
            log_to_stdout=observability["log_to_stdout"],
        )


def default_config() -> SimulatorConfig:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    _reject_unknown_keys(root, {"engine", "workspace", "policy", "observability"}, "", issues)
    _require_keys(root, {"engine", "workspace", "observability"}, "", issues)

    out: dict[str, Any] = {}
    for key, validator in (
        ("engine", _validate_engine),
        ("workspace", _validate_workspace),
        ("policy", _validate_policy),
        ("observability", _validate_observability),
    ):
        raw = root.get(key)
        if raw is None:
            continue
        section = _as_object(raw, key, issues)
        if section is None:
            continue
        out[key] = validator(section, key, issues)

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=out, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _validate_engine(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"mode", "epoch_ms"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "mode" in payload:
        parsed_mode = _as_enum(
            payload["mode"],
            _join(path, "mode"),
            issues,
            allowed_values=tuple(mode.value for mode in PlanMode),
        )
        if parsed_mode is not None:
            out["mode"] = parsed_mode
    if "epoch_ms" in payload:
        parsed_epoch = _as_int(payload["epoch_ms"], _join(path, "epoch_ms"), issues, minimum=0)
        if parsed_epoch is not None:
            out["epoch_ms"] = parsed_epoch
    return out


def _validate_workspace(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"max_steps"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "max_steps" in payload:
        parsed_steps = _as_int(
            payload["max_steps"],
            _join(path, "max_steps"),
            issues,
            minimum=1,
            maximum=MAX_WORKSPACE_STEPS,
        )
        if parsed_steps is not None:
            out["max_steps"] = parsed_steps
    return out


def _validate_policy(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {name for name, _ in POLICY_BINDINGS}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed - {"min_window_coverage"}, path, issues)

    out: dict[str, Any] = {}
    for key in ("max_signals_per_wave", "max_parallel_nodes", "max_risk_score"):
        if key in payload:
            parsed = _as_int(payload[key], _join(path, key), issues, minimum=1)
            if parsed is not None:
                out[key] = parsed
    if "min_window_coverage" in payload:
        parsed_coverage = _as_float(
            payload["min_window_coverage"],
            _join(path, "min_window_coverage"),
            issues,
            minimum=0.0,
            maximum=1.0,
        )
        if parsed_coverage is not None:
            out["min_window_coverage"] = parsed_coverage
    return out


def _validate_observability(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"log_level", "log_dir", "log_to_stdout"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "log_level" in payload:
        parsed_log_level = _as_enum(
            payload["log_level"],
            _join(path, "log_level"),
            issues,
            allowed_values=LOG_LEVELS,
        )
        if parsed_log_level is not None:
            out["log_level"] = parsed_log_level
    if "log_dir" in payload:
        parsed_log_dir = _as_path_text(payload["log_dir"], _join(path, "log_dir"), issues)
        if parsed_log_dir is not None:
            out["log_dir"] = parsed_log_dir
    if "log_to_stdout" in payload:
        parsed_stdout = _as_bool(payload["log_to_stdout"], _join(path, "log_to_stdout"), issues)
        if parsed_stdout is not None:
            out["log_to_stdout"] = parsed_stdout
    return out


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    if maximum is not None and value > maximum:
        issues.add(path, f"must be <= {maximum}")
        return None
    return value


def _as_float(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: float | None = None,
    maximum: float | None = None,
) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    if minimum is not None and parsed < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    if maximum is not None and parsed > maximum:
        issues.add(path, f"must be <= {maximum}")
        return None
    return parsed


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            nested = existing if isinstance(existing, dict) else {}
            _merge_into(nested, value)
            target[key] = nested
        else:
            target[key] = copy.deepcopy(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(value):
        item = value[key]
        out[key] = _deep_copy_mapping(item) if isinstance(item, Mapping) else copy.deepcopy(item)
    return out


__all__ = [
    "DEFAULT_CONFIG",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "POLICY_BINDINGS",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "EngineSettings",
    "SimulatorConfig",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "validate_config",
]
