"""Error taxonomy and the ``Result`` carrier returned by every fallible operation."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from recovery_sim.domain.models import SimulationPolicyViolation

T = TypeVar("T")
U = TypeVar("U")


class SimulationError(Exception):
    """Base class for engine failures carried inside a :class:`Result`."""

    code = "simulation-error"

    def __init__(
        self,
        message: str,
        *,
        violations: Iterable[SimulationPolicyViolation] = (),
    ) -> None:
        super().__init__(message)
        self.message = message
        self.violations: tuple[SimulationPolicyViolation, ...] = tuple(violations)

    @property
    def reasons(self) -> tuple[str, ...]:
        return tuple(violation.reason for violation in self.violations)

    def to_dict(self) -> dict[str, object]:
        return {
            "code": self.code,
            "message": self.message,
            "violations": [violation.to_dict() for violation in self.violations],
        }


class ConstraintViolationError(SimulationError):
    """Constraint validation failed; planning must not proceed."""

    code = "constraint-violation"


class RiskRejectedError(SimulationError):
    """The risk gate refused to admit the plan."""

    code = "risk-rejected"


class CycleDetectedError(SimulationError, ValueError):
    """The dependency graph contains at least one cycle."""

    code = "cycle-detected"

    def __init__(self, cycles: Iterable[Sequence[str]]) -> None:
        normalized: tuple[tuple[str, ...], ...] = tuple(tuple(path) for path in cycles)
        self.cycles = normalized
        if not normalized:
            message = "dependency graph contains at least one cycle"
        else:
            preview = ", ".join(" -> ".join(path) for path in normalized[:3])
            suffix = "..." if len(normalized) > 3 else ""
            message = f"dependency graph contains cycle(s): {preview}{suffix}"
        super().__init__(message)


class RunExistsError(SimulationError):
    """A workspace run is already active for the run id."""

    code = "run-exists"


class RunMissingError(SimulationError):
    """No workspace run is active for the run id."""

    code = "run-missing"


class EmptyPlanError(SimulationError):
    """A plan with zero waves cannot be scored."""

    code = "empty-plan"


@dataclass(frozen=True, slots=True)
class Result(Generic[T]):
    """Either a value or a :class:`SimulationError`, never both."""

    value: T | None = None
    error: SimulationError | None = None

    def __post_init__(self) -> None:
        if self.error is not None and self.value is not None:
            raise ValueError("Result cannot carry both a value and an error")

    @classmethod
    def success(cls, value: T) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: SimulationError) -> Result[T]:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    def map(self, func: Callable[[T], U]) -> Result[U]:
        if self.error is not None:
            return Result(error=self.error)
        return Result(value=func(self.value))  # type: ignore[arg-type]


__all__ = [
    "ConstraintViolationError",
    "CycleDetectedError",
    "EmptyPlanError",
    "Result",
    "RiskRejectedError",
    "RunExistsError",
    "RunMissingError",
    "SimulationError",
]
