"""Domain layer: plain-data models and the engine error taxonomy."""

from recovery_sim.domain.errors import (
    ConstraintViolationError,
    CycleDetectedError,
    EmptyPlanError,
    Result,
    RiskRejectedError,
    RunExistsError,
    RunMissingError,
    SimulationError,
)
from recovery_sim.domain.models import (
    NodeOwner,
    PlanMetrics,
    PlanMode,
    ReadinessDraft,
    ReadinessPolicy,
    ReadinessSignal,
    RiskProfile,
    SignalSeverity,
    SimulationAllocation,
    SimulationConstraint,
    SimulationDependency,
    SimulationGraph,
    SimulationNode,
    SimulationPlan,
    SimulationPlanEnvelope,
    SimulationPlanInput,
    SimulationPolicyViolation,
    SimulationStatus,
    SimulationSummary,
    SimulationWave,
    SimulationWindow,
    SimulationWorkspaceSnapshot,
    StabilityCell,
    StabilityMatrix,
)

__all__ = [
    "ConstraintViolationError",
    "CycleDetectedError",
    "EmptyPlanError",
    "NodeOwner",
    "PlanMetrics",
    "PlanMode",
    "ReadinessDraft",
    "ReadinessPolicy",
    "ReadinessSignal",
    "Result",
    "RiskProfile",
    "RiskRejectedError",
    "RunExistsError",
    "RunMissingError",
    "SignalSeverity",
    "SimulationAllocation",
    "SimulationConstraint",
    "SimulationDependency",
    "SimulationError",
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
]
