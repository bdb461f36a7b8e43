"""
recovery-readiness-sim: deterministic recovery readiness simulation engine.

Builds wave-by-wave recovery plans from a dependency graph, a capacity and risk policy
and a stream of readiness signals; scores them; and steps through them in a run-scoped
workspace. The engine performs no I/O of its own.
"""

from recovery_sim.control_plane.workspace import SimulationWorkspace
from recovery_sim.domain.errors import Result, SimulationError
from recovery_sim.pipeline import PipelineContext, PipelineResult, execute_readiness_simulation
from recovery_sim.planning.plan_engine import build_plan

__version__ = "0.1.0"

__all__ = [
    "PipelineContext",
    "PipelineResult",
    "Result",
    "SimulationError",
    "SimulationWorkspace",
    "__version__",
    "build_plan",
    "execute_readiness_simulation",
]
