"""Stateful control surface: the run-scoped simulation workspace."""

from recovery_sim.control_plane.workspace import (
    InMemoryWorkspaceStore,
    RunState,
    SimulationWorkspace,
    WorkspaceStore,
    fold_snapshot_projection,
)

__all__ = [
    "InMemoryWorkspaceStore",
    "RunState",
    "SimulationWorkspace",
    "WorkspaceStore",
    "fold_snapshot_projection",
]
