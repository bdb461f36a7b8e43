"""
Run-scoped execution workspace: a manually advanced step function over a built plan.

Lifecycle per run: ``pending -> running -> complete``; ``cancel`` is reachable from any
state and leaves the run ``blocked``. Nothing here reads a clock or schedules work;
callers drive ``tick`` and must serialize ticks for the same run.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Protocol

import structlog

from recovery_sim.constants import MAX_WORKSPACE_STEPS
from recovery_sim.domain.errors import Result, RunExistsError, RunMissingError
from recovery_sim.domain.models import (
    SimulationPlan,
    SimulationStatus,
    SimulationWorkspaceSnapshot,
)


@dataclass(frozen=True, slots=True)
class RunState:
    """Stored state of one run. Replaced, never mutated, on each transition."""

    plan: SimulationPlan
    executed_waves: int = 0
    event_log: tuple[str, ...] = ("start",)
    stopped_at: int | None = None
    cancelled: bool = False

    @property
    def run_id(self) -> str:
        return self.plan.run_id

    @property
    def wave_count(self) -> int:
        return len(self.plan.waves)

    @property
    def status(self) -> SimulationStatus:
        if self.cancelled:
            return SimulationStatus.BLOCKED
        if self.executed_waves >= self.wave_count:
            return SimulationStatus.COMPLETE
        if self.executed_waves > 0:
            return SimulationStatus.RUNNING
        return SimulationStatus.PENDING


class WorkspaceStore(Protocol):
    """Keyed storage for run states."""

    def get(self, run_id: str) -> RunState | None: ...

    def put(self, state: RunState) -> None: ...

    def delete(self, run_id: str) -> None: ...

    def run_ids(self) -> tuple[str, ...]: ...


class InMemoryWorkspaceStore:
    """Process-local store; one instance per workspace keeps tests isolated."""

    __slots__ = ("_states",)

    def __init__(self) -> None:
        self._states: dict[str, RunState] = {}

    def get(self, run_id: str) -> RunState | None:
        return self._states.get(run_id)

    def put(self, state: RunState) -> None:
        self._states[state.run_id] = state

    def delete(self, run_id: str) -> None:
        self._states.pop(run_id, None)

    def run_ids(self) -> tuple[str, ...]:
        return tuple(self._states)


def fold_snapshot_projection(
    plan: SimulationPlan,
    executed_waves: int,
    *,
    status: SimulationStatus,
    stopped_at: int | None = None,
) -> SimulationWorkspaceSnapshot:
    """Project completed signals over the first ``executed_waves`` waves."""
    executed = min(max(0, executed_waves), len(plan.waves))
    completed = sum(wave.signal_count for wave in plan.waves[:executed])
    total = plan.total_signals
    return SimulationWorkspaceSnapshot(
        run_id=plan.run_id,
        executed_waves=executed,
        status=status,
        completed_signals=completed,
        projected_signal_coverage=completed / total if total > 0 else 0.0,
        stopped_at=stopped_at,
    )


class SimulationWorkspace:
    """Drives plans wave by wave. Every operation returns a :class:`Result`."""

    def __init__(
        self,
        store: WorkspaceStore | None = None,
        *,
        max_steps: int = MAX_WORKSPACE_STEPS,
        logger: Any | None = None,
    ) -> None:
        if max_steps <= 0:
            raise ValueError("max_steps must be > 0")
        self._store: WorkspaceStore = store if store is not None else InMemoryWorkspaceStore()
        self._max_steps = min(max_steps, MAX_WORKSPACE_STEPS)
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def max_steps(self) -> int:
        return self._max_steps

    def start(self, plan: SimulationPlan) -> Result[SimulationWorkspaceSnapshot]:
        if self._store.get(plan.run_id) is not None:
            return Result.failure(RunExistsError(f"run {plan.run_id} already started"))
        state = RunState(plan=plan)
        self._store.put(state)
        self._logger.info("workspace_started", run_id=plan.run_id, waves=state.wave_count)
        return Result.success(self._project(state))

    def tick(self, run_id: str) -> Result[SimulationWorkspaceSnapshot]:
        """Advance one wave.

        Ticks on a finished, cancelled or step-capped run return the current snapshot
        and leave the stored state untouched.
        """
        state = self._store.get(run_id)
        if state is None:
            return _missing(run_id)
        if state.cancelled or state.executed_waves >= state.wave_count:
            return Result.success(self._project(state))
        if state.executed_waves >= self._max_steps:
            self._logger.warning(
                "workspace_step_ceiling",
                run_id=run_id,
                executed_waves=state.executed_waves,
                max_steps=self._max_steps,
            )
            return Result.success(self._project(state))

        executed = state.executed_waves + 1
        state = replace(
            state,
            executed_waves=executed,
            event_log=(*state.event_log, f"tick:{executed}"),
            stopped_at=executed if executed == state.wave_count else state.stopped_at,
        )
        self._store.put(state)
        self._logger.info(
            "workspace_tick",
            run_id=run_id,
            executed_waves=executed,
            waves=state.wave_count,
            status=state.status.value,
        )
        return Result.success(self._project(state))

    def snapshot(self, run_id: str) -> Result[SimulationWorkspaceSnapshot]:
        state = self._store.get(run_id)
        if state is None:
            return _missing(run_id)
        return Result.success(self._project(state))

    def cancel(self, run_id: str) -> Result[SimulationWorkspaceSnapshot]:
        state = self._store.get(run_id)
        if state is None:
            return _missing(run_id)
        state = replace(
            state,
            event_log=(*state.event_log, "cancel"),
            stopped_at=state.executed_waves,
            cancelled=True,
        )
        self._store.put(state)
        self._logger.info(
            "workspace_cancelled", run_id=run_id, executed_waves=state.executed_waves
        )
        return Result.success(self._project(state))

    def journal(self, run_id: str) -> Result[tuple[str, ...]]:
        state = self._store.get(run_id)
        if state is None:
            return _missing(run_id)
        return Result.success(state.event_log)

    def runs(self) -> tuple[str, ...]:
        return self._store.run_ids()

    def release(self, run_id: str) -> Result[str]:
        """Drop a run's state so its id can be started again."""
        if self._store.get(run_id) is None:
            return _missing(run_id)
        self._store.delete(run_id)
        self._logger.info("workspace_released", run_id=run_id)
        return Result.success(run_id)

    def _project(self, state: RunState) -> SimulationWorkspaceSnapshot:
        return fold_snapshot_projection(
            state.plan,
            state.executed_waves,
            status=state.status,
            stopped_at=state.stopped_at,
        )


def _missing(run_id: str) -> Result[Any]:
    return Result.failure(RunMissingError(f"run {run_id} is not tracked"))


__all__ = [
    "InMemoryWorkspaceStore",
    "RunState",
    "SimulationWorkspace",
    "WorkspaceStore",
    "fold_snapshot_projection",
]
