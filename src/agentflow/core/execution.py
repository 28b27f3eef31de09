"""Runtime state of one workflow run and of each of its steps."""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from agentflow.core.databag import DataBag
from agentflow.core.definition import WorkflowDefinition


class StepState(str, Enum):
    PENDING = "pending"
    READY = "ready"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (StepState.SUCCEEDED, StepState.SKIPPED, StepState.FAILED)


class RunStatus(str, Enum):
    INITIALIZING = "initializing"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    DEADLOCKED = "deadlocked"


_TRANSITIONS = {
    StepState.PENDING: {StepState.READY},
    StepState.READY: {StepState.RUNNING, StepState.SKIPPED, StepState.FAILED},
    StepState.RUNNING: {StepState.SUCCEEDED, StepState.SKIPPED, StepState.FAILED},
}


class IllegalTransition(RuntimeError):
    pass


@dataclass
class StepExecution:
    step_id: str
    state: StepState = StepState.PENDING
    attempts: int = 0
    result: dict | None = None
    error: BaseException | None = None
    started_at: float | None = None
    ended_at: float | None = None

    def transition(self, new_state: StepState):
        if new_state not in _TRANSITIONS.get(self.state, set()):
            raise IllegalTransition(
                f"Step '{self.step_id}' cannot move from {self.state.value} to {new_state.value}"
            )
        if new_state == StepState.RUNNING:
            self.started_at = time.time()
        if new_state.terminal:
            self.ended_at = time.time()
        self.state = new_state

    @property
    def duration(self) -> float:
        if self.started_at is None:
            return 0.0
        return (self.ended_at or time.time()) - self.started_at

    def to_dict(self) -> dict:
        return {
            "step_id": self.step_id,
            "state": self.state.value,
            "attempts": self.attempts,
            "error": str(self.error) if self.error is not None else None,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "duration_ms": self.duration * 1000,
        }


@dataclass
class WorkflowExecution:
    """Owns the data bag and step records for exactly one run."""

    definition: WorkflowDefinition
    bag: DataBag
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: RunStatus = RunStatus.INITIALIZING
    started_at: float = field(default_factory=time.time)
    ended_at: float | None = None
    steps: dict[str, StepExecution] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @classmethod
    def start(
        cls,
        definition: WorkflowDefinition,
        inputs: dict[str, Any] | None = None,
        run_id: str | None = None,
    ) -> "WorkflowExecution":
        execution = cls(definition=definition, bag=DataBag(inputs))
        if run_id:
            execution.run_id = run_id
        execution.steps = {sid: StepExecution(step_id=sid) for sid in definition.step_ids}
        return execution

    def step(self, step_id: str) -> StepExecution:
        return self.steps[step_id]

    def set_state(self, step_id: str, state: StepState):
        with self._lock:
            self.steps[step_id].transition(state)

    def record_error(self, step_id: str, error: BaseException):
        with self._lock:
            self.steps[step_id].error = error
            self.errors[step_id] = f"{type(error).__name__}: {error}"

    def ids_in(self, *states: StepState) -> list[str]:
        with self._lock:
            return [sid for sid, se in self.steps.items() if se.state in states]

    @property
    def finished(self) -> bool:
        with self._lock:
            return all(se.state.terminal for se in self.steps.values())

    def elapsed(self) -> float:
        return (self.ended_at or time.time()) - self.started_at

    def status_snapshot(self) -> dict:
        """Point-in-time view for polling UIs."""
        with self._lock:
            steps = {sid: se.to_dict() for sid, se in self.steps.items()}
            errors = dict(self.errors)
            status = self.status.value
        return {
            "run_id": self.run_id,
            "workflow": self.definition.name,
            "version": self.definition.version,
            "status": status,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "elapsed": self.elapsed(),
            "steps": steps,
            "produced_keys": sorted(self.bag.produced_keys()),
            "errors": errors,
        }
