"""Result data classes for step and workflow execution."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from agentflow.core.execution import RunStatus, StepState


@dataclass
class StepOutcome:
    step_id: str
    agent_name: str
    state: StepState
    outputs: dict[str, Any] = field(default_factory=dict)
    attempts: int = 0
    duration: float = 0.0
    error: str | None = None
    error_type: str | None = None
    run_id: str = ""

    @property
    def success(self) -> bool:
        return self.state in (StepState.SUCCEEDED, StepState.SKIPPED)

    def to_dict(self) -> dict:
        return {
            "step_id": self.step_id,
            "agent_name": self.agent_name,
            "state": self.state.value,
            "outputs": self.outputs,
            "attempts": self.attempts,
            "duration": self.duration,
            "error": self.error,
            "error_type": self.error_type,
        }


@dataclass
class WorkflowResult:
    run_id: str
    workflow: str
    status: RunStatus
    step_results: dict[str, StepOutcome] = field(default_factory=dict)
    outputs: dict[str, Any] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    error: Exception | None = None
    blocked: dict[str, str] = field(default_factory=dict)
    execution_time_ms: float = 0.0
    steps_executed: int = 0

    @property
    def success(self) -> bool:
        return (
            self.status == RunStatus.COMPLETED
            and self.error is None
            and all(o.success for o in self.step_results.values())
        )

    def raise_for_status(self):
        """Re-raise the workflow-level error of an aborted run."""
        if self.error is not None:
            raise self.error

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "workflow": self.workflow,
            "status": self.status.value,
            "success": self.success,
            "execution_time_ms": self.execution_time_ms,
            "steps_executed": self.steps_executed,
            "error": f"{type(self.error).__name__}: {self.error}" if self.error else None,
            "errors": self.errors,
            "blocked": self.blocked,
            "outputs": self.outputs,
            "steps": [o.to_dict() for o in self.step_results.values()],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)
