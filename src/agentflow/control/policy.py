"""Run-level failure policies and the readiness rule they drive."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from agentflow.core.execution import StepState
from agentflow.core.graph import DependencyGraph
from agentflow.core.step import StepDefinition


class FailurePolicy(str, Enum):
    CONTINUE = "continue"  # unrelated branches keep running
    ABORT = "abort"  # stop scheduling after the failing wave


class UnreachablePolicy(str, Enum):
    ABORT = "abort"  # raise WorkflowDeadlockError
    CONTINUE = "continue"  # finish as failed, report blocked steps


@dataclass(frozen=True)
class ReadinessRule:
    """
    Decides whether a pending step may run given its dependencies' states.

    ``succeeded`` and ``skipped`` always satisfy a dependency. ``failed``
    satisfies it only when ``tolerate_optional_failures`` is on and every
    input of the step that names one of the failed step's outputs is optional.
    """

    tolerate_optional_failures: bool = False

    def blocked_by(
        self,
        step: StepDefinition,
        states: dict[str, StepState],
        graph: DependencyGraph,
    ) -> tuple[bool, str | None]:
        """Return ``(waiting, reason)``; ``reason`` is set when the step can never run."""
        waiting = False
        for dep in sorted(step.depends_on):
            state = states[dep]
            if state in (StepState.SUCCEEDED, StepState.SKIPPED):
                continue
            if state == StepState.FAILED:
                if self.tolerate_optional_failures and self._only_optional_from(step, dep, graph):
                    continue
                return False, f"dependency '{dep}' failed"
            waiting = True
        return waiting, None

    @staticmethod
    def _only_optional_from(step: StepDefinition, dep: str, graph: DependencyGraph) -> bool:
        return all(ref.optional for ref in step.inputs if graph.producers.get(ref.key) == dep)

    def is_ready(self, step: StepDefinition, states: dict[str, StepState], graph: DependencyGraph) -> bool:
        waiting, reason = self.blocked_by(step, states, graph)
        return not waiting and reason is None
