"""Exception hierarchy for workflow validation and execution."""

from __future__ import annotations


class WorkflowError(Exception):
    """Base class for every error raised by agentflow."""


class DefinitionError(WorkflowError):
    """Malformed workflow definition. Raised before a run starts."""

    def __init__(self, message: str, step_id: str | None = None):
        super().__init__(message)
        self.step_id = step_id


class WorkflowTimeoutError(WorkflowError):
    def __init__(self, timeout: float, running: list[str] | None = None):
        self.timeout = timeout
        self.running = list(running or [])
        detail = f" (in flight: {', '.join(self.running)})" if self.running else ""
        super().__init__(f"Workflow exceeded its {timeout}s budget{detail}")


class WorkflowDeadlockError(WorkflowError):
    """No step can become ready while some are still pending."""

    def __init__(self, blocked: dict[str, str]):
        self.blocked = dict(blocked)
        reasons = "; ".join(f"{sid}: {why}" for sid, why in sorted(self.blocked.items()))
        super().__init__(f"Workflow deadlocked, {len(self.blocked)} step(s) can never run: {reasons}")


class WorkflowAbortedError(WorkflowError):
    """Fail-fast policy stopped the run after a step failure."""

    def __init__(self, failed: list[str]):
        self.failed = list(failed)
        super().__init__(f"Workflow aborted after step failure: {', '.join(self.failed)}")


class StepError(WorkflowError):
    kind = "step"

    def __init__(self, message: str, step_id: str = ""):
        super().__init__(message)
        self.step_id = step_id


class UnknownAgentError(StepError):
    kind = "unknown_agent"


class MissingInputError(StepError):
    kind = "missing_input"


class MissingOutputError(StepError):
    kind = "missing_output"


class EvaluationError(StepError):
    kind = "evaluation"


class StepTimeoutError(StepError):
    kind = "timeout"


class AgentExecutionError(StepError):
    """Raised by (or on behalf of) an agent callable."""

    kind = "agent"

    def __init__(self, message: str, step_id: str = "", transient: bool = False):
        super().__init__(message, step_id)
        self.transient = transient
        if transient:
            self.kind = "transient"


class TransientAgentError(AgentExecutionError):
    """An agent failure worth retrying (rate limit, flaky upstream, ...)."""

    def __init__(self, message: str, step_id: str = ""):
        super().__init__(message, step_id, transient=True)
