"""agentflow — dependency-driven workflow orchestration for agent capabilities."""

from agentflow.core.engine import WorkflowEngine
from agentflow.core.definition import WorkflowDefinition
from agentflow.core.step import InputRef, StepDefinition
from agentflow.core.graph import DependencyGraph
from agentflow.core.condition import evaluate_condition
from agentflow.core.execution import RunStatus, StepState
from agentflow.core.result import StepOutcome, WorkflowResult
from agentflow.core.errors import (
    AgentExecutionError,
    DefinitionError,
    EvaluationError,
    MissingInputError,
    MissingOutputError,
    StepTimeoutError,
    TransientAgentError,
    UnknownAgentError,
    WorkflowAbortedError,
    WorkflowDeadlockError,
    WorkflowError,
    WorkflowTimeoutError,
)
from agentflow.control.retry import RetryPolicy
from agentflow.agents.registry import Agent, AgentRegistry
from agentflow.agents.catalog import WorkflowCatalog
from agentflow.observe.monitor import ExecutionMonitor
from agentflow._version import __version__

__all__ = [
    "WorkflowEngine",
    "WorkflowDefinition",
    "StepDefinition",
    "InputRef",
    "DependencyGraph",
    "evaluate_condition",
    "RunStatus",
    "StepState",
    "StepOutcome",
    "WorkflowResult",
    "WorkflowError",
    "DefinitionError",
    "UnknownAgentError",
    "MissingInputError",
    "MissingOutputError",
    "EvaluationError",
    "StepTimeoutError",
    "AgentExecutionError",
    "TransientAgentError",
    "WorkflowTimeoutError",
    "WorkflowDeadlockError",
    "WorkflowAbortedError",
    "RetryPolicy",
    "Agent",
    "AgentRegistry",
    "WorkflowCatalog",
    "ExecutionMonitor",
    "__version__",
]
