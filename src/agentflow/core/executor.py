"""Single-step execution: condition, input resolution, agent call, timeout, retry."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Awaitable, Callable

from agentflow.agents.registry import AgentRegistry
from agentflow.control.retry import RetryPolicy
from agentflow.core.condition import evaluate_condition
from agentflow.core.databag import DataBag
from agentflow.core.errors import (
    AgentExecutionError,
    EvaluationError,
    MissingInputError,
    MissingOutputError,
    StepError,
    StepTimeoutError,
    UnknownAgentError,
)
from agentflow.core.execution import StepExecution, StepState, WorkflowExecution
from agentflow.core.result import StepOutcome
from agentflow.core.step import StepDefinition
from agentflow.observe.tracer import EventType, TraceEvent, Tracer

_log = logging.getLogger(__name__)


class StepExecutor:
    """
    Runs one step against a data bag.

    Side effects are limited to the bag (declared outputs, on success) and
    the step's own StepExecution record.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        default_timeout: float | None = None,
        default_retry: RetryPolicy | None = None,
        tracer: Tracer | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.registry = registry
        self.default_timeout = default_timeout
        self.default_retry = default_retry or RetryPolicy()
        self.tracer = tracer
        self._sleep = sleep

    def effective_timeout(self, step: StepDefinition) -> float | None:
        return step.timeout if step.timeout is not None else self.default_timeout

    def effective_retry(self, step: StepDefinition, workflow_retry: RetryPolicy | None = None) -> RetryPolicy:
        return step.retry_policy or workflow_retry or self.default_retry

    async def execute_step(
        self,
        step: StepDefinition,
        bag: DataBag,
        execution: WorkflowExecution | None = None,
        *,
        retry_policy: RetryPolicy | None = None,
    ) -> StepOutcome:
        run_id = execution.run_id if execution is not None else ""
        record = execution.step(step.id) if execution is not None else StepExecution(step.id)
        if record.state == StepState.PENDING:
            self._transition(record, StepState.READY, execution)

        if step.condition:
            try:
                should_run = evaluate_condition(step.condition, bag.snapshot())
            except EvaluationError as e:
                e.step_id = step.id
                return self._fail(step, record, e, execution, run_id)
            if not should_run:
                _log.debug("Step '%s' skipped: condition %r is false", step.id, step.condition)
                self._transition(record, StepState.SKIPPED, execution)
                return self.outcome_for(step, record, run_id)

        self._transition(record, StepState.RUNNING, execution)
        policy = self.effective_retry(step, retry_policy)
        timeout = self.effective_timeout(step)

        error: StepError | None = None
        for attempt in range(1, policy.max_attempts + 1):
            try:
                agent, inputs = self._prepare(step, bag)
                # attempts count agent invocations only
                record.attempts = attempt
                outputs = await self._invoke(step, agent, inputs, timeout)
            except StepError as e:
                error = e
            else:
                bag.merge(outputs, producer=step.id)
                record.result = outputs
                self._transition(record, StepState.SUCCEEDED, execution)
                return self.outcome_for(step, record, run_id)

            if attempt < policy.max_attempts and policy.is_retryable(error):
                delay = policy.delay_for(attempt)
                _log.warning(
                    "Step '%s' attempt %d/%d failed (%s), retrying in %.2fs",
                    step.id, attempt, policy.max_attempts, error, delay,
                )
                if self.tracer is not None:
                    self.tracer.record(
                        TraceEvent(
                            event_type=EventType.RETRY,
                            run_id=run_id,
                            step_id=step.id,
                            agent_name=step.agent,
                            data={"attempt": attempt, "delay": delay, "error": str(error), "kind": error.kind},
                        )
                    )
                await self._sleep(delay)
                continue
            break

        return self._fail(step, record, error, execution, run_id)

    def _prepare(self, step: StepDefinition, bag: DataBag):
        inputs = self.resolve_inputs(step, bag)
        agent = self.registry.get(step.agent)
        if agent is None:
            available = ", ".join(self.registry.names()) or "none"
            raise UnknownAgentError(
                f"Agent '{step.agent}' not found. Available agents: {available}", step.id
            )
        return agent, inputs

    async def _invoke(self, step: StepDefinition, agent, inputs: dict, timeout: float | None) -> dict:
        try:
            if timeout:
                result = await asyncio.wait_for(agent.execute(step.action, inputs), timeout=timeout)
            else:
                result = await agent.execute(step.action, inputs)
        except asyncio.TimeoutError:
            if timeout:
                raise StepTimeoutError(f"Step '{step.id}' timed out after {timeout}s", step.id) from None
            raise StepTimeoutError(f"Step '{step.id}' agent reported a timeout", step.id) from None
        except StepError as e:
            if not e.step_id:
                e.step_id = step.id
            raise
        except Exception as e:
            raise AgentExecutionError(f"{type(e).__name__}: {e}", step.id) from e

        return self.map_outputs(step, result)

    @staticmethod
    def resolve_inputs(step: StepDefinition, bag: DataBag) -> dict[str, Any]:
        snapshot = bag.snapshot()
        resolved: dict[str, Any] = {}
        missing = []
        for ref in step.inputs:
            if ref.key in snapshot:
                resolved[ref.key] = snapshot[ref.key]
            elif not ref.optional:
                missing.append(ref.key)
        if missing:
            raise MissingInputError(
                f"Step '{step.id}' is missing required input(s): {', '.join(missing)}", step.id
            )
        return resolved

    @staticmethod
    def map_outputs(step: StepDefinition, result: Any) -> dict[str, Any]:
        if not step.outputs:
            return {}
        if isinstance(result, Mapping):
            missing = [key for key in step.outputs if key not in result]
            if not missing:
                return {key: result[key] for key in step.outputs}
            if len(step.outputs) > 1:
                raise MissingOutputError(
                    f"Agent '{step.agent}' did not return declared output(s) "
                    f"{', '.join(missing)} for step '{step.id}'",
                    step.id,
                )
        if len(step.outputs) == 1 and result is not None:
            return {step.outputs[0]: result}
        raise MissingOutputError(
            f"Agent '{step.agent}' returned {type(result).__name__}, expected a mapping with "
            f"{', '.join(step.outputs)} for step '{step.id}'",
            step.id,
        )

    def _fail(
        self,
        step: StepDefinition,
        record: StepExecution,
        error: StepError,
        execution: WorkflowExecution | None,
        run_id: str,
    ) -> StepOutcome:
        _log.warning("Step '%s' failed after %d attempt(s): %s", step.id, record.attempts, error)
        if execution is not None:
            execution.record_error(step.id, error)
        else:
            record.error = error
        self._transition(record, StepState.FAILED, execution)
        return self.outcome_for(step, record, run_id)

    @staticmethod
    def _transition(record: StepExecution, state: StepState, execution: WorkflowExecution | None):
        if execution is not None:
            execution.set_state(record.step_id, state)
        else:
            record.transition(state)

    @staticmethod
    def outcome_for(step: StepDefinition, record: StepExecution, run_id: str) -> StepOutcome:
        error = record.error
        return StepOutcome(
            step_id=step.id,
            agent_name=step.agent,
            state=record.state,
            outputs=dict(record.result or {}),
            attempts=record.attempts,
            duration=record.duration,
            error=str(error) if error is not None else None,
            error_type=type(error).__name__ if error is not None else None,
            run_id=run_id,
        )
