"""Wave-based workflow scheduler."""

from __future__ import annotations

import asyncio
import logging
import time
from functools import lru_cache
from pathlib import Path
from typing import Any, Awaitable, Callable, Mapping, Union

from agentflow.agents.registry import AgentRegistry
from agentflow.config.loader import ConfigLoader
from agentflow.control.policy import FailurePolicy, ReadinessRule, UnreachablePolicy
from agentflow.control.retry import RetryPolicy
from agentflow.core.definition import WorkflowDefinition
from agentflow.core.errors import (
    StepTimeoutError,
    WorkflowAbortedError,
    WorkflowDeadlockError,
    WorkflowError,
    WorkflowTimeoutError,
)
from agentflow.core.execution import RunStatus, StepState, WorkflowExecution
from agentflow.core.executor import StepExecutor
from agentflow.core.graph import DependencyGraph
from agentflow.core.result import StepOutcome, WorkflowResult
from agentflow.core.step import StepDefinition
from agentflow.observe.events import EventBus
from agentflow.observe.monitor import ExecutionMonitor
from agentflow.observe.tracer import EventType, TraceEvent, Tracer

_log = logging.getLogger(__name__)


@lru_cache(maxsize=128)
def _cached_graph(definition: WorkflowDefinition) -> DependencyGraph:
    return DependencyGraph.build(definition)


class WorkflowEngine:
    """
    Executes a WorkflowDefinition as a sequence of readiness waves.

    Each wave dispatches every step whose dependencies are terminal and
    waits for all of them before recomputing readiness.

    Usage::

        engine = WorkflowEngine({"math": math_agent})
        result = engine.run(definition, {"start": 1})
    """

    def __init__(
        self,
        registry: Union[AgentRegistry, Mapping[str, Any], None] = None,
        *,
        settings: dict | None = None,
        monitor: ExecutionMonitor | None = None,
        event_bus: EventBus | None = None,
        tracer: Tracer | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.registry = AgentRegistry.coerce(registry)
        self.settings = ConfigLoader.validate(settings or {})
        control = self.settings["control"]

        self.tracer = tracer or (monitor.tracer if monitor is not None else Tracer())
        self.monitor = monitor or ExecutionMonitor(self.tracer)
        self.event_bus = event_bus or EventBus()
        self.trace_enabled = self.settings["observe"]["trace"]

        self.failure_policy = FailurePolicy(control["on_step_failure"])
        self.unreachable_policy = UnreachablePolicy(control["on_unreachable"])
        self.readiness = ReadinessRule(control["optional_inputs_tolerate_failure"])
        self.max_concurrency = control["max_concurrency"]
        self.executor = StepExecutor(
            self.registry,
            default_timeout=control["step_timeout"],
            default_retry=RetryPolicy.from_config(control["retry"]),
            tracer=self.tracer if self.trace_enabled else None,
            sleep=sleep,
        )

    @classmethod
    def from_settings_file(
        cls,
        path: Union[str, Path],
        registry: Union[AgentRegistry, Mapping[str, Any], None] = None,
        **kwargs: Any,
    ) -> "WorkflowEngine":
        return cls(registry, settings=ConfigLoader.load(path), **kwargs)

    def validate(self, definition: WorkflowDefinition) -> DependencyGraph:
        """Build (or reuse) the dependency graph. Raises DefinitionError."""
        try:
            return _cached_graph(definition)
        except TypeError:
            # hand-built definitions holding lists are not hashable
            return DependencyGraph.build(definition)

    def get_status(self, run_id: str) -> dict:
        return self.monitor.get_status(run_id)

    def run(
        self,
        definition: Union[WorkflowDefinition, dict],
        inputs: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> WorkflowResult:
        """Synchronous entry point. Wraps :meth:`execute_workflow`."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop and loop.is_running():
            import concurrent.futures

            with concurrent.futures.ThreadPoolExecutor() as pool:
                future = pool.submit(asyncio.run, self.execute_workflow(definition, inputs, **kwargs))
                return future.result()
        return asyncio.run(self.execute_workflow(definition, inputs, **kwargs))

    async def execute_workflow(
        self,
        definition: Union[WorkflowDefinition, dict],
        inputs: dict[str, Any] | None = None,
        *,
        timeout: float | None = None,
        retry_policy: RetryPolicy | None = None,
        run_id: str | None = None,
    ) -> WorkflowResult:
        """
        Run ``definition`` to completion.

        DefinitionError is raised before anything runs. Timeouts, deadlocks
        and fail-fast aborts do not raise: the returned result carries
        ``error`` and the partial outputs (see ``WorkflowResult.raise_for_status``).
        """
        if isinstance(definition, dict):
            definition = WorkflowDefinition.from_dict(definition)
        graph = self.validate(definition)

        execution = WorkflowExecution.start(definition, inputs, run_id=run_id)
        budget = timeout if timeout is not None else definition.timeout
        workflow_retry = retry_policy or definition.retry_policy
        steps = {s.id: s for s in definition.steps}

        self._notify(self.monitor.record_workflow_start, execution)
        execution.status = RunStatus.RUNNING
        _log.info(
            "Run %s started: workflow '%s' (%d steps, budget=%s)",
            execution.run_id, definition.name, len(steps), budget,
        )
        await self._emit(
            TraceEvent(
                event_type=EventType.WORKFLOW_START,
                run_id=execution.run_id,
                data={
                    "workflow": definition.name,
                    "version": definition.version,
                    "step_count": len(steps),
                    "inputs": sorted((inputs or {}).keys()),
                },
            )
        )

        loop = asyncio.get_running_loop()
        deadline = loop.time() + budget if budget else None
        outcomes: dict[str, StepOutcome] = {}
        error: WorkflowError | None = None
        blocked: dict[str, str] = {}
        status = RunStatus.COMPLETED
        wave = 0

        while not execution.finished:
            states = {sid: se.state for sid, se in execution.steps.items()}
            ready, blocked = self._ready_set(definition, graph, states)

            if not ready:
                if self.unreachable_policy == UnreachablePolicy.ABORT:
                    error = WorkflowDeadlockError(blocked)
                    status = RunStatus.DEADLOCKED
                else:
                    status = RunStatus.FAILED
                _log.warning("Run %s has %d unreachable step(s): %s", execution.run_id, len(blocked), blocked)
                break

            wave += 1
            for sid in ready:
                execution.set_state(sid, StepState.READY)
            _log.debug("Run %s wave %d: %s", execution.run_id, wave, ", ".join(ready))
            await self._emit(
                TraceEvent(event_type=EventType.WAVE_START, run_id=execution.run_id, data={"wave": wave, "steps": ready})
            )

            remaining = deadline - loop.time() if deadline is not None else None
            wave_outcomes, cancelled = await self._run_wave(
                execution, [steps[sid] for sid in ready], wave, remaining, workflow_retry
            )
            outcomes.update(wave_outcomes)

            await self._emit(
                TraceEvent(
                    event_type=EventType.WAVE_END,
                    run_id=execution.run_id,
                    data={"wave": wave, "states": {sid: o.state.value for sid, o in wave_outcomes.items()}},
                )
            )

            if cancelled is not None:
                error = WorkflowTimeoutError(budget, running=cancelled)
                status = RunStatus.FAILED
                break

            failed_now = [sid for sid, o in wave_outcomes.items() if o.state == StepState.FAILED]
            if failed_now and self.failure_policy == FailurePolicy.ABORT:
                error = WorkflowAbortedError(failed_now)
                status = RunStatus.FAILED
                break

        if status == RunStatus.COMPLETED and execution.errors:
            status = RunStatus.FAILED

        return await self._finish(execution, steps, outcomes, status, error, blocked)

    def _ready_set(
        self,
        definition: WorkflowDefinition,
        graph: DependencyGraph,
        states: dict[str, StepState],
    ) -> tuple[list[str], dict[str, str]]:
        ready: list[str] = []
        blocked: dict[str, str] = {}
        for step in definition.steps:
            if states[step.id] != StepState.PENDING:
                continue
            waiting, reason = self.readiness.blocked_by(step, states, graph)
            if reason is not None:
                blocked[step.id] = reason
            elif not waiting:
                ready.append(step.id)

        if ready:
            return ready, blocked

        # whatever is still waiting sits behind a blocked step
        for step in definition.steps:
            if states[step.id] == StepState.PENDING and step.id not in blocked and step.id not in ready:
                upstream = sorted(d for d in step.depends_on if states[d] == StepState.PENDING)
                blocked[step.id] = f"waiting on unreachable step(s) {', '.join(upstream)}"
        return ready, blocked

    async def _run_wave(
        self,
        execution: WorkflowExecution,
        ready: list[StepDefinition],
        wave: int,
        remaining: float | None,
        workflow_retry: RetryPolicy | None,
    ) -> tuple[dict[str, StepOutcome], list[str] | None]:
        """Run one wave behind a barrier. Returns outcomes and, on budget expiry, the cancelled step ids."""
        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None
        outcomes: dict[str, StepOutcome] = {}

        async def _run(step: StepDefinition):
            if semaphore is None:
                outcomes[step.id] = await self._run_step(execution, step, wave, workflow_retry)
                return
            async with semaphore:
                outcomes[step.id] = await self._run_step(execution, step, wave, workflow_retry)

        async def _run_serial(serial: list[StepDefinition]):
            for step in serial:
                await _run(step)

        parallel = [s for s in ready if s.parallel]
        serial = [s for s in ready if not s.parallel]
        coros = [_run(s) for s in parallel]
        if serial:
            coros.append(_run_serial(serial))
        tasks = [asyncio.ensure_future(c) for c in coros]

        try:
            if remaining is not None and remaining <= 0:
                done, pending = set(), set(tasks)
            else:
                done, pending = await asyncio.wait(tasks, timeout=remaining)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            task.result()  # surface engine bugs

        if not pending:
            return outcomes, None

        cancelled: list[str] = []
        for step in ready:
            record = execution.step(step.id)
            if record.state != StepState.RUNNING:
                continue
            cancelled.append(step.id)
            execution.record_error(
                step.id,
                StepTimeoutError(
                    f"Step '{step.id}' cancelled: workflow budget exceeded", step.id
                ),
            )
            execution.set_state(step.id, StepState.FAILED)
            outcome = StepExecutor.outcome_for(step, record, execution.run_id)
            outcomes[step.id] = outcome
            await self._after_step(execution, step, outcome, wave)
        return outcomes, cancelled

    async def _run_step(
        self,
        execution: WorkflowExecution,
        step: StepDefinition,
        wave: int,
        workflow_retry: RetryPolicy | None,
    ) -> StepOutcome:
        await self._emit(
            TraceEvent(
                event_type=EventType.STEP_START,
                run_id=execution.run_id,
                step_id=step.id,
                agent_name=step.agent,
                data={"action": step.action, "wave": wave, "parallel": step.parallel},
            )
        )
        outcome = await self.executor.execute_step(
            step, execution.bag, execution, retry_policy=workflow_retry
        )
        await self._after_step(execution, step, outcome, wave)
        return outcome

    async def _after_step(self, execution: WorkflowExecution, step: StepDefinition, outcome: StepOutcome, wave: int):
        event_type = EventType.STEP_SKIPPED if outcome.state == StepState.SKIPPED else EventType.STEP_END
        await self._emit(
            TraceEvent(
                event_type=event_type,
                run_id=execution.run_id,
                step_id=step.id,
                agent_name=step.agent,
                data={
                    "state": outcome.state.value,
                    "attempts": outcome.attempts,
                    "outputs": sorted(outcome.outputs),
                    "error": outcome.error,
                    "wave": wave,
                },
                duration_ms=outcome.duration * 1000,
            )
        )
        self._notify(self.monitor.record_step_execution, step, outcome)

    async def _finish(
        self,
        execution: WorkflowExecution,
        steps: dict[str, StepDefinition],
        outcomes: dict[str, StepOutcome],
        status: RunStatus,
        error: WorkflowError | None,
        blocked: dict[str, str],
    ) -> WorkflowResult:
        execution.ended_at = time.time()
        execution.status = status

        step_results: dict[str, StepOutcome] = {}
        for sid, step in steps.items():
            step_results[sid] = outcomes.get(sid) or StepExecutor.outcome_for(
                step, execution.step(sid), execution.run_id
            )

        steps_executed = sum(
            1 for se in execution.steps.values() if se.attempts > 0 and se.state.terminal
        )
        result = WorkflowResult(
            run_id=execution.run_id,
            workflow=execution.definition.name,
            status=status,
            step_results=step_results,
            outputs=execution.bag.snapshot(),
            errors=dict(execution.errors),
            error=error,
            blocked=dict(blocked) if status != RunStatus.COMPLETED else {},
            execution_time_ms=execution.elapsed() * 1000,
            steps_executed=steps_executed,
        )

        if error is not None:
            await self._emit(
                TraceEvent(
                    event_type=EventType.ERROR,
                    run_id=execution.run_id,
                    data={"error": str(error), "type": type(error).__name__},
                )
            )
        await self._emit(
            TraceEvent(
                event_type=EventType.WORKFLOW_END,
                run_id=execution.run_id,
                data={"status": status.value, "success": result.success, "steps_executed": steps_executed},
                duration_ms=result.execution_time_ms,
            )
        )
        self._notify(self.monitor.record_workflow_completion, execution, result)

        log = _log.info if result.success else _log.warning
        log(
            "Run %s finished: %s in %.1fms (%d executed, %d failed)",
            execution.run_id, status.value, result.execution_time_ms, steps_executed, len(result.errors),
        )
        return result

    async def _emit(self, event: TraceEvent):
        if self.trace_enabled:
            self.tracer.record(event)
        await self.event_bus.emit(event)

    @staticmethod
    def _notify(fn: Callable[..., Any], *args: Any):
        # monitoring is best-effort and never changes the run's outcome
        try:
            fn(*args)
        except Exception as exc:
            _log.warning("Monitor call %s failed: %s", getattr(fn, "__name__", fn), exc)
