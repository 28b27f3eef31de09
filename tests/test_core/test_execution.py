"""Tests for run and step execution records."""

from __future__ import annotations

import pytest

from agentflow.core.definition import WorkflowDefinition
from agentflow.core.errors import AgentExecutionError
from agentflow.core.execution import IllegalTransition, RunStatus, StepExecution, StepState, WorkflowExecution
from agentflow.core.result import StepOutcome, WorkflowResult


class TestStepExecution:
    def test_happy_path(self):
        record = StepExecution("s1")
        record.transition(StepState.READY)
        record.transition(StepState.RUNNING)
        assert record.started_at is not None
        record.transition(StepState.SUCCEEDED)
        assert record.state.terminal
        assert record.duration >= 0

    def test_skip_from_ready(self):
        record = StepExecution("s1")
        record.transition(StepState.READY)
        record.transition(StepState.SKIPPED)
        assert record.duration == 0.0

    @pytest.mark.parametrize(
        "path",
        [
            [StepState.RUNNING],
            [StepState.SUCCEEDED],
            [StepState.READY, StepState.SUCCEEDED],
            [StepState.READY, StepState.RUNNING, StepState.FAILED, StepState.RUNNING],
        ],
    )
    def test_illegal_transitions(self, path):
        record = StepExecution("s1")
        with pytest.raises(IllegalTransition):
            for state in path:
                record.transition(state)


class TestWorkflowExecution:
    def test_start(self, sum_definition):
        execution = WorkflowExecution.start(sum_definition, {"seed": 1}, run_id="abc")
        assert execution.run_id == "abc"
        assert execution.status == RunStatus.INITIALIZING
        assert list(execution.steps) == ["A", "B", "C", "D"]
        assert execution.bag["seed"] == 1
        assert not execution.finished

    def test_fresh_bag_per_run(self, sum_definition):
        first = WorkflowExecution.start(sum_definition)
        second = WorkflowExecution.start(sum_definition)
        first.bag.set("x", 1)
        assert "x" not in second.bag
        assert first.run_id != second.run_id

    def test_record_error_and_snapshot(self, sum_definition):
        execution = WorkflowExecution.start(sum_definition)
        execution.set_state("A", StepState.READY)
        execution.set_state("A", StepState.RUNNING)
        execution.record_error("A", AgentExecutionError("boom", "A"))
        execution.set_state("A", StepState.FAILED)

        snap = execution.status_snapshot()
        assert snap["errors"] == {"A": "AgentExecutionError: boom"}
        assert snap["steps"]["A"]["state"] == "failed"
        assert snap["steps"]["A"]["error"] == "boom"
        assert execution.ids_in(StepState.PENDING) == ["B", "C", "D"]


class TestWorkflowResult:
    def _result(self, **kwargs):
        outcome = StepOutcome(step_id="A", agent_name="x", state=kwargs.pop("state", StepState.SUCCEEDED))
        return WorkflowResult(run_id="r", workflow="w", status=kwargs.pop("status", RunStatus.COMPLETED),
                              step_results={"A": outcome}, **kwargs)

    def test_success(self):
        assert self._result().success is True

    def test_skipped_counts_as_success(self):
        assert self._result(state=StepState.SKIPPED).success is True

    def test_failed_step_is_not_success(self):
        assert self._result(state=StepState.FAILED).success is False

    def test_non_completed_status_is_not_success(self):
        assert self._result(status=RunStatus.DEADLOCKED).success is False

    def test_to_json(self):
        data = self._result(outputs={"x": 1}).to_json()
        assert '"success": true' in data
        assert '"x": 1' in data
        assert self._result().raise_for_status() is None
