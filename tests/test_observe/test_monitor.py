"""Tests for the ExecutionMonitor."""

from __future__ import annotations

import asyncio

import pytest
from unittest.mock import MagicMock

from agentflow.core.definition import WorkflowDefinition
from agentflow.core.engine import WorkflowEngine
from agentflow.core.execution import WorkflowExecution
from agentflow.observe.monitor import ExecutionMonitor


class TestExecutionMonitor:
    def test_unknown_run(self):
        monitor = ExecutionMonitor()
        with pytest.raises(KeyError):
            monitor.get_status("nope")
        with pytest.raises(KeyError):
            monitor.get_result("nope")
        with pytest.raises(KeyError):
            monitor.get_trace("nope")

    def test_in_flight_run(self, sum_definition):
        monitor = ExecutionMonitor()
        execution = WorkflowExecution.start(sum_definition, run_id="live")
        monitor.record_workflow_start(execution)
        assert monitor.active_runs() == ["live"]
        assert monitor.get_result("live") is None
        status = monitor.get_status("live")
        assert status["steps"]["A"]["state"] == "pending"
        assert status["result"] is None

    @pytest.mark.asyncio
    async def test_completed_run(self, sum_definition, math_registry):
        monitor = ExecutionMonitor()
        listener = MagicMock()
        monitor.subscribe(listener)
        engine = WorkflowEngine(math_registry, monitor=monitor)
        result = await engine.execute_workflow(sum_definition)

        assert engine.tracer is monitor.tracer
        listener.assert_called_once_with(result)
        assert monitor.active_runs() == []
        runs = monitor.list_runs()
        assert runs[0]["run_id"] == result.run_id
        assert runs[0]["status"] == "completed"
        assert monitor.get_result(result.run_id)["outputs"]["sum"] == 5
        assert monitor.get_trace(result.run_id)[0]["event_type"] == "workflow_start"

    @pytest.mark.asyncio
    async def test_listener_failure_is_contained(self, sum_definition, math_registry):
        monitor = ExecutionMonitor()
        monitor.subscribe(MagicMock(side_effect=RuntimeError("listener down")))
        result = await WorkflowEngine(math_registry, monitor=monitor).execute_workflow(sum_definition)
        assert result.success
        assert monitor.get_result(result.run_id) is not None

    @pytest.mark.asyncio
    async def test_reused_run_id_starts_a_fresh_record(self, sum_definition, math_registry):
        monitor = ExecutionMonitor()
        engine = WorkflowEngine(math_registry, monitor=monitor)
        await engine.execute_workflow(sum_definition, run_id="r")
        assert monitor.get_result("r") is not None

        started = asyncio.Event()
        release = asyncio.Event()

        async def slow(action, inputs):
            started.set()
            await release.wait()
            return {}

        definition = WorkflowDefinition.from_dict({"name": "slow", "steps": [{"id": "s", "agent": "slow"}]})
        second = WorkflowEngine({"slow": slow}, monitor=monitor)
        task = asyncio.create_task(second.execute_workflow(definition, run_id="r"))
        await started.wait()

        assert monitor.get_result("r") is None
        status = monitor.get_status("r")
        assert status["workflow"] == "slow"
        assert status["step_log"] == []
        assert monitor.active_runs() == ["r"]
        assert [run["run_id"] for run in monitor.list_runs()] == ["r"]
        assert all(e["timestamp"] >= status["started_at"] for e in monitor.get_trace("r"))

        release.set()
        result = await task
        assert monitor.get_result("r")["workflow"] == "slow"
        assert len(monitor.get_status("r")["step_log"]) == 1
        assert result.success

    @pytest.mark.asyncio
    async def test_finished_run_keeps_snapshot_not_execution(self, sum_definition, math_registry):
        monitor = ExecutionMonitor()
        result = await WorkflowEngine(math_registry, monitor=monitor).execute_workflow(sum_definition)
        assert result.run_id not in monitor._live
        status = monitor.get_status(result.run_id)
        assert status["status"] == "completed"
        assert status["steps"]["D"]["state"] == "succeeded"
        assert status["produced_keys"] == ["sum", "x", "y", "z"]

    @pytest.mark.asyncio
    async def test_max_runs_evicts_oldest_finished(self, sum_definition, math_registry):
        monitor = ExecutionMonitor(max_runs=2)
        engine = WorkflowEngine(math_registry, monitor=monitor)
        for run_id in ("r1", "r2", "r3"):
            await engine.execute_workflow(sum_definition, run_id=run_id)
        assert [run["run_id"] for run in monitor.list_runs()] == ["r2", "r3"]
        with pytest.raises(KeyError):
            monitor.get_status("r1")
