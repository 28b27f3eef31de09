"""Tests for the readiness rule."""

from __future__ import annotations

from agentflow.control.policy import ReadinessRule
from agentflow.core.definition import WorkflowDefinition
from agentflow.core.execution import StepState
from agentflow.core.graph import DependencyGraph


def _setup():
    definition = WorkflowDefinition.from_dict(
        {
            "steps": [
                {"id": "a", "agent": "x", "outputs": ["notes"]},
                {"id": "b", "agent": "x", "outputs": ["data"]},
                {"id": "opt", "agent": "x", "inputs": ["notes?"], "dependsOn": ["a"]},
                {"id": "req", "agent": "x", "inputs": ["notes?", "data"], "dependsOn": ["a", "b"]},
            ]
        }
    )
    return definition, DependencyGraph.build(definition)


class TestReadinessRule:
    def test_waits_for_pending_dependencies(self):
        definition, graph = _setup()
        states = {"a": StepState.RUNNING, "b": StepState.PENDING, "opt": StepState.PENDING, "req": StepState.PENDING}
        assert ReadinessRule().blocked_by(definition.get_step("opt"), states, graph) == (True, None)

    def test_succeeded_and_skipped_satisfy(self):
        definition, graph = _setup()
        states = {"a": StepState.SKIPPED, "b": StepState.SUCCEEDED, "opt": StepState.PENDING, "req": StepState.PENDING}
        assert ReadinessRule().is_ready(definition.get_step("req"), states, graph)

    def test_failure_blocks_by_default(self):
        definition, graph = _setup()
        states = {"a": StepState.FAILED, "b": StepState.SUCCEEDED, "opt": StepState.PENDING, "req": StepState.PENDING}
        waiting, reason = ReadinessRule().blocked_by(definition.get_step("opt"), states, graph)
        assert reason == "dependency 'a' failed"

    def test_failure_tolerated_for_optional_inputs(self):
        definition, graph = _setup()
        rule = ReadinessRule(tolerate_optional_failures=True)
        states = {"a": StepState.FAILED, "b": StepState.FAILED, "opt": StepState.PENDING, "req": StepState.PENDING}
        assert rule.is_ready(definition.get_step("opt"), states, graph)
        # "data" from b is required
        assert rule.blocked_by(definition.get_step("req"), states, graph) == (False, "dependency 'b' failed")
