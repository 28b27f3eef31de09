"""Shared fixtures for agentflow tests."""

from __future__ import annotations

import pytest

from agentflow.agents.registry import AgentRegistry
from agentflow.core.definition import WorkflowDefinition
from agentflow.observe.events import EventBus
from agentflow.observe.tracer import Tracer


async def _math(action: str, inputs: dict) -> dict:
    if action == "seed":
        return {"x": 1}
    if action == "add_one":
        return {"y": inputs["x"] + 1}
    if action == "add_two":
        return {"z": inputs["x"] + 2}
    if action == "sum":
        return {"sum": inputs["y"] + inputs["z"]}
    raise ValueError(f"unknown action '{action}'")


@pytest.fixture
def sum_document():
    """A fans out to B and C, D joins them."""
    return {
        "name": "sum",
        "version": "1.0",
        "steps": [
            {"id": "A", "agent": "math", "action": "seed", "outputs": ["x"]},
            {
                "id": "B", "agent": "math", "action": "add_one",
                "inputs": ["x"], "outputs": ["y"], "dependsOn": ["A"], "parallel": True,
            },
            {
                "id": "C", "agent": "math", "action": "add_two",
                "inputs": ["x"], "outputs": ["z"], "dependsOn": ["A"], "parallel": True,
            },
            {
                "id": "D", "agent": "math", "action": "sum",
                "inputs": ["y", "z"], "outputs": ["sum"], "dependsOn": ["B", "C"],
            },
        ],
    }


@pytest.fixture
def sum_definition(sum_document):
    return WorkflowDefinition.from_dict(sum_document)


@pytest.fixture
def math_registry():
    return AgentRegistry({"math": _math})


@pytest.fixture
def no_sleep():
    """Records retry delays instead of sleeping."""
    delays: list[float] = []

    async def _sleep(delay: float):
        delays.append(delay)

    _sleep.delays = delays
    return _sleep


@pytest.fixture
def tracer():
    return Tracer()


@pytest.fixture
def event_bus():
    return EventBus()
