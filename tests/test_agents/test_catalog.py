"""Tests for the workflow catalog."""

from __future__ import annotations

import pytest

from agentflow.agents.catalog import WorkflowCatalog
from agentflow.core.definition import WorkflowDefinition
from agentflow.core.errors import DefinitionError


class TestWorkflowCatalog:
    def test_register_and_get(self, sum_definition):
        catalog = WorkflowCatalog()
        catalog.register(sum_definition, categories=["math"], tags=["demo"], description="Adds numbers")
        assert catalog.get("sum") is sum_definition
        assert "sum" in catalog
        assert catalog.has("sum")
        assert catalog.names() == ["sum"]

    def test_register_under_another_name(self, sum_definition):
        catalog = WorkflowCatalog()
        catalog.register(sum_definition, name="adder")
        assert catalog.names() == ["adder"]

    def test_unknown_lists_available(self, sum_definition):
        catalog = WorkflowCatalog()
        catalog.register(sum_definition)
        with pytest.raises(KeyError, match="Available workflows: sum"):
            catalog.get("nope")

    def test_invalid_definition_rejected(self):
        broken = WorkflowDefinition.from_dict({"name": "loop", "steps": [{"id": "a", "agent": "x", "dependsOn": ["a"]}]})
        with pytest.raises(DefinitionError):
            WorkflowCatalog().register(broken)

    def test_categories_and_tags(self, sum_definition):
        other = WorkflowDefinition.from_dict({"name": "solo", "steps": [{"id": "a", "agent": "writer"}]})
        catalog = WorkflowCatalog()
        catalog.register(sum_definition, categories=["math", "demo"], tags=["fan-out"])
        catalog.register(other, categories=["demo"])
        assert catalog.categories() == ["math", "demo"]
        assert catalog.by_category("demo") == [sum_definition, other]
        assert catalog.by_tag("fan-out") == [sum_definition]

    def test_metadata(self, sum_definition):
        catalog = WorkflowCatalog()
        catalog.register(sum_definition, categories=["math"], description="Adds numbers")
        meta = catalog.metadata("sum")
        assert meta["description"] == "Adds numbers"
        assert meta["steps"] == 4
        assert meta["agents"] == ["math"]

    def test_register_file(self, tmp_path):
        path = tmp_path / "wf.yaml"
        path.write_text("name: filed\nsteps:\n  - id: a\n    agent: x\n")
        catalog = WorkflowCatalog()
        catalog.register_file(path, tags=["file"])
        assert catalog.by_tag("file")[0].name == "filed"
