from pathlib import Path

from agentflow import WorkflowDefinition, WorkflowEngine

from agents import registry

definition = WorkflowDefinition.from_file(Path(__file__).parent / "workflow.yaml")
engine = WorkflowEngine(registry)
result = engine.run(definition)

print(f"sum = {result.outputs['sum']}")
print(f"Steps executed: {result.steps_executed}")
print(f"Duration: {result.execution_time_ms:.1f}ms")
