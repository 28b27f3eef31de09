"""Research fan-out with a conditional branch and a flaky agent."""

import random
from pathlib import Path

from agentflow import AgentRegistry, TransientAgentError, WorkflowDefinition, WorkflowEngine

registry = AgentRegistry()


@registry.agent("planner")
def planner(action: str, inputs: dict) -> dict:
    topic = inputs["topic"]
    return {"queries": [topic, f"{topic} news", "academic"], "depth": 2}


@registry.agent("researcher")
async def researcher(action: str, inputs: dict) -> dict:
    if random.random() < 0.3:
        raise TransientAgentError("search backend rate limited")
    key = "web_notes" if action == "search_web" else "paper_notes"
    return {key: [f"{action}: {q}" for q in inputs["queries"]]}


@registry.agent("writer")
async def writer(action: str, inputs: dict) -> str:
    notes = inputs["web_notes"] + inputs.get("paper_notes", [])
    return f"# {inputs['topic']}\n\n" + "\n".join(f"- {n}" for n in notes)


definition = WorkflowDefinition.from_file(Path(__file__).parent / "workflow.yaml")
engine = WorkflowEngine(registry)
result = engine.run(definition, {"topic": "Quantum computing"})

print(result.outputs.get("report", "(no report)"))
print(f"\nStatus: {result.status.value}")
for outcome in result.step_results.values():
    print(f"  {outcome.step_id}: {outcome.state.value} after {outcome.attempts} attempt(s)")
