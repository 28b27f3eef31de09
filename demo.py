#!/usr/bin/env python3
"""
Live demo of agentflow: a fan-out/join workflow with a conditional branch,
a flaky agent that needs a retry, and a live event stream.
"""
import asyncio

from rich.console import Console
from rich.table import Table

from agentflow import AgentRegistry, TransientAgentError, WorkflowDefinition, WorkflowEngine
from agentflow.observe.tracer import EventType, TraceEvent

WORKFLOW = """
name: order-review
version: "1.0"
retryPolicy:
  maxRetries: 2
  backoff: fixed
  baseDelay: 0.1
steps:
  - id: load
    agent: orders
    action: load
    inputs: [order_id]
    outputs: [order]
  - id: fraud
    agent: checks
    action: fraud_score
    inputs: [order]
    outputs: [fraud_score]
    dependsOn: [load]
    parallel: true
  - id: stock
    agent: checks
    action: stock
    inputs: [order]
    outputs: [in_stock]
    dependsOn: [load]
    parallel: true
  - id: manual_review
    agent: reviewer
    action: review
    inputs: [order]
    outputs: [review_notes]
    dependsOn: [fraud]
    condition: "fraud_score > 0.7"
  - id: decide
    agent: reviewer
    action: decide
    inputs: [fraud_score, in_stock, review_notes?]
    outputs: [decision]
    dependsOn: [stock, manual_review]
"""

registry = AgentRegistry()
calls = {"stock": 0}


@registry.agent("orders")
async def orders(action, inputs):
    await asyncio.sleep(0.05)
    return {"id": inputs["order_id"], "items": ["keyboard", "mouse"], "total": 129.0}


@registry.agent("checks")
async def checks(action, inputs):
    await asyncio.sleep(0.1)
    if action == "fraud_score":
        return 0.2 if inputs["order"]["total"] < 500 else 0.9
    calls["stock"] += 1
    if calls["stock"] == 1:
        raise TransientAgentError("inventory service timed out")
    return True


@registry.agent("reviewer")
def reviewer(action, inputs):
    if action == "review":
        return "flagged for manual review"
    approved = inputs["in_stock"] and "review_notes" not in inputs
    return "approve" if approved else "hold"


def main():
    console = Console()
    console.print("=" * 60)
    console.print("  ⚡ agentflow: live demo")
    console.print("=" * 60)
    console.print()

    engine = WorkflowEngine(registry)

    def on_event(event: TraceEvent):
        if event.event_type == EventType.WAVE_START:
            console.print(f"  [dim]wave {event.data['wave']}:[/dim] {', '.join(event.data['steps'])}")
        elif event.event_type == EventType.STEP_END:
            console.print(f"    [green]✓[/green] {event.step_id} ({event.duration_ms:.0f}ms)")
        elif event.event_type == EventType.STEP_SKIPPED:
            console.print(f"    [yellow]↷[/yellow] {event.step_id} skipped")

    engine.event_bus.subscribe_sync(on_event)
    result = engine.run(WorkflowDefinition.from_yaml(WORKFLOW), {"order_id": "A-1001"})

    console.print()
    table = Table(title="Steps", header_style="bold cyan")
    table.add_column("Step")
    table.add_column("State")
    table.add_column("Attempts", justify="right")
    for outcome in result.step_results.values():
        table.add_row(outcome.step_id, outcome.state.value, str(outcome.attempts))
    console.print(table)

    console.print(f"  Decision: [bold]{result.outputs.get('decision')}[/bold]")
    console.print(f"  Success:  [green]{result.success}[/green]")
    console.print(f"  Duration: {result.execution_time_ms:.0f}ms")
    console.print()


if __name__ == "__main__":
    main()
