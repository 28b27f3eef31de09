"""Agents for the sum pipeline example."""

from agentflow import AgentRegistry

registry = AgentRegistry()


@registry.agent("math")
async def math_agent(action: str, inputs: dict) -> dict:
    if action == "seed":
        return {"x": 1}
    if action == "add_one":
        return {"y": inputs["x"] + 1}
    if action == "add_two":
        return {"z": inputs["x"] + 2}
    if action == "sum":
        return {"sum": inputs["y"] + inputs["z"]}
    raise ValueError(f"unknown action '{action}'")
