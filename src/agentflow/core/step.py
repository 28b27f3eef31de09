"""Workflow step definitions."""

from __future__ import annotations

from dataclasses import dataclass, field

from agentflow.control.retry import RetryPolicy


@dataclass(frozen=True)
class InputRef:
    key: str
    optional: bool = False

    @classmethod
    def parse(cls, spec: str) -> "InputRef":
        if spec.endswith("?"):
            return cls(key=spec[:-1], optional=True)
        return cls(key=spec)

    def __str__(self) -> str:
        return f"{self.key}?" if self.optional else self.key


@dataclass(frozen=True)
class StepDefinition:
    """Binds an agent capability and action to data-bag inputs and outputs."""

    id: str
    agent: str  # name looked up in the AgentRegistry at run time
    action: str = ""
    inputs: tuple[InputRef, ...] = ()
    outputs: tuple[str, ...] = ()
    depends_on: frozenset[str] = field(default_factory=frozenset)
    parallel: bool = False
    condition: str | None = None
    timeout: float | None = None
    retry_policy: RetryPolicy | None = None

    @property
    def required_inputs(self) -> tuple[str, ...]:
        return tuple(ref.key for ref in self.inputs if not ref.optional)

    @property
    def optional_inputs(self) -> tuple[str, ...]:
        return tuple(ref.key for ref in self.inputs if ref.optional)

    @classmethod
    def from_config(cls, step_config: dict) -> "StepDefinition":
        retry = step_config.get("retry_policy")
        return cls(
            id=step_config["id"],
            agent=step_config["agent"],
            action=step_config.get("action", ""),
            inputs=tuple(InputRef.parse(s) for s in step_config.get("inputs", [])),
            outputs=tuple(step_config.get("outputs", [])),
            depends_on=frozenset(step_config.get("depends_on", [])),
            parallel=step_config.get("parallel", False),
            condition=step_config.get("condition"),
            timeout=step_config.get("timeout"),
            retry_policy=RetryPolicy.from_config(retry) if retry is not None else None,
        )

    def to_dict(self) -> dict:
        data: dict = {
            "id": self.id,
            "agent": self.agent,
            "action": self.action,
            "inputs": [str(ref) for ref in self.inputs],
            "outputs": list(self.outputs),
            "dependsOn": sorted(self.depends_on),
            "parallel": self.parallel,
        }
        if self.condition is not None:
            data["condition"] = self.condition
        if self.timeout is not None:
            data["timeout"] = self.timeout
        if self.retry_policy is not None:
            data["retryPolicy"] = self.retry_policy.to_dict()
        return data
