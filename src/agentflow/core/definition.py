"""Immutable workflow definitions parsed from a validated document."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

from pydantic import ValidationError

from agentflow.config.loader import (
    format_validation_error,
    load_definition_document,
    parse_document,
)
from agentflow.config.schema import WorkflowConfig
from agentflow.control.retry import RetryPolicy
from agentflow.core.errors import DefinitionError
from agentflow.core.step import StepDefinition


@dataclass(frozen=True)
class WorkflowDefinition:
    """
    Declarative workflow: steps in declaration order plus run-wide defaults.

    Usage::

        definition = WorkflowDefinition.from_file("pipeline.yaml")
        result = engine.run(definition, {"start": 1})
    """

    name: str
    steps: tuple[StepDefinition, ...]
    version: str = "1.0"
    description: str = ""
    timeout: float | None = None
    retry_policy: RetryPolicy | None = None

    def __post_init__(self):
        if not self.steps:
            raise DefinitionError(f"Workflow '{self.name}' has no steps")
        seen: set[str] = set()
        for step in self.steps:
            if step.id in seen:
                raise DefinitionError(f"Duplicate step id '{step.id}'", step_id=step.id)
            seen.add(step.id)

    @property
    def step_ids(self) -> list[str]:
        return [s.id for s in self.steps]

    def get_step(self, step_id: str) -> StepDefinition:
        for step in self.steps:
            if step.id == step_id:
                return step
        raise KeyError(f"Step '{step_id}' not found in workflow '{self.name}'")

    @classmethod
    def from_dict(cls, document: dict[str, Any]) -> "WorkflowDefinition":
        if not isinstance(document, dict):
            raise DefinitionError(
                f"Workflow document must be a mapping, got {type(document).__name__}"
            )
        try:
            validated = WorkflowConfig.model_validate(document)
        except ValidationError as e:
            raise DefinitionError(f"Workflow validation failed:\n{format_validation_error(e)}")

        config = validated.model_dump()
        retry = config.get("retry_policy")
        return cls(
            name=config["name"],
            version=config["version"],
            description=config["description"],
            timeout=config["timeout"],
            retry_policy=RetryPolicy.from_config(retry) if retry is not None else None,
            steps=tuple(StepDefinition.from_config(s) for s in config["steps"]),
        )

    @classmethod
    def from_yaml(cls, text: str) -> "WorkflowDefinition":
        return cls.from_dict(parse_document(text, "<string>", DefinitionError))

    @classmethod
    def from_json(cls, text: str) -> "WorkflowDefinition":
        return cls.from_dict(parse_document(text, "<string>", DefinitionError, as_json=True))

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "WorkflowDefinition":
        return cls.from_dict(load_definition_document(path))

    def to_dict(self) -> dict:
        data: dict = {
            "name": self.name,
            "version": self.version,
            "steps": [s.to_dict() for s in self.steps],
        }
        if self.description:
            data["description"] = self.description
        if self.timeout is not None:
            data["timeout"] = self.timeout
        if self.retry_policy is not None:
            data["retryPolicy"] = self.retry_policy.to_dict()
        return data

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
