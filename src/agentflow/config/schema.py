"""Pydantic models for workflow documents and engine settings."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_ID_CHARS = set("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-.")


class RetryPolicyConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    max_retries: int = Field(0, alias="maxRetries")
    backoff: str = "exponential"
    base_delay: float = Field(0.5, alias="baseDelay")
    max_delay: float = Field(30.0, alias="maxDelay")
    delays: Optional[list[float]] = None
    retry_on: list[str] = Field(default_factory=lambda: ["timeout", "transient"], alias="retryOn")

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"maxRetries must be >= 0, got {v}")
        return v

    @field_validator("backoff")
    @classmethod
    def validate_backoff(cls, v: str) -> str:
        allowed = ("exponential", "fixed")
        if v not in allowed:
            raise ValueError(f"backoff must be one of {allowed}, got '{v}'")
        return v

    @field_validator("base_delay", "max_delay")
    @classmethod
    def validate_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"delays must be >= 0, got {v}")
        return v

    @field_validator("delays")
    @classmethod
    def validate_delays(cls, v: list[float] | None) -> list[float] | None:
        if v is not None and any(d < 0 for d in v):
            raise ValueError("delays entries must be >= 0")
        return v

    @field_validator("retry_on")
    @classmethod
    def validate_retry_on(cls, v: list[str]) -> list[str]:
        allowed = ("timeout", "transient", "agent", "unknown_agent", "missing_input", "missing_output")
        for kind in v:
            if kind not in allowed:
                raise ValueError(f"retryOn entries must be among {allowed}, got '{kind}'")
        return v


class StepConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    id: str
    agent: str
    action: str = ""
    inputs: list[str] = Field(default_factory=list)
    outputs: list[str] = Field(default_factory=list)
    depends_on: list[str] = Field(default_factory=list, alias="dependsOn")
    parallel: bool = False
    condition: Optional[str] = None
    timeout: Optional[float] = None
    retry_policy: Optional[RetryPolicyConfig] = Field(None, alias="retryPolicy")

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not v or not set(v) <= _ID_CHARS:
            raise ValueError(f"step id must be non-empty and use [A-Za-z0-9_.-], got '{v}'")
        return v

    @field_validator("agent")
    @classmethod
    def validate_agent(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("agent must not be empty")
        return v

    @field_validator("inputs", "outputs")
    @classmethod
    def validate_keys(cls, v: list[str]) -> list[str]:
        seen = set()
        for key in v:
            name = key[:-1] if key.endswith("?") else key
            if not name or name.endswith("?"):
                raise ValueError(f"invalid data key '{key}'")
            if name in seen:
                raise ValueError(f"data key '{name}' listed twice")
            seen.add(name)
        return v

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError(f"timeout must be > 0, got {v}")
        return v

    @model_validator(mode="after")
    def validate_outputs_not_optional(self) -> "StepConfig":
        for key in self.outputs:
            if key.endswith("?"):
                raise ValueError(f"output '{key}' cannot be marked optional")
        return self


class WorkflowConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    name: str = "workflow"
    version: str = "1.0"
    description: str = ""
    timeout: Optional[float] = None
    retry_policy: Optional[RetryPolicyConfig] = Field(None, alias="retryPolicy")
    steps: list[StepConfig]

    @field_validator("version", mode="before")
    @classmethod
    def coerce_version(cls, v):
        # YAML reads `version: 1.0` as a float
        return str(v) if isinstance(v, (int, float)) else v

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError(f"timeout must be > 0, got {v}")
        return v

    @field_validator("steps")
    @classmethod
    def validate_steps(cls, v: list[StepConfig]) -> list[StepConfig]:
        if not v:
            raise ValueError("a workflow needs at least one step")
        return v


class ControlConfig(BaseModel):
    step_timeout: Optional[float] = None
    max_concurrency: Optional[int] = None
    on_step_failure: str = "continue"
    on_unreachable: str = "abort"
    optional_inputs_tolerate_failure: bool = False
    retry: RetryPolicyConfig = Field(default_factory=RetryPolicyConfig)

    @field_validator("on_step_failure")
    @classmethod
    def validate_on_step_failure(cls, v: str) -> str:
        allowed = ("continue", "abort")
        if v not in allowed:
            raise ValueError(f"on_step_failure must be one of {allowed}, got '{v}'")
        return v

    @field_validator("on_unreachable")
    @classmethod
    def validate_on_unreachable(cls, v: str) -> str:
        allowed = ("abort", "continue")
        if v not in allowed:
            raise ValueError(f"on_unreachable must be one of {allowed}, got '{v}'")
        return v

    @field_validator("max_concurrency")
    @classmethod
    def validate_max_concurrency(cls, v: int | None) -> int | None:
        if v is not None and v < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {v}")
        return v


class ObserveConfig(BaseModel):
    trace: bool = True
    log_level: str = "info"
    log_format: str = "pretty"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = ("debug", "info", "warning", "error")
        if v not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got '{v}'")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        allowed = ("pretty", "json")
        if v not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got '{v}'")
        return v


class DashboardConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8420


class EngineSettings(BaseModel):
    control: ControlConfig = Field(default_factory=ControlConfig)
    observe: ObserveConfig = Field(default_factory=ObserveConfig)
    dashboard: DashboardConfig = Field(default_factory=DashboardConfig)
