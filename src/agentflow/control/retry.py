"""Retry policy: attempt budget, backoff delays and retryable classification."""

from __future__ import annotations

from dataclasses import dataclass, field

from agentflow.core.errors import StepError

DEFAULT_RETRY_ON = ("timeout", "transient")


@dataclass(frozen=True)
class RetryPolicy:
    """
    ``max_retries`` counts re-attempts, so a step runs at most ``max_retries + 1`` times.

    Delays come from ``delays`` when given (the last entry repeats), otherwise
    from ``base_delay`` with fixed or exponential backoff capped at ``max_delay``.
    """

    max_retries: int = 0
    backoff: str = "exponential"  # "exponential" | "fixed"
    base_delay: float = 0.5
    max_delay: float = 30.0
    delays: tuple[float, ...] | None = None
    retry_on: tuple[str, ...] = field(default=DEFAULT_RETRY_ON)

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.backoff not in ("exponential", "fixed"):
            raise ValueError(f"backoff must be 'exponential' or 'fixed', got '{self.backoff}'")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, attempt: int) -> float:
        """Delay before re-attempt number ``attempt`` (1-based)."""
        if self.delays:
            idx = min(attempt - 1, len(self.delays) - 1)
            return max(0.0, float(self.delays[idx]))
        if self.backoff == "fixed":
            delay = self.base_delay
        else:
            delay = self.base_delay * (2 ** (attempt - 1))
        return max(0.0, min(delay, self.max_delay))

    def is_retryable(self, error: BaseException) -> bool:
        kind = getattr(error, "kind", None) if isinstance(error, StepError) else None
        return kind is not None and kind in self.retry_on

    @classmethod
    def from_config(cls, config: dict | None) -> "RetryPolicy":
        config = config or {}
        delays = config.get("delays")
        return cls(
            max_retries=config.get("max_retries", 0),
            backoff=config.get("backoff", "exponential"),
            base_delay=config.get("base_delay", 0.5),
            max_delay=config.get("max_delay", 30.0),
            delays=tuple(delays) if delays else None,
            retry_on=tuple(config.get("retry_on") or DEFAULT_RETRY_ON),
        )

    def to_dict(self) -> dict:
        data: dict = {
            "maxRetries": self.max_retries,
            "backoff": self.backoff,
            "baseDelay": self.base_delay,
            "maxDelay": self.max_delay,
            "retryOn": list(self.retry_on),
        }
        if self.delays:
            data["delays"] = list(self.delays)
        return data
