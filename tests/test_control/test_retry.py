"""Tests for RetryPolicy."""

from __future__ import annotations

import pytest

from agentflow.control.retry import RetryPolicy
from agentflow.core.errors import (
    AgentExecutionError,
    MissingInputError,
    StepTimeoutError,
    TransientAgentError,
)


class TestRetryPolicy:
    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.max_attempts == 1
        assert policy.retry_on == ("timeout", "transient")

    def test_exponential_backoff_is_capped(self):
        policy = RetryPolicy(max_retries=5, base_delay=1.0, max_delay=5.0)
        assert [policy.delay_for(n) for n in range(1, 5)] == [1.0, 2.0, 4.0, 5.0]

    def test_fixed_backoff(self):
        policy = RetryPolicy(max_retries=3, backoff="fixed", base_delay=0.5)
        assert [policy.delay_for(n) for n in range(1, 4)] == [0.5, 0.5, 0.5]

    def test_explicit_delays_repeat_the_last_entry(self):
        policy = RetryPolicy(max_retries=4, delays=(0.1, 0.5))
        assert [policy.delay_for(n) for n in range(1, 5)] == [0.1, 0.5, 0.5, 0.5]

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=-1)
        with pytest.raises(ValueError):
            RetryPolicy(backoff="linear")

    def test_classification(self):
        policy = RetryPolicy(max_retries=1)
        assert policy.is_retryable(StepTimeoutError("slow"))
        assert policy.is_retryable(TransientAgentError("flaky"))
        assert policy.is_retryable(AgentExecutionError("flaky", transient=True))
        assert not policy.is_retryable(AgentExecutionError("broken"))
        assert not policy.is_retryable(MissingInputError("gone"))
        assert not policy.is_retryable(RuntimeError("not a step error"))

    def test_custom_retry_on(self):
        policy = RetryPolicy(max_retries=1, retry_on=("agent",))
        assert policy.is_retryable(AgentExecutionError("broken"))
        assert not policy.is_retryable(StepTimeoutError("slow"))

    def test_from_config_and_to_dict(self):
        policy = RetryPolicy.from_config({"max_retries": 2, "backoff": "fixed", "delays": [1, 2]})
        assert policy.max_retries == 2
        assert policy.delays == (1, 2)
        assert policy.to_dict() == {
            "maxRetries": 2,
            "backoff": "fixed",
            "baseDelay": 0.5,
            "maxDelay": 30.0,
            "retryOn": ["timeout", "transient"],
            "delays": [1, 2],
        }

    def test_from_empty_config(self):
        assert RetryPolicy.from_config(None) == RetryPolicy()
