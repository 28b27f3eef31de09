"""Tests for settings loading and validation."""

from __future__ import annotations

import pytest
import yaml

from agentflow.config.defaults import DEFAULTS, merge_with_defaults
from agentflow.config.loader import ConfigError, ConfigLoader


class TestDefaults:
    def test_merge_keeps_untouched_defaults(self):
        merged = merge_with_defaults({"control": {"max_concurrency": 4}})
        assert merged["control"]["max_concurrency"] == 4
        assert merged["control"]["on_step_failure"] == "continue"
        assert merged["dashboard"]["port"] == 8420

    def test_merge_does_not_mutate_defaults(self):
        merge_with_defaults({"control": {"retry": {"max_retries": 9}}})
        assert DEFAULTS["control"]["retry"] == {}


class TestConfigLoader:
    def test_validate_empty(self):
        settings = ConfigLoader.validate({})
        assert settings["control"]["on_unreachable"] == "abort"
        assert settings["observe"]["log_format"] == "pretty"

    def test_load_file(self, tmp_path):
        path = tmp_path / "agentflow.yaml"
        path.write_text(yaml.dump({"control": {"step_timeout": 5, "retry": {"maxRetries": 2}}}))
        settings = ConfigLoader.load(path)
        assert settings["control"]["step_timeout"] == 5
        assert settings["control"]["retry"]["max_retries"] == 2

    def test_load_empty_file(self, tmp_path):
        path = tmp_path / "agentflow.yaml"
        path.write_text("")
        assert ConfigLoader.load(path)["dashboard"]["host"] == "127.0.0.1"

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            ConfigLoader.load(tmp_path / "nope.yaml")

    def test_load_non_mapping(self, tmp_path):
        path = tmp_path / "agentflow.yaml"
        path.write_text("- a\n")
        with pytest.raises(ConfigError, match="must be a YAML mapping"):
            ConfigLoader.load(path)

    def test_yaml_syntax_error_has_position(self, tmp_path):
        path = tmp_path / "agentflow.yaml"
        path.write_text("control:\n  step_timeout: [1\n")
        with pytest.raises(ConfigError, match="line"):
            ConfigLoader.load(path)

    @pytest.mark.parametrize(
        "override",
        [
            {"control": {"max_concurrency": 0}},
            {"control": {"on_step_failure": "explode"}},
            {"control": {"on_unreachable": "ignore"}},
            {"control": {"retry": {"backoff": "linear"}}},
            {"control": {"retry": {"retry_on": ["everything"]}}},
            {"observe": {"log_level": "loud"}},
            {"observe": {"log_format": "xml"}},
        ],
    )
    def test_invalid_settings(self, override):
        with pytest.raises(ConfigError, match="Settings validation failed"):
            ConfigLoader.validate(override)


class TestEngineFromSettingsFile:
    def test_policies_come_from_file(self, tmp_path, math_registry):
        from agentflow.control.policy import FailurePolicy
        from agentflow.core.engine import WorkflowEngine

        path = tmp_path / "agentflow.yaml"
        path.write_text("control:\n  on_step_failure: abort\n  max_concurrency: 3\n  step_timeout: 2.5\n")
        engine = WorkflowEngine.from_settings_file(path, math_registry)
        assert engine.failure_policy == FailurePolicy.ABORT
        assert engine.max_concurrency == 3
        assert engine.executor.default_timeout == 2.5
