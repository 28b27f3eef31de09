"""Default engine settings."""

from __future__ import annotations

import copy

DEFAULTS = {
    "control": {
        "step_timeout": None,
        "max_concurrency": None,
        "on_step_failure": "continue",
        "on_unreachable": "abort",
        "optional_inputs_tolerate_failure": False,
        # RetryPolicyConfig fills these in, under either key style
        "retry": {},
    },
    "observe": {
        "trace": True,
        "log_level": "info",
        "log_format": "pretty",
    },
    "dashboard": {
        "host": "127.0.0.1",
        "port": 8420,
    },
}


def merge_with_defaults(config: dict) -> dict:
    return _deep_merge(DEFAULTS, config)


def _deep_merge(base: dict, override: dict) -> dict:
    """Layer ``override`` over ``base``, merging nested dicts key by key. Returns a new dict."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged
