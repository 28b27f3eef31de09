"""YAML/JSON loading for engine settings and workflow definition documents."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Union

import yaml
from pydantic import ValidationError

from agentflow.config.defaults import merge_with_defaults
from agentflow.config.schema import EngineSettings
from agentflow.core.errors import DefinitionError


class ConfigError(Exception):
    pass


def format_validation_error(error: ValidationError) -> str:
    lines = []
    for err in error.errors():
        loc = " → ".join(str(p) for p in err["loc"])
        lines.append(f"  - {loc}: {err['msg']}")
    return "\n".join(lines)


def _read_text(path: Path, error_cls: type[Exception]) -> str:
    if not path.exists():
        raise error_cls(f"File not found at '{path}'.")
    try:
        return path.read_text(encoding="utf-8")
    except PermissionError:
        raise error_cls(f"Permission denied reading '{path}'.")
    except OSError as e:
        raise error_cls(f"Error reading '{path}': {e}")


def parse_document(text: str, source: str, error_cls: type[Exception], as_json: bool = False) -> Any:
    """Parse YAML (a superset of JSON) or strict JSON text into Python data."""
    if as_json:
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise error_cls(f"JSON syntax error in '{source}' on line {e.lineno}, column {e.colno}: {e.msg}")
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        if hasattr(e, "problem_mark"):
            mark = e.problem_mark
            raise error_cls(
                f"YAML syntax error in '{source}' on line {mark.line + 1}, "
                f"column {mark.column + 1}: {e.problem}"
            )
        raise error_cls(f"YAML syntax error in '{source}': {e}")


class ConfigLoader:

    @staticmethod
    def load(path: Union[str, Path]) -> dict:
        path = Path(path)
        raw_config = parse_document(_read_text(path, ConfigError), str(path), ConfigError)

        if raw_config is None:
            raw_config = {}
        if not isinstance(raw_config, dict):
            raise ConfigError(
                f"Settings file '{path}' must be a YAML mapping (dict), "
                f"got {type(raw_config).__name__}."
            )
        return ConfigLoader.validate(raw_config)

    @staticmethod
    def validate(config: dict) -> dict:
        merged = merge_with_defaults(config)
        try:
            validated = EngineSettings(**merged)
        except ValidationError as e:
            raise ConfigError(f"Settings validation failed:\n{format_validation_error(e)}")
        return validated.model_dump()


def load_definition_document(path: Union[str, Path]) -> dict:
    """Read a workflow document from a ``.yaml``/``.yml``/``.json`` file."""
    path = Path(path)
    text = _read_text(path, DefinitionError)
    doc = parse_document(text, str(path), DefinitionError, as_json=path.suffix.lower() == ".json")
    if not isinstance(doc, dict):
        raise DefinitionError(
            f"Workflow file '{path}' must contain a mapping, got {type(doc).__name__}."
        )
    return doc
