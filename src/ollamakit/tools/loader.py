"""Load tool definitions from JSON or YAML files."""

import importlib
import json
import logging
from pathlib import Path
from typing import Any, Mapping

import yaml

from ..errors import ConfigError
from .registry import Tool, ToolFunction, ToolSpec

log = logging.getLogger("ollamakit.tools.loader")


def read_definition_file(path: str | Path) -> Any:
    """Parse a .json, .yaml or .yml file."""
    path = Path(path)
    try:
        text = path.read_text()
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            return yaml.safe_load(text)
        return json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to parse {path}: {e}") from e


def spec_from_definition(raw: Mapping[str, Any]) -> ToolSpec:
    """Build a ToolSpec from either the Ollama ``{"type": "function", "function": {...}}``
    shape or a flat ``{name, description, parameters}`` mapping."""
    body = raw["function"] if isinstance(raw.get("function"), Mapping) else raw
    if not body.get("name"):
        raise ConfigError(f"Tool definition without a name: {raw!r}")
    return ToolSpec.from_json_schema(body["name"], body.get("description", ""), body.get("parameters"))


def resolve_function(ref: str) -> ToolFunction:
    """Import ``"package.module:attr"``."""
    module_name, _, attr = ref.partition(":")
    if not module_name or not attr:
        raise ConfigError(f"Function reference must look like 'module:attr', got {ref!r}")
    try:
        func = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as e:
        raise ConfigError(f"Cannot import tool function {ref!r}: {e}") from e
    if not callable(func):
        raise ConfigError(f"Tool function {ref!r} is not callable")
    return func


def tools_from_definitions(
    definitions: Any, functions: Mapping[str, ToolFunction] | None = None
) -> list[Tool]:
    """Bind each definition to ``functions[name]`` or to its ``function`` import reference."""
    if not isinstance(definitions, list):
        raise ConfigError("Tool definitions must be a list")
    functions = functions or {}
    tools = []
    for raw in definitions:
        if not isinstance(raw, Mapping):
            raise ConfigError(f"Tool definition must be a mapping, got {type(raw).__name__}")
        spec = spec_from_definition(raw)
        func = functions.get(spec.name)
        if func is None:
            ref = raw.get("function")
            if not isinstance(ref, str):
                raise ConfigError(f"No function provided for tool '{spec.name}'")
            func = resolve_function(ref)
        tools.append(Tool(spec=spec, function=func))
    return tools


def load_tools(path: str | Path, functions: Mapping[str, ToolFunction] | None = None) -> list[Tool]:
    """Load tools from a JSON/YAML file holding a list of tool definitions."""
    tools = tools_from_definitions(read_definition_file(path), functions)
    log.info("Loaded %d tools from %s", len(tools), path)
    return tools
