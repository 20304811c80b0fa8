"""Tool definitions and the per-client tool registry."""

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping, Optional

from ..errors import ToolNotFoundError

log = logging.getLogger("ollamakit.tools.registry")

ToolFunction = Callable[[dict[str, Any]], Any]


@dataclass(frozen=True)
class ToolParameter:
    name: str
    type: str = "string"
    description: str = ""
    required: bool = False
    enum: Optional[tuple[str, ...]] = None

    def to_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.type, "description": self.description}
        if self.enum:
            schema["enum"] = list(self.enum)
        return schema


@dataclass(frozen=True)
class ToolSpec:
    """Name, description and ordered parameters advertised to the model."""

    name: str
    description: str = ""
    parameters: tuple[ToolParameter, ...] = field(default_factory=tuple)

    @classmethod
    def from_json_schema(cls, name: str, description: str, schema: Mapping[str, Any] | None) -> "ToolSpec":
        """Build a spec from an object JSON schema (``properties`` + ``required``)."""
        schema = schema or {}
        required = set(schema.get("required") or ())
        params = []
        for pname, prop in (schema.get("properties") or {}).items():
            enum = prop.get("enum")
            params.append(ToolParameter(
                name=pname,
                type=prop.get("type", "string"),
                description=prop.get("description", ""),
                required=pname in required,
                enum=tuple(str(v) for v in enum) if enum else None,
            ))
        return cls(name=name, description=description, parameters=tuple(params))

    def to_ollama(self) -> dict[str, Any]:
        """Render in Ollama tool-calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {p.name: p.to_schema() for p in self.parameters},
                    "required": [p.name for p in self.parameters if p.required],
                },
            },
        }


@dataclass(frozen=True)
class Tool:
    """A tool spec bound to the local function that executes it.

    ``function`` receives the arguments dict from the model and may be a
    plain function or a coroutine function.
    """

    spec: ToolSpec
    function: ToolFunction

    @property
    def name(self) -> str:
        return self.spec.name


class ToolRegistry:
    """Name -> Tool table. Safe to use from several threads or tasks."""

    def __init__(self, tools: Iterable[Tool] = ()):
        self._lock = threading.RLock()
        self._tools: dict[str, Tool] = {}
        self.register_all(tools)

    def register(self, tool: Tool) -> None:
        with self._lock:
            if tool.name in self._tools:
                log.debug("Replacing registered tool %s", tool.name)
            self._tools[tool.name] = tool

    def register_all(self, tools: Iterable[Tool]) -> None:
        with self._lock:
            for tool in tools:
                self.register(tool)

    def get(self, name: str) -> Tool:
        with self._lock:
            try:
                return self._tools[name]
            except KeyError:
                raise ToolNotFoundError(name) from None

    def list(self) -> list[Tool]:
        with self._lock:
            return list(self._tools.values())

    def clear(self) -> None:
        with self._lock:
            self._tools.clear()

    def snapshot(self) -> Mapping[str, Tool]:
        """Read-only copy, unaffected by later registrations."""
        with self._lock:
            return MappingProxyType(dict(self._tools))

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tools

    def __len__(self) -> int:
        with self._lock:
            return len(self._tools)
