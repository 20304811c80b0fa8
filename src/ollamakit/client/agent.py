"""Agent: a named assistant with a tool set and a persistent conversation."""

import dataclasses
import logging
from pathlib import Path
from typing import Iterable, Optional

from ..config import get_config
from ..errors import ConfigError
from ..models.chat import ChatMessage, ChatRequest, ChatRole
from ..streaming import Sink
from ..tools.loader import read_definition_file, tools_from_definitions
from ..tools.registry import Tool
from .api import OllamaClient

log = logging.getLogger("ollamakit.client.agent")

SYSTEM_PROMPT = (
    "You are a helpful AI assistant named {name}. "
    "Your actions are limited to using the available tools. {custom}{tools}"
)


class Agent:
    """Runs user turns through ``client.chat`` with tools enabled, keeping history."""

    def __init__(
        self,
        name: str,
        client: OllamaClient,
        model: str,
        custom_prompt: Optional[str] = None,
        tools: Iterable[Tool] = (),
        owns_client: bool = False,
    ):
        self.name = name
        self.client = client
        self.model = model
        self.custom_prompt = custom_prompt
        self.tools = list(tools)
        self.history: list[ChatMessage] = []
        self._owns_client = owns_client

    @classmethod
    def load(cls, path: str | Path) -> "Agent":
        """Build an agent from a YAML file.

        Expected keys: ``name``, optional ``model`` (defaults to the configured
        model), ``host``, ``customPrompt``,
        ``requestTimeoutSeconds`` and ``tools`` (each with ``name``,
        ``description``, ``parameters`` and ``function: "module:attr"``).
        """
        spec = read_definition_file(path)
        if not isinstance(spec, dict):
            raise ConfigError(f"{path}: agent definition must be a mapping")
        if not spec.get("name"):
            raise ConfigError(f"{path}: agent definition is missing 'name'")

        config = get_config()
        model = spec.get("model") or config.ollama.model
        overrides = {}
        if spec.get("host"):
            overrides["base_url"] = spec["host"]
        if spec.get("requestTimeoutSeconds"):
            raw = spec["requestTimeoutSeconds"]
            try:
                overrides["timeout_s"] = float(raw)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"{path}: requestTimeoutSeconds must be a number, got {raw!r}") from e
        config = dataclasses.replace(config, ollama=dataclasses.replace(config.ollama, **overrides))

        tools = tools_from_definitions(spec.get("tools") or [])
        log.info("Loaded agent %s (%s) with %d tools", spec["name"], model, len(tools))
        return cls(
            spec["name"],
            OllamaClient(config=config),
            model,
            custom_prompt=spec.get("customPrompt"),
            tools=tools,
            owns_client=True,
        )

    def system_prompt(self) -> str:
        tools = ""
        if self.tools:
            lines = [f"- {t.name}: {t.spec.description or 'No description'}" for t in self.tools]
            tools = "\nYou have access to the following tools:\n" + "\n".join(lines)
        return SYSTEM_PROMPT.format(name=self.name, custom=self.custom_prompt or "", tools=tools)

    async def interact(
        self,
        text: str,
        thinking_sink: Optional[Sink] = None,
        response_sink: Optional[Sink] = None,
    ) -> str:
        """Send one user turn and return the assistant's reply."""
        if not self.history:
            self.history.append(ChatMessage(role=ChatRole.SYSTEM, content=self.system_prompt()))
        self.history.append(ChatMessage(role=ChatRole.USER, content=text))

        request = ChatRequest(model=self.model, messages=self.history, tools=self.tools, use_tools=True)
        reply = await self.client.chat(request, thinking_sink, response_sink)
        self.history = reply.history
        return reply.response

    def reset(self) -> None:
        self.history = []

    async def close(self) -> None:
        if self._owns_client:
            await self.client.close()
