"""Chat request/response models and the chat request builder."""

import base64
import json
import logging
import threading
from pathlib import Path
from typing import Annotated, Any, Iterable, Optional, Sequence

import httpx
from pydantic import BaseModel, ConfigDict, Field, SkipValidation, field_serializer, field_validator

from ..config import get_config
from ..errors import RoleNotFoundError
from ..tools.registry import Tool
from .common import OllamaRequest, StreamRecord, ThinkMode

log = logging.getLogger("ollamakit.models.chat")

ImageSource = bytes | str | Path


class ChatRole:
    """Built-in chat roles plus any custom roles registered at runtime.

    The role list is process-wide: a role registered through ``custom()`` is
    visible to every client and builder in the process.
    """

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"

    _lock = threading.Lock()
    _roles: list[str] = [SYSTEM, USER, ASSISTANT, TOOL]

    @classmethod
    def custom(cls, name: str) -> str:
        """Register a custom role name and return it."""
        if not name:
            raise ValueError("Role name cannot be empty")
        with cls._lock:
            if name not in cls._roles:
                cls._roles.append(name)
        return name

    @classmethod
    def all(cls) -> list[str]:
        with cls._lock:
            return list(cls._roles)

    @classmethod
    def get(cls, name: str) -> str:
        with cls._lock:
            if name not in cls._roles:
                raise RoleNotFoundError(f"Invalid role name: {name}")
        return name


class ToolCallFunction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)

    @field_validator("arguments", mode="before")
    @classmethod
    def _parse_arguments(cls, v: Any) -> Any:
        # Some models send arguments as a JSON-encoded string
        if v is None or v == "":
            return {}
        if isinstance(v, str):
            return json.loads(v)
        return v


class ToolCall(BaseModel):
    model_config = ConfigDict(extra="ignore")

    function: ToolCallFunction


class ChatMessage(BaseModel):
    """One conversation message. Images are raw bytes here, base64 on the wire."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    role: str
    content: str = ""
    thinking: Optional[str] = None
    tool_calls: Optional[list[ToolCall]] = None
    images: Optional[list[bytes]] = None
    tool_name: Optional[str] = None

    @field_validator("images", mode="before")
    @classmethod
    def _decode_images(cls, v: Any) -> Any:
        if v is None:
            return v
        return [base64.b64decode(img) if isinstance(img, str) else img for img in v]

    @field_serializer("images")
    def _encode_images(self, images: Optional[list[bytes]]) -> Optional[list[str]]:
        if images is None:
            return None
        return [base64.b64encode(img).decode("ascii") for img in images]


class ChatRequest(OllamaRequest):
    """Request body for POST /api/chat.

    ``tools`` carries local Tool bindings; only their specs are sent. When
    ``use_tools`` is true the client resolves tool calls locally.
    """

    messages: list[ChatMessage] = Field(default_factory=list)
    tools: Annotated[list[Tool], SkipValidation] = Field(default_factory=list, exclude=True)
    use_tools: bool = Field(default=True, exclude=True)

    def to_body(self, tools: Sequence[Tool] | None = None) -> dict[str, Any]:
        body = super().to_body()
        advertised = self.tools if tools is None else tools
        if self.use_tools and advertised:
            body["tools"] = [t.spec.to_ollama() for t in advertised]
        return body


class ChatResponse(StreamRecord):
    """One line of an /api/chat response."""

    message: Optional[ChatMessage] = None

    def thinking_fragment(self) -> str:
        return (self.message.thinking or "") if self.message else ""

    def response_fragment(self) -> str:
        return self.message.content if self.message else ""

    def record_tool_calls(self) -> list[ToolCall]:
        return list(self.message.tool_calls or []) if self.message else []


def load_image(source: ImageSource, url_timeout_s: Optional[float] = None) -> bytes:
    """Return image bytes from raw bytes, a file path or an http(s) URL."""
    if isinstance(source, bytes):
        return source
    text = str(source)
    if isinstance(source, str) and text.startswith(("http://", "https://")):
        log.debug("Downloading image %s", text)
        if url_timeout_s is None:
            url_timeout_s = get_config().image.url_timeout_s
        resp = httpx.get(text, timeout=url_timeout_s, follow_redirects=True)
        resp.raise_for_status()
        return resp.content
    return Path(text).read_bytes()


class ChatRequestBuilder:
    """Fluent builder for ChatRequest.

    The builder keeps its message list between ``build()`` calls so a
    conversation can be continued; ``reset()`` starts over.
    """

    def __init__(self, model: Optional[str] = None, image_url_timeout_s: Optional[float] = None):
        config = get_config()
        self.model = model or config.ollama.model
        self.image_url_timeout_s = config.image.url_timeout_s if image_url_timeout_s is None else image_url_timeout_s
        self._messages: list[ChatMessage] = []
        self._options: Optional[dict[str, Any]] = None
        self._format: Any = None
        self._template: Optional[str] = None
        self._stream = False
        self._keep_alive: Optional[str | int] = None
        self._think: Optional[ThinkMode] = None
        self._tools: list[Tool] = []
        self._use_tools = True

    def with_message(
        self,
        role: str,
        content: str,
        tool_calls: Optional[list[ToolCall]] = None,
        images: Iterable[ImageSource] = (),
    ) -> "ChatRequestBuilder":
        loaded = [load_image(img, self.image_url_timeout_s) for img in images]
        self._messages.append(ChatMessage(
            role=ChatRole.get(role),
            content=content,
            tool_calls=tool_calls,
            images=loaded or None,
        ))
        return self

    def with_messages(self, messages: Iterable[ChatMessage]) -> "ChatRequestBuilder":
        self._messages = list(messages)
        return self

    def with_options(self, options: dict[str, Any]) -> "ChatRequestBuilder":
        self._options = options
        return self

    def with_format(self, fmt: Any) -> "ChatRequestBuilder":
        self._format = fmt
        return self

    def with_json_format(self) -> "ChatRequestBuilder":
        return self.with_format("json")

    def with_template(self, template: str) -> "ChatRequestBuilder":
        self._template = template
        return self

    def with_streaming(self, stream: bool = True) -> "ChatRequestBuilder":
        self._stream = stream
        return self

    def with_keep_alive(self, keep_alive: str | int) -> "ChatRequestBuilder":
        self._keep_alive = keep_alive
        return self

    def with_thinking(self, think: ThinkMode | bool | str = ThinkMode.ENABLED) -> "ChatRequestBuilder":
        self._think = think if isinstance(think, ThinkMode) else ThinkMode(think)
        return self

    def with_tools(self, tools: Iterable[Tool]) -> "ChatRequestBuilder":
        self._tools = list(tools)
        return self

    def with_use_tools(self, use_tools: bool) -> "ChatRequestBuilder":
        self._use_tools = use_tools
        return self

    def reset(self) -> "ChatRequestBuilder":
        self._messages = []
        return self

    def build(self) -> ChatRequest:
        return ChatRequest(
            model=self.model,
            messages=list(self._messages),
            options=self._options,
            format=self._format,
            template=self._template,
            stream=self._stream,
            keep_alive=self._keep_alive,
            think=self._think,
            tools=list(self._tools),
            use_tools=self._use_tools,
        )
