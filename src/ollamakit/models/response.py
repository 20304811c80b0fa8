"""Result types returned by the client."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from .chat import ChatMessage, ToolCall

M = TypeVar("M", bound=BaseModel)


class StreamState(str, Enum):
    PENDING = "pending"
    STREAMING = "streaming"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class GenerationResult:
    """Final text and metadata of one generate/chat call."""

    response: str = ""
    thinking: Optional[str] = None
    http_status: int = 200
    elapsed_seconds: float = 0.0
    done: bool = False
    state: StreamState = StreamState.PENDING
    model: Optional[str] = None
    created_at: Optional[str] = None
    done_reason: Optional[str] = None
    context: Optional[tuple[int, ...]] = None
    total_duration: Optional[int] = None
    load_duration: Optional[int] = None
    prompt_eval_count: Optional[int] = None
    prompt_eval_duration: Optional[int] = None
    eval_count: Optional[int] = None
    eval_duration: Optional[int] = None
    tool_calls: tuple[ToolCall, ...] = field(default_factory=tuple)

    def structured(self) -> dict[str, Any] | list[Any]:
        """Parse the response text as a JSON object or array.

        Use with requests that set ``format``.
        """
        text = self.response.strip()
        if not text:
            raise ValueError("Response is empty, cannot parse structured output")
        data = json.loads(text)
        if not isinstance(data, (dict, list)):
            raise ValueError(f"Expected a JSON object or array, got {type(data).__name__}")
        return data

    def as_model(self, cls: type[M]) -> M:
        """Validate the response text into ``cls``."""
        return cls.model_validate_json(self.response)


@dataclass
class ChatResult:
    """Outcome of a chat call: final reply plus the whole conversation."""

    result: GenerationResult
    message: ChatMessage
    history: list[ChatMessage]

    @property
    def response(self) -> str:
        return self.message.content


class ModelMeta(BaseModel):
    model_config = ConfigDict(extra="ignore")

    parent_model: Optional[str] = None
    format: Optional[str] = None
    family: Optional[str] = None
    families: Optional[list[str]] = None
    parameter_size: Optional[str] = None
    quantization_level: Optional[str] = None


class Model(BaseModel):
    """Entry of GET /api/tags."""

    model_config = ConfigDict(extra="ignore")

    name: str
    model: Optional[str] = None
    modified_at: Optional[str] = None
    size: Optional[int] = None
    digest: Optional[str] = None
    details: Optional[ModelMeta] = None


class RunningModel(BaseModel):
    """Entry of GET /api/ps."""

    model_config = ConfigDict(extra="ignore")

    name: str
    model: Optional[str] = None
    size: Optional[int] = None
    digest: Optional[str] = None
    details: Optional[ModelMeta] = None
    expires_at: Optional[str] = None
    size_vram: Optional[int] = None


class ModelDetail(BaseModel):
    """Body of POST /api/show."""

    model_config = ConfigDict(extra="ignore", protected_namespaces=())

    license: Optional[str] = None
    modelfile: Optional[str] = None
    parameters: Optional[str] = None
    template: Optional[str] = None
    system: Optional[str] = None
    details: Optional[ModelMeta] = None
    model_info: dict[str, Any] = Field(default_factory=dict)
    capabilities: list[str] = Field(default_factory=list)
    modified_at: Optional[str] = None


class ModelPullStatus(BaseModel):
    """One line of POST /api/pull."""

    model_config = ConfigDict(extra="ignore")

    status: Optional[str] = None
    digest: Optional[str] = None
    total: Optional[int] = None
    completed: Optional[int] = None
    error: Optional[str] = None
