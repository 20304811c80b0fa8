from .chat import ChatMessage, ChatRequest, ChatRequestBuilder, ChatResponse, ChatRole, ToolCall, ToolCallFunction
from .common import ErrorResponse, OllamaRequest, StreamRecord, ThinkMode
from .embed import EmbedRequest, EmbedRequestBuilder, EmbedResponse
from .generate import GenerateRequest, GenerateRequestBuilder, GenerateResponse
from .options import OptionsBuilder
from .response import (
    ChatResult,
    GenerationResult,
    Model,
    ModelDetail,
    ModelMeta,
    ModelPullStatus,
    RunningModel,
    StreamState,
)

__all__ = [
    "ChatMessage",
    "ChatRequest",
    "ChatRequestBuilder",
    "ChatResponse",
    "ChatResult",
    "ChatRole",
    "EmbedRequest",
    "EmbedRequestBuilder",
    "EmbedResponse",
    "ErrorResponse",
    "GenerateRequest",
    "GenerateRequestBuilder",
    "GenerateResponse",
    "GenerationResult",
    "Model",
    "ModelDetail",
    "ModelMeta",
    "ModelPullStatus",
    "OllamaRequest",
    "OptionsBuilder",
    "RunningModel",
    "StreamRecord",
    "StreamState",
    "ThinkMode",
    "ToolCall",
    "ToolCallFunction",
]
