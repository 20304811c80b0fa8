"""Async client for the Ollama HTTP API with tool calling and MCP tools."""

from .client import Agent, MCPBridge, MCPToolset, OllamaClient
from .config import AppConfig, get_config, reset_config
from .errors import (
    ConfigError,
    DecodeError,
    MCPClientError,
    MCPToolError,
    OllamaKitError,
    RoleNotFoundError,
    ServerError,
    StreamCancelledError,
    StreamError,
    ToolError,
    ToolInvocationError,
    ToolNotFoundError,
    TransportError,
)
from .models import (
    ChatMessage,
    ChatRequest,
    ChatRequestBuilder,
    ChatResult,
    ChatRole,
    EmbedRequest,
    EmbedRequestBuilder,
    EmbedResponse,
    GenerateRequest,
    GenerateRequestBuilder,
    GenerationResult,
    OptionsBuilder,
    StreamState,
    ThinkMode,
    ToolCall,
)
from .streaming import ResultStreamer, StreamAssembler, StreamChunk, console_sink
from .tools import Tool, ToolParameter, ToolRegistry, ToolSpec, load_tools
from .tools.resolver import ToolCallResolver

__version__ = "0.1.0"

__all__ = [
    "Agent",
    "AppConfig",
    "ChatMessage",
    "ChatRequest",
    "ChatRequestBuilder",
    "ChatResult",
    "ChatRole",
    "ConfigError",
    "DecodeError",
    "EmbedRequest",
    "EmbedRequestBuilder",
    "EmbedResponse",
    "GenerateRequest",
    "GenerateRequestBuilder",
    "GenerationResult",
    "MCPBridge",
    "MCPClientError",
    "MCPToolError",
    "MCPToolset",
    "OllamaClient",
    "OllamaKitError",
    "OptionsBuilder",
    "ResultStreamer",
    "RoleNotFoundError",
    "ServerError",
    "StreamAssembler",
    "StreamCancelledError",
    "StreamChunk",
    "StreamError",
    "StreamState",
    "ThinkMode",
    "Tool",
    "ToolCall",
    "ToolCallResolver",
    "ToolError",
    "ToolInvocationError",
    "ToolNotFoundError",
    "ToolParameter",
    "ToolRegistry",
    "ToolSpec",
    "TransportError",
    "console_sink",
    "get_config",
    "load_tools",
    "reset_config",
]
