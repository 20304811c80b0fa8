"""ollamakit exception hierarchy."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models.response import GenerationResult


class OllamaKitError(Exception):
    """Base exception for all ollamakit errors."""


class ConfigError(OllamaKitError):
    """Invalid or missing configuration."""


class TransportError(OllamaKitError):
    """Connection refused, timeout or DNS failure talking to the server."""


class ServerError(OllamaKitError):
    """The server answered with a non-200 status."""

    def __init__(self, status: int, detail: str) -> None:
        self.status = status
        self.detail = detail
        super().__init__(f"{status} - {detail}")

    @property
    def is_not_found(self) -> bool:
        return self.status == 404


class StreamError(OllamaKitError):
    """Reading a response body stopped before the terminal record.

    ``partial`` holds whatever was accumulated up to the failure.
    """

    def __init__(self, message: str, partial: GenerationResult | None = None) -> None:
        self.partial = partial
        super().__init__(message)


class DecodeError(StreamError):
    """A body line could not be decoded into the expected record."""


class StreamCancelledError(StreamError):
    """The caller cancelled an in-flight streaming read."""


class ToolError(OllamaKitError):
    """Base for tool resolution failures."""


class ToolNotFoundError(ToolError):
    """The model requested a tool with no matching registration."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool '{name}' not found.")


class ToolInvocationError(ToolError):
    """A registered tool function raised. The original exception is ``__cause__``."""

    def __init__(self, name: str, arguments: dict) -> None:
        self.name = name
        self.arguments = arguments
        super().__init__(f"Tool '{name}' failed with arguments {sorted(arguments)}")


class RoleNotFoundError(OllamaKitError):
    """Unknown chat role name."""


class MCPToolError(OllamaKitError):
    """MCP tool execution failed."""


class MCPClientError(OllamaKitError):
    """MCP client connection or protocol error."""
