"""MCP Bridge — exposes tools of MCP servers (stdio transport) as ollamakit tools."""

import json
import logging
import os
from datetime import timedelta
from pathlib import Path
from typing import Any

from mcp import ClientSession
from mcp.client.stdio import StdioServerParameters, stdio_client

from ..errors import ConfigError, MCPClientError, MCPToolError
from ..tools.loader import read_definition_file
from ..tools.registry import Tool, ToolSpec

log = logging.getLogger("ollamakit.client.bridge")


class MCPBridge:
    """Manages connection to an MCP server over stdio."""

    def __init__(
        self,
        command: str,
        args: list[str],
        env: dict[str, str] | None = None,
        name: str | None = None,
        request_timeout_s: float = 30.0,
    ):
        # Forward parent environment to server subprocess
        server_env = {**os.environ, **(env or {})}
        self.params = StdioServerParameters(command=command, args=args, env=server_env)
        self.name = name or command
        self.request_timeout_s = request_timeout_s
        self._ctx = None
        self.session: ClientSession | None = None

    async def connect(self) -> "MCPBridge":
        try:
            ctx = stdio_client(self.params)
            self.read, self.write = await ctx.__aenter__()
            self._ctx = ctx
            session = ClientSession(self.read, self.write)
            await session.__aenter__()
            self.session = session
            await session.initialize()
        except (OSError, RuntimeError) as e:
            await self.close()
            raise MCPClientError(f"Failed to start MCP server {self.name!r}: {e}") from e
        except BaseException:
            await self.close()
            raise
        log.info("Connected to MCP server %s", self.name)
        return self

    async def close(self):
        if self.session:
            await self.session.__aexit__(None, None, None)
            self.session = None
        if self._ctx:
            await self._ctx.__aexit__(None, None, None)
            self._ctx = None
        log.info("Disconnected from MCP server %s", self.name)

    def _require_session(self) -> ClientSession:
        if self.session is None:
            raise MCPClientError(f"MCP server {self.name!r} is not connected")
        return self.session

    async def list_tools(self) -> list:
        result = await self._require_session().list_tools()
        return result.tools

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        log.debug("Calling tool: %s(%s)", name, json.dumps(arguments, default=str)[:200])
        result = await self._require_session().call_tool(
            name, arguments, read_timeout_seconds=timedelta(seconds=self.request_timeout_s)
        )
        return result


def result_text(result: Any) -> str:
    """Join the text content blocks of an MCP tool result."""
    parts = [block.text for block in (getattr(result, "content", None) or []) if getattr(block, "text", None)]
    return "\n".join(parts)


def mcp_tool_to_tool(bridge: MCPBridge, mcp_tool: Any) -> Tool:
    """Wrap an MCP tool definition as a Tool that calls through ``bridge``."""
    spec = ToolSpec.from_json_schema(mcp_tool.name, mcp_tool.description or "", mcp_tool.inputSchema)

    async def call(arguments: dict[str, Any]) -> str:
        result = await bridge.call_tool(spec.name, arguments)
        text = result_text(result)
        if result.isError:
            raise MCPToolError(f"MCP tool '{spec.name}' on {bridge.name} failed: {text}")
        return text

    return Tool(spec=spec, function=call)


class MCPToolset:
    """Connections to every server of an ``mcpServers`` config file, plus their tools."""

    def __init__(self, bridges: list[MCPBridge], tools: list[Tool]):
        self.bridges = bridges
        self.tools = tools

    @classmethod
    async def from_config(cls, path: str | Path, request_timeout_s: float = 30.0) -> "MCPToolset":
        config = read_definition_file(path)
        servers = config.get("mcpServers") if isinstance(config, dict) else None
        if not isinstance(servers, dict):
            raise ConfigError(f"{path}: expected an 'mcpServers' mapping")

        toolset = cls([], [])
        try:
            for name, server in servers.items():
                if not isinstance(server, dict) or not server.get("command"):
                    raise ConfigError(f"{path}: MCP server {name!r} has no command")
                bridge = MCPBridge(
                    server["command"],
                    list(server.get("args") or []),
                    env=server.get("env"),
                    name=name,
                    request_timeout_s=request_timeout_s,
                )
                toolset.bridges.append(bridge)
                await bridge.connect()
                for mcp_tool in await bridge.list_tools():
                    toolset.tools.append(mcp_tool_to_tool(bridge, mcp_tool))
        except BaseException:
            await toolset.aclose()
            raise
        log.info("Loaded %d MCP tools from %d servers", len(toolset.tools), len(toolset.bridges))
        return toolset

    async def aclose(self) -> None:
        for bridge in self.bridges:
            await bridge.close()
        self.bridges.clear()
