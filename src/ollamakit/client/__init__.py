from .agent import Agent
from .api import OllamaClient
from .mcp_bridge import MCPBridge, MCPToolset, mcp_tool_to_tool

__all__ = ["Agent", "MCPBridge", "MCPToolset", "OllamaClient", "mcp_tool_to_tool"]
