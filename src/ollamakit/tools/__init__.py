from .loader import load_tools
from .registry import Tool, ToolParameter, ToolRegistry, ToolSpec

__all__ = ["Tool", "ToolParameter", "ToolRegistry", "ToolSpec", "load_tools"]
