from .registry import ToolRegistry
from .tool_base import BaseTool, Tool, ToolResult

__all__ = ["BaseTool", "Tool", "ToolRegistry", "ToolResult"]
