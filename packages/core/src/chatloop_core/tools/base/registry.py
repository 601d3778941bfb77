"""
The tool registry: the scheduler's lookup table from tool name to tool.
"""

import logging
from typing import Any

from .tool_base import Tool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """A central repository for managing all available tools."""

    def __init__(self):
        self._tools: dict[str, Tool] = {}

    def register_tool(self, tool: Tool):
        if tool.name in self._tools:
            logger.warning(
                f"Tool '{tool.name}' is already registered. Overwriting."
            )
        self._tools[tool.name] = tool

    def get_function_declarations(self) -> list[dict[str, Any]]:
        return [tool.schema for tool in self._tools.values()]

    def get_all_tools(self) -> list[Tool]:
        return list(self._tools.values())

    def get_tool(self, name: str) -> Tool | None:
        return self._tools.get(name)
