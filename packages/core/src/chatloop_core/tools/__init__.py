"""
The tools sub-package defines the contract between the tool scheduler and
the tools it runs.

- `BaseTool`: The abstract base class concrete tools inherit from.
- `ToolResult`: The standardized return type for all tool executions.
- `ToolRegistry`: The lookup table the scheduler resolves tool names against.
"""

from .base.registry import ToolRegistry
from .base.tool_base import BaseTool, Tool, ToolResult
from .common import (
    ToolCallConfirmationDetails,
    ToolConfirmationOutcome,
    ToolEditConfirmationDetails,
    ToolExecuteConfirmationDetails,
    ToolInfoConfirmationDetails,
)

__all__ = [
    "BaseTool",
    "Tool",
    "ToolCallConfirmationDetails",
    "ToolConfirmationOutcome",
    "ToolEditConfirmationDetails",
    "ToolExecuteConfirmationDetails",
    "ToolInfoConfirmationDetails",
    "ToolRegistry",
    "ToolResult",
]
