from .tool_execution_graph import (
    ToolNodeContext,
    convert_to_function_response,
    create_tool_execution_graph,
)

__all__ = [
    "ToolNodeContext",
    "convert_to_function_response",
    "create_tool_execution_graph",
]
