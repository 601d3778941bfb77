from .tool_nodes import (
    CancelledToolCall,
    CompletedToolCall,
    ErroredToolCall,
    ExecutingToolCall,
    ScheduledToolCall,
    SuccessfulToolCall,
    ToolCall,
    ToolExecutionState,
    ValidatingToolCall,
    WaitingToolCall,
    is_completed,
)

__all__ = [
    "CancelledToolCall",
    "CompletedToolCall",
    "ErroredToolCall",
    "ExecutingToolCall",
    "ScheduledToolCall",
    "SuccessfulToolCall",
    "ToolCall",
    "ToolExecutionState",
    "ValidatingToolCall",
    "WaitingToolCall",
    "is_completed",
]
