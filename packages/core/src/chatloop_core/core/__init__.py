from .cancellation import CancelSignal
from .types import (
    ApprovalMode,
    AuthenticationError,
    ChatLoopError,
    Content,
    FinishReason,
    ModelError,
    Part,
    PartListUnion,
    ResponseParseError,
    ToolExecutionError,
    ToolSchedulingError,
)

__all__ = [
    "ApprovalMode",
    "AuthenticationError",
    "CancelSignal",
    "ChatLoopError",
    "Content",
    "FinishReason",
    "ModelError",
    "Part",
    "PartListUnion",
    "ResponseParseError",
    "ToolExecutionError",
    "ToolSchedulingError",
]
