"""
Core type definitions shared by the chat session, the tool scheduler and
the content generators.
"""

from enum import Enum
from typing import Any, Literal, TypedDict


class FunctionCall(TypedDict, total=False):
    id: str | None
    name: str
    args: dict[str, Any]


class FunctionResponse(TypedDict, total=False):
    id: str | None
    name: str
    response: dict[str, Any]


class Blob(TypedDict, total=False):
    mime_type: str
    data: str


class FileData(TypedDict, total=False):
    mime_type: str
    file_uri: str


class Part(TypedDict, total=False):
    """A single fragment of a conversation turn."""

    text: str
    thought: bool
    function_call: FunctionCall
    function_response: FunctionResponse
    inline_data: Blob
    file_data: FileData


class Content(TypedDict):
    """One role-tagged turn of the conversation."""

    role: Literal["user", "model"]
    parts: list[Part]


PartListUnion = str | Part | list[Part]


class FinishReason(str, Enum):
    """Candidate finish reasons, in the native API's vocabulary."""

    STOP = "STOP"
    MAX_TOKENS = "MAX_TOKENS"
    SAFETY = "SAFETY"
    TOOL_CALL = "TOOL_CALL"
    OTHER = "OTHER"


class ApprovalMode(str, Enum):
    DEFAULT = "default"
    AUTO_EDIT = "autoEdit"
    YOLO = "yolo"


# Error Types
class ChatLoopError(Exception):
    """Base error for the package."""

    def __init__(
        self,
        message: str,
        error_type: str = "unknown",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.details = details or {}


class ToolExecutionError(ChatLoopError):
    def __init__(
        self,
        message: str,
        tool_name: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, "tool_execution", details)
        self.tool_name = tool_name


class ToolSchedulingError(ChatLoopError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, "tool_scheduling", details)


class ModelError(ChatLoopError):
    def __init__(
        self, message: str, model: str, details: dict[str, Any] | None = None
    ):
        super().__init__(message, "model_error", details)
        self.model = model


class ResponseParseError(ChatLoopError):
    """Raised when tool-call arguments from the backend are not valid JSON."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, "response_parse", details)


class AuthenticationError(ChatLoopError):
    def __init__(
        self,
        message: str,
        auth_type: str | None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, "authentication", details)
        self.auth_type = auth_type
