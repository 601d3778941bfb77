from typing import Any, Literal, TypedDict, Union

from pydantic import BaseModel, ConfigDict

from chatloop_core.api.events import ToolCallRequestInfo, ToolCallResponseInfo
from chatloop_core.tools.common import (
    ToolCallConfirmationDetails,
    ToolConfirmationOutcome,
)


class BaseToolCall(BaseModel):
    """Base model for a tool call, containing common fields."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    request: ToolCallRequestInfo
    # Use `Any` here because `Tool` is a Protocol, which Pydantic v2 has trouble
    # creating a validator for at runtime. We rely on static type checking instead.
    tool: Any = None
    start_time: float | None = None
    outcome: ToolConfirmationOutcome | None = None

    @property
    def call_id(self) -> str:
        return self.request.call_id


class ValidatingToolCall(BaseToolCall):
    """Status: validating. The tool call is being validated."""

    status: Literal["validating"] = "validating"


class ScheduledToolCall(BaseToolCall):
    """Status: scheduled. The tool call is ready for execution."""

    status: Literal["scheduled"] = "scheduled"


class ExecutingToolCall(BaseToolCall):
    """Status: executing. The tool is running."""

    status: Literal["executing"] = "executing"
    live_output: str | None = None


class WaitingToolCall(BaseToolCall):
    """Status: awaiting_approval. Waiting for user confirmation."""

    status: Literal["awaiting_approval"] = "awaiting_approval"
    confirmation_details: ToolCallConfirmationDetails


class _CompletedToolCall(BaseToolCall):
    response: ToolCallResponseInfo
    duration_ms: float | None = None


class ErroredToolCall(_CompletedToolCall):
    """Status: error. A terminal state."""

    status: Literal["error"] = "error"


class SuccessfulToolCall(_CompletedToolCall):
    """Status: success. A terminal state."""

    status: Literal["success"] = "success"


class CancelledToolCall(_CompletedToolCall):
    """Status: cancelled. A terminal state."""

    status: Literal["cancelled"] = "cancelled"


ToolCall = Union[
    ValidatingToolCall,
    ScheduledToolCall,
    ExecutingToolCall,
    WaitingToolCall,
    SuccessfulToolCall,
    ErroredToolCall,
    CancelledToolCall,
]

CompletedToolCall = Union[
    SuccessfulToolCall, ErroredToolCall, CancelledToolCall
]

TERMINAL_STATUSES = frozenset({"success", "error", "cancelled"})


def is_completed(call: ToolCall) -> bool:
    return call.status in TERMINAL_STATUSES


class ToolExecutionState(TypedDict):
    """The state for one tool call's pass through the execution graph."""

    call: ToolCall
