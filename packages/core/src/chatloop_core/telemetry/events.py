"""
Pydantic models for the telemetry events emitted by the chat session and the
tool scheduler.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from .constants import (
    EVENT_API_ERROR,
    EVENT_API_REQUEST,
    EVENT_API_RESPONSE,
    EVENT_TOOL_CALL,
)


class ToolCallDecision(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    MODIFY = "modify"


class TelemetryEventBase(BaseModel):
    event_timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


class ToolCallEvent(TelemetryEventBase):
    event_name: Literal["chatloop.tool_call"] = EVENT_TOOL_CALL
    function_name: str
    function_args: dict[str, Any]
    duration_ms: int
    success: bool
    decision: ToolCallDecision | None = None
    error: str | None = None
    error_type: str | None = None


class ApiRequestEvent(TelemetryEventBase):
    event_name: Literal["chatloop.api_request"] = EVENT_API_REQUEST
    model: str
    request_text: str | None = None


class ApiErrorEvent(TelemetryEventBase):
    event_name: Literal["chatloop.api_error"] = EVENT_API_ERROR
    model: str
    error: str
    error_type: str | None = None
    status_code: int | str | None = None
    duration_ms: int


class ApiResponseEvent(TelemetryEventBase):
    event_name: Literal["chatloop.api_response"] = EVENT_API_RESPONSE
    model: str
    status_code: int | str | None = 200
    duration_ms: int
    error: str | None = None
    input_token_count: int = 0
    output_token_count: int = 0
    cached_content_token_count: int = 0
    thoughts_token_count: int = 0
    tool_token_count: int = 0
    total_token_count: int = 0
    response_text: str | None = None

    @classmethod
    def from_usage(
        cls,
        model: str,
        duration_ms: int,
        usage: dict[str, Any] | None,
        response_text: str | None = None,
    ) -> "ApiResponseEvent":
        usage = usage or {}
        return cls(
            model=model,
            duration_ms=duration_ms,
            input_token_count=usage.get("prompt_token_count") or 0,
            output_token_count=usage.get("candidates_token_count") or 0,
            cached_content_token_count=usage.get("cached_content_token_count")
            or 0,
            thoughts_token_count=usage.get("thoughts_token_count") or 0,
            tool_token_count=usage.get("tool_use_prompt_token_count") or 0,
            total_token_count=usage.get("total_token_count") or 0,
            response_text=response_text,
        )


TelemetryEvent = (
    ToolCallEvent | ApiRequestEvent | ApiErrorEvent | ApiResponseEvent
)
