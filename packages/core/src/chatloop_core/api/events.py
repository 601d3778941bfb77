"""
Request/response records exchanged between the agent loop and the tool
scheduler.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ToolCallRequestInfo(BaseModel):
    """Information about a tool call request issued by the model."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    call_id: str = Field(..., alias="callId")
    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    is_client_initiated: bool = Field(False, alias="isClientInitiated")


class ToolCallResponseInfo(BaseModel):
    """Information about a tool call response."""

    model_config = ConfigDict(populate_by_name=True)

    call_id: str = Field(..., alias="callId")
    response_parts: dict[str, Any] | list[dict[str, Any]] = Field(
        ..., alias="responseParts"
    )
    result_display: Any | None = Field(None, alias="resultDisplay")
    error: str | None = None
