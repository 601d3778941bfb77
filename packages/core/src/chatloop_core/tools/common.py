"""
Common data models and enums for the tool system: confirmation outcomes and
the confirmation payloads a tool may ask the user to approve.
"""

from collections.abc import Callable
from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, Field


class ToolConfirmationOutcome(str, Enum):
    """Defines the possible outcomes of a user confirmation for a tool call."""

    PROCEED_ONCE = "proceed_once"
    PROCEED_ALWAYS = "proceed_always"
    PROCEED_ALWAYS_TOOL = "proceed_always_tool"
    PROCEED_ALWAYS_SERVER = "proceed_always_server"
    CANCEL = "cancel"


# --- Tool Call Confirmation Details ---
# `on_confirm` is the continuation the tool wants run with the user's answer
# (for example to remember a "proceed always" decision). It may be sync or
# async.


class _ConfirmationDetailsBase(BaseModel):
    title: str
    on_confirm: Callable[[ToolConfirmationOutcome], Any] | None = Field(
        default=None, exclude=True
    )


class ToolEditConfirmationDetails(_ConfirmationDetailsBase):
    """Confirmation details for 'edit' or 'write' type tools."""

    type: Literal["edit"] = "edit"
    file_name: str
    file_diff: str


class ToolExecuteConfirmationDetails(_ConfirmationDetailsBase):
    """Confirmation details for 'execute command' type tools."""

    type: Literal["exec"] = "exec"
    command: str
    root_command: str


class ToolInfoConfirmationDetails(_ConfirmationDetailsBase):
    """Confirmation details for displaying general information."""

    type: Literal["info"] = "info"
    prompt: str
    urls: list[str] | None = None


ToolCallConfirmationDetails = Union[
    ToolEditConfirmationDetails,
    ToolExecuteConfirmationDetails,
    ToolInfoConfirmationDetails,
]
