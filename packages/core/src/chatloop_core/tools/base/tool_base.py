"""
Defines the base interface (Tool) and abstract base class (BaseTool) for
tools the scheduler can run, establishing a common contract for tool
behavior.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict

from chatloop_core.core.cancellation import CancelSignal
from chatloop_core.tools.common import ToolCallConfirmationDetails


class ToolResult(BaseModel):
    """Defines the structure for the result of a tool execution."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    # A string, a single part or a list of parts.
    llm_content: Any
    return_display: Any = None


class Tool(Protocol):
    """
    Protocol defining the basic contract for all tools.
    """

    name: str
    display_name: str
    description: str
    can_update_output: bool

    @property
    def schema(self) -> dict[str, Any]: ...

    async def should_confirm_execute(
        self, params: dict[str, Any], abort_signal: CancelSignal
    ) -> ToolCallConfirmationDetails | bool: ...

    async def execute(
        self,
        params: dict[str, Any],
        signal: CancelSignal,
        update_output: Callable[[str], Any] | None = None,
    ) -> ToolResult: ...


class BaseTool(ABC):
    """
    Abstract base class providing common functionality for tools.
    """

    def __init__(
        self,
        name: str,
        display_name: str,
        description: str,
        parameter_schema: dict[str, Any],
        is_output_markdown: bool = True,
        can_update_output: bool = False,
    ):
        self.name = name
        self.display_name = display_name
        self.description = description
        self.parameter_schema = parameter_schema
        self.is_output_markdown = is_output_markdown
        self.can_update_output = can_update_output

    @property
    def schema(self) -> dict[str, Any]:
        """The function declaration schema for the tool."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameter_schema,
        }

    async def should_confirm_execute(
        self, params: dict[str, Any], abort_signal: CancelSignal
    ) -> ToolCallConfirmationDetails | bool:
        """Default confirmation behavior: no confirmation needed."""
        return False

    @abstractmethod
    async def execute(
        self,
        params: dict[str, Any],
        signal: CancelSignal,
        update_output: Callable[[str], Any] | None = None,
    ) -> ToolResult:
        """Abstract method for the core tool logic."""
        raise NotImplementedError
