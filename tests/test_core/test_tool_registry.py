from chatloop_core.api.events import ToolCallRequestInfo, ToolCallResponseInfo
from chatloop_core.core.nodes import (
    ScheduledToolCall,
    SuccessfulToolCall,
    is_completed,
)
from chatloop_core.tools import BaseTool, ToolRegistry, ToolResult


class _NoopTool(BaseTool):
    def __init__(self, name):
        super().__init__(
            name=name,
            display_name=name,
            description=f"{name} tool",
            parameter_schema={"type": "object", "properties": {}},
        )

    async def execute(self, params, signal, update_output=None):
        return ToolResult(llm_content="")


def test_registry_exposes_declarations():
    registry = ToolRegistry()
    registry.register_tool(_NoopTool("a"))
    registry.register_tool(_NoopTool("b"))

    assert [t.name for t in registry.get_all_tools()] == ["a", "b"]
    assert registry.get_function_declarations()[0] == {
        "name": "a",
        "description": "a tool",
        "parameters": {"type": "object", "properties": {}},
    }
    assert registry.get_tool("missing") is None


def test_registering_same_name_overwrites():
    registry = ToolRegistry()
    first, second = _NoopTool("a"), _NoopTool("a")
    registry.register_tool(first)
    registry.register_tool(second)

    assert registry.get_tool("a") is second


def test_request_info_accepts_wire_aliases():
    request = ToolCallRequestInfo.model_validate(
        {"callId": "c1", "name": "ls", "args": {}, "isClientInitiated": True}
    )

    assert request.call_id == "c1"
    assert request.is_client_initiated


def test_is_completed_only_for_terminal_calls():
    request = ToolCallRequestInfo(call_id="c1", name="ls", args={})
    scheduled = ScheduledToolCall(request=request)
    done = SuccessfulToolCall(
        request=request,
        response=ToolCallResponseInfo(call_id="c1", response_parts=[]),
    )

    assert not is_completed(scheduled)
    assert is_completed(done)
    assert done.call_id == "c1"
