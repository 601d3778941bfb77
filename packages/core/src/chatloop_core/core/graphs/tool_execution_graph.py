"""
The per-call tool execution graph: validate -> await approval -> execute.

Each tool call of a batch runs through its own invocation of the compiled
graph; the scheduler runs those invocations concurrently and is notified of
every status transition through `ToolNodeContext.transition`.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from functools import partial
from typing import Any

from langgraph.graph import END, StateGraph

from chatloop_core.api.events import ToolCallRequestInfo, ToolCallResponseInfo
from chatloop_core.core.cancellation import CancelSignal
from chatloop_core.core.nodes.tool_nodes import (
    BaseToolCall,
    CancelledToolCall,
    ErroredToolCall,
    ExecutingToolCall,
    ScheduledToolCall,
    SuccessfulToolCall,
    ToolCall,
    ToolExecutionState,
    WaitingToolCall,
)
from chatloop_core.core.types import ApprovalMode, Part, PartListUnion
from chatloop_core.tools.base import ToolRegistry, ToolResult
from chatloop_core.tools.common import ToolConfirmationOutcome
from chatloop_core.utils.asyncio_utils import maybe_await
from chatloop_core.utils.errors import get_error_message

logger = logging.getLogger(__name__)

TOOL_SUCCESS_MESSAGE = "Tool execution succeeded."

# Given the waiting call, returns a ToolConfirmationOutcome (sync or async).
ConfirmationHandler = Callable[[WaitingToolCall], Any]


class ToolNodeContext:
    """Shared context for the nodes of one scheduling batch."""

    def __init__(
        self,
        config: Any,
        tool_registry: ToolRegistry,
        signal: CancelSignal,
        set_call: Callable[[ToolCall], Awaitable[None]],
        update_live_output: Callable[[str, str], None],
        confirmation_handler: ConfirmationHandler | None = None,
        pending_confirmations: dict[str, asyncio.Future] | None = None,
    ):
        self.config = config
        self.tool_registry = tool_registry
        self.signal = signal
        self._set_call = set_call
        self.update_live_output = update_live_output
        self.confirmation_handler = confirmation_handler
        self.pending_confirmations = (
            pending_confirmations if pending_confirmations is not None else {}
        )

    async def transition(self, call: ToolCall) -> dict[str, ToolCall]:
        """Publishes the new status and returns the graph state update."""
        await self._set_call(call)
        return {"call": call}


def create_function_response_part(
    call_id: str, tool_name: str, output: str
) -> Part:
    return {
        "function_response": {
            "id": call_id,
            "name": tool_name,
            "response": {"output": output},
        }
    }


def _is_binary_part(part: Any) -> bool:
    return isinstance(part, dict) and bool(
        part.get("inline_data") or part.get("file_data")
    )


def convert_to_function_response(
    tool_name: str, call_id: str, llm_content: PartListUnion
) -> PartListUnion:
    """
    Converts a tool's raw output into what is sent back to the model.

    A string or a single text part becomes one function_response part. A
    single binary part becomes a placeholder function_response followed by
    the original part. Any list (including an empty one) becomes the
    generic success response followed by every non-empty original part;
    an empty part on its own gives just the success response.
    """
    content_to_process = llm_content
    if isinstance(llm_content, list) and len(llm_content) == 1:
        content_to_process = llm_content[0]

    if isinstance(content_to_process, str):
        return create_function_response_part(
            call_id, tool_name, content_to_process
        )

    if isinstance(content_to_process, list):
        return [
            create_function_response_part(
                call_id, tool_name, TOOL_SUCCESS_MESSAGE
            ),
            *(part for part in content_to_process if part),
        ]

    if not isinstance(content_to_process, dict) or not content_to_process:
        return create_function_response_part(
            call_id, tool_name, TOOL_SUCCESS_MESSAGE
        )

    if content_to_process.get("function_response"):
        return content_to_process

    if _is_binary_part(content_to_process):
        blob = content_to_process.get("inline_data") or content_to_process.get(
            "file_data"
        )
        mime_type = blob.get("mime_type") or "unknown"
        return [
            create_function_response_part(
                call_id,
                tool_name,
                f"Binary content of type {mime_type} was processed.",
            ),
            content_to_process,
        ]

    if isinstance(content_to_process.get("text"), str):
        return create_function_response_part(
            call_id, tool_name, content_to_process["text"]
        )

    return [
        create_function_response_part(call_id, tool_name, TOOL_SUCCESS_MESSAGE),
        content_to_process,
    ]


def create_error_response(
    request: ToolCallRequestInfo, error: Exception
) -> ToolCallResponseInfo:
    """Creates a ToolCallResponseInfo for an error."""
    message = get_error_message(error)
    return ToolCallResponseInfo(
        call_id=request.call_id,
        error=message,
        response_parts={
            "function_response": {
                "id": request.call_id,
                "name": request.name,
                "response": {"error": message},
            }
        },
        result_display=message,
    )


def create_cancelled_response(
    request: ToolCallRequestInfo, reason: str
) -> ToolCallResponseInfo:
    return ToolCallResponseInfo(
        call_id=request.call_id,
        response_parts={
            "function_response": {
                "id": request.call_id,
                "name": request.name,
                "response": {"error": f"[Operation Cancelled] Reason: {reason}"},
            }
        },
    )


def _carry(call: BaseToolCall) -> dict[str, Any]:
    return {
        "request": call.request,
        "tool": call.tool,
        "start_time": call.start_time,
        "outcome": call.outcome,
    }


def _duration_ms(call: BaseToolCall) -> float | None:
    if call.start_time is None:
        return None
    return (time.time() - call.start_time) * 1000


def _errored(call: BaseToolCall, error: Exception) -> ErroredToolCall:
    return ErroredToolCall(
        **_carry(call),
        response=create_error_response(call.request, error),
        duration_ms=_duration_ms(call),
    )


def _cancelled(call: BaseToolCall, reason: str) -> CancelledToolCall:
    return CancelledToolCall(
        **_carry(call),
        response=create_cancelled_response(call.request, reason),
        duration_ms=_duration_ms(call),
    )


def _signal_reason(signal: CancelSignal, default: str) -> str:
    return signal.reason or default


async def validate_tool_node(
    state: ToolExecutionState, tool_context: ToolNodeContext
) -> dict[str, Any]:
    """
    Resolves the tool and asks it whether the call needs confirmation.
    Corresponds to the validation half of `schedule` in CoreToolScheduler.
    """
    call = state["call"]
    request = call.request
    tool = tool_context.tool_registry.get_tool(request.name)
    if tool is None:
        error = ValueError(f"Tool '{request.name}' not found in registry.")
        return await tool_context.transition(_errored(call, error))

    call = call.model_copy(update={"tool": tool})
    signal = tool_context.signal
    if signal.is_set():
        return await tool_context.transition(
            _cancelled(
                call, _signal_reason(signal, "Tool call cancelled by user.")
            )
        )

    if tool_context.config.get_approval_mode() == ApprovalMode.YOLO:
        return await tool_context.transition(ScheduledToolCall(**_carry(call)))

    try:
        confirmation_details = await tool.should_confirm_execute(
            request.args, signal
        )
        next_call = (
            WaitingToolCall(
                **_carry(call), confirmation_details=confirmation_details
            )
            if confirmation_details
            else ScheduledToolCall(**_carry(call))
        )
    except Exception as e:
        logger.warning(f"Validation of tool '{request.name}' failed: {e}")
        return await tool_context.transition(_errored(call, e))

    if signal.is_set():
        return await tool_context.transition(
            _cancelled(
                call, _signal_reason(signal, "Tool call cancelled by user.")
            )
        )
    return await tool_context.transition(next_call)


async def _race_with_signal(
    awaitable: Awaitable[Any], signal: CancelSignal
) -> tuple[bool, Any]:
    """Returns (cancelled, result); the signal wins a tie."""
    outcome_task = asyncio.ensure_future(awaitable)
    signal_task = asyncio.ensure_future(signal.wait())
    try:
        await asyncio.wait(
            {outcome_task, signal_task}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        pending = [t for t in (outcome_task, signal_task) if not t.done()]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
    if signal.is_set():
        return True, None
    return False, outcome_task.result()


async def await_approval_node(
    state: ToolExecutionState, tool_context: ToolNodeContext
) -> dict[str, Any]:
    """
    Suspends the call until the user answers or the signal fires.

    With a confirmation handler the handler is asked directly; otherwise the
    call waits for `CoreToolScheduler.handle_confirmation_response`.
    """
    call: WaitingToolCall = state["call"]
    signal = tool_context.signal

    try:
        if tool_context.confirmation_handler is not None:
            answer = tool_context.confirmation_handler(call)
        else:
            # The answer may already be there if it arrived before this node.
            answer = tool_context.pending_confirmations.get(call.call_id)
            if answer is None:
                answer = asyncio.get_running_loop().create_future()
                tool_context.pending_confirmations[call.call_id] = answer

        cancelled, outcome = await _race_with_signal(
            maybe_await(answer), signal
        )
        if not cancelled:
            outcome = ToolConfirmationOutcome(outcome)
    except Exception as e:
        logger.warning(f"Confirmation for '{call.request.name}' failed: {e}")
        return await tool_context.transition(_errored(call, e))
    finally:
        tool_context.pending_confirmations.pop(call.call_id, None)

    if cancelled:
        return await tool_context.transition(
            _cancelled(
                call, _signal_reason(signal, "Tool call cancelled by user.")
            )
        )

    call = call.model_copy(update={"outcome": outcome})
    on_confirm = call.confirmation_details.on_confirm
    if on_confirm is not None:
        try:
            await maybe_await(on_confirm(outcome))
        except Exception as e:
            return await tool_context.transition(_errored(call, e))

    if outcome == ToolConfirmationOutcome.CANCEL:
        return await tool_context.transition(
            _cancelled(call, "User did not allow tool call")
        )
    return await tool_context.transition(ScheduledToolCall(**_carry(call)))


async def execute_tool_node(
    state: ToolExecutionState, tool_context: ToolNodeContext
) -> dict[str, Any]:
    """
    Runs a scheduled call. A fired signal wins over both success and
    failure.
    """
    call = state["call"]
    signal = tool_context.signal
    if signal.is_set():
        return await tool_context.transition(
            _cancelled(
                call, _signal_reason(signal, "User cancelled tool execution.")
            )
        )

    executing = ExecutingToolCall(**_carry(call))
    await tool_context.transition(executing)

    request = call.request
    kwargs = {}
    if getattr(call.tool, "can_update_output", False):
        kwargs["update_output"] = partial(
            tool_context.update_live_output, request.call_id
        )

    try:
        result = await call.tool.execute(request.args, signal, **kwargs)
    except Exception as e:
        if signal.is_set():
            return await tool_context.transition(
                _cancelled(
                    executing,
                    _signal_reason(signal, "User cancelled tool execution."),
                )
            )
        logger.warning(f"Tool '{request.name}' failed: {e}")
        return await tool_context.transition(_errored(executing, e))

    if signal.is_set():
        return await tool_context.transition(
            _cancelled(
                executing,
                _signal_reason(signal, "User cancelled tool execution."),
            )
        )

    if isinstance(result, ToolResult):
        llm_content, result_display = result.llm_content, result.return_display
    else:
        llm_content, result_display = result, None

    response = ToolCallResponseInfo(
        call_id=request.call_id,
        response_parts=convert_to_function_response(
            request.name, request.call_id, llm_content
        ),
        result_display=result_display,
    )
    return await tool_context.transition(
        SuccessfulToolCall(
            **_carry(executing),
            response=response,
            duration_ms=_duration_ms(executing),
        )
    )


def route_after_validation(state: ToolExecutionState) -> str:
    status = state["call"].status
    if status == "awaiting_approval":
        return "await_approval"
    if status == "scheduled":
        return "execute_tool"
    return END


def route_after_approval(state: ToolExecutionState) -> str:
    if state["call"].status == "scheduled":
        return "execute_tool"
    return END


def create_tool_execution_graph(tool_context: ToolNodeContext):
    """
    Creates the compiled per-call tool execution graph.
    """
    graph = StateGraph(ToolExecutionState)

    graph.add_node(
        "validate_tool", partial(validate_tool_node, tool_context=tool_context)
    )
    graph.add_node(
        "await_approval",
        partial(await_approval_node, tool_context=tool_context),
    )
    graph.add_node(
        "execute_tool", partial(execute_tool_node, tool_context=tool_context)
    )

    graph.set_entry_point("validate_tool")
    graph.add_conditional_edges(
        "validate_tool",
        route_after_validation,
        {
            "await_approval": "await_approval",
            "execute_tool": "execute_tool",
            END: END,
        },
    )
    graph.add_conditional_edges(
        "await_approval",
        route_after_approval,
        {"execute_tool": "execute_tool", END: END},
    )
    graph.add_edge("execute_tool", END)

    return graph.compile()
