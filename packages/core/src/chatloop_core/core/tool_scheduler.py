"""
Schedules a batch of model-issued tool calls: validation, optional user
confirmation, execution and aggregation of the results.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any

from chatloop_core.api.events import ToolCallRequestInfo
from chatloop_core.core.cancellation import CancelSignal
from chatloop_core.core.graphs.tool_execution_graph import (
    ConfirmationHandler,
    ToolNodeContext,
    create_error_response,
    create_tool_execution_graph,
)
from chatloop_core.core.nodes.tool_nodes import (
    CompletedToolCall,
    ErroredToolCall,
    ExecutingToolCall,
    ToolCall,
    ValidatingToolCall,
)
from chatloop_core.core.types import ToolExecutionError, ToolSchedulingError
from chatloop_core.telemetry import (
    TelemetryLogger,
    ToolCallDecision,
    ToolCallEvent,
)
from chatloop_core.tools.base import ToolRegistry
from chatloop_core.tools.common import ToolConfirmationOutcome
from chatloop_core.utils.asyncio_utils import maybe_await
from chatloop_core.utils.errors import get_error_message

logger = logging.getLogger(__name__)

ToolCallsUpdateHandler = Callable[[list[ToolCall]], Any]
AllToolCallsCompleteHandler = Callable[[list[CompletedToolCall]], Any]
OutputUpdateHandler = Callable[[str, str], Any]


def get_tool_call_decision(
    outcome: ToolConfirmationOutcome | None,
) -> ToolCallDecision | None:
    if outcome is None:
        return None
    if outcome == ToolConfirmationOutcome.CANCEL:
        return ToolCallDecision.REJECT
    return ToolCallDecision.ACCEPT


class CoreToolScheduler:
    """
    Drives one batch of tool calls at a time.

    Every call runs through the tool execution graph concurrently with the
    others. `on_tool_calls_update` receives a snapshot of the whole batch (in
    request order) on every status change, and `on_all_tool_calls_complete`
    fires exactly once per batch after all calls are terminal.
    """

    def __init__(
        self,
        config: Any,
        tool_registry: ToolRegistry,
        confirmation_handler: ConfirmationHandler | None = None,
        output_update_handler: OutputUpdateHandler | None = None,
        on_tool_calls_update: ToolCallsUpdateHandler | None = None,
        on_all_tool_calls_complete: AllToolCallsCompleteHandler | None = None,
        telemetry: TelemetryLogger | None = None,
    ):
        self.config = config
        self.tool_registry = tool_registry
        self.confirmation_handler = confirmation_handler
        self.output_update_handler = output_update_handler
        self.on_tool_calls_update = on_tool_calls_update
        self.on_all_tool_calls_complete = on_all_tool_calls_complete
        self.telemetry = telemetry

        self._tool_calls: list[ToolCall] = []
        self._running = False
        self._pending_confirmations: dict[str, asyncio.Future] = {}
        self._pending_notifications: set[asyncio.Future] = set()

    @property
    def tool_calls(self) -> list[ToolCall]:
        return list(self._tool_calls)

    def is_running(self) -> bool:
        return self._running

    async def schedule(
        self,
        requests: ToolCallRequestInfo | list[ToolCallRequestInfo],
        signal: CancelSignal,
    ) -> list[CompletedToolCall]:
        """
        Runs a batch to completion and returns the terminal calls in request
        order.

        Raises:
            ToolSchedulingError: if a batch is already running.
        """
        if self._running:
            raise ToolSchedulingError(
                "Cannot schedule new tool calls while other tool calls are "
                "actively running."
            )
        if isinstance(requests, ToolCallRequestInfo):
            requests = [requests]

        self._running = True
        try:
            now = time.time()
            initial_calls = [
                ValidatingToolCall(request=request, start_time=now)
                for request in requests
            ]
            self._tool_calls = list(initial_calls)
            logger.debug(
                f"Scheduling {len(initial_calls)} tool call(s): "
                f"{[c.request.name for c in initial_calls]}"
            )
            await self._notify_tool_calls_update()

            tool_context = ToolNodeContext(
                config=self.config,
                tool_registry=self.tool_registry,
                signal=signal,
                set_call=self._set_call,
                update_live_output=self._update_live_output,
                confirmation_handler=self.confirmation_handler,
                pending_confirmations=self._pending_confirmations,
            )
            graph = create_tool_execution_graph(tool_context)
            final_states = await asyncio.gather(
                *(graph.ainvoke({"call": call}) for call in initial_calls),
                return_exceptions=True,
            )
            completed_calls: list[CompletedToolCall] = []
            for index, state in enumerate(final_states):
                if isinstance(state, BaseException):
                    if not isinstance(state, Exception):
                        raise state
                    state = {"call": await self._fail_call(index, state)}
                completed_calls.append(state["call"])

            if self._pending_notifications:
                await asyncio.gather(*self._pending_notifications)
            for call in completed_calls:
                self._log_tool_call(call)
        finally:
            self._running = False
            self._pending_confirmations.clear()
            self._pending_notifications.clear()
            self._tool_calls = []

        if self.on_all_tool_calls_complete:
            await maybe_await(self.on_all_tool_calls_complete(completed_calls))
        return completed_calls

    def handle_confirmation_response(
        self, call_id: str, outcome: ToolConfirmationOutcome
    ) -> bool:
        """
        Resolves a call waiting for approval when no confirmation handler was
        injected. Returns False if no call with that id is waiting.
        """
        future = self._pending_confirmations.get(call_id)
        if future is None:
            if not any(
                c.call_id == call_id and c.status == "awaiting_approval"
                for c in self._tool_calls
            ):
                logger.warning(
                    f"No tool call awaiting approval with id {call_id}"
                )
                return False
            future = asyncio.get_running_loop().create_future()
            self._pending_confirmations[call_id] = future
        if future.done():
            return False
        future.set_result(ToolConfirmationOutcome(outcome))
        return True

    async def _fail_call(
        self, index: int, error: Exception
    ) -> ErroredToolCall:
        call = self._tool_calls[index]
        logger.error(f"Tool call {call.call_id} failed unexpectedly: {error}")
        failed = ErroredToolCall(
            request=call.request,
            tool=call.tool,
            start_time=call.start_time,
            outcome=call.outcome,
            response=create_error_response(
                call.request,
                ToolExecutionError(
                    get_error_message(error), call.request.name
                ),
            ),
            duration_ms=(
                (time.time() - call.start_time) * 1000
                if call.start_time is not None
                else None
            ),
        )
        await self._set_call(failed)
        return failed

    async def _set_call(self, call: ToolCall):
        index = next(
            (
                i
                for i, existing in enumerate(self._tool_calls)
                if existing.request is call.request
            ),
            None,
        )
        if index is None:
            index = next(
                (
                    i
                    for i, existing in enumerate(self._tool_calls)
                    if existing.call_id == call.call_id
                ),
                None,
            )
        if index is not None:
            self._tool_calls[index] = call
        logger.debug(f"Tool call {call.call_id} -> {call.status}")
        await self._notify_tool_calls_update()

    def _update_live_output(self, call_id: str, output: str):
        for i, existing in enumerate(self._tool_calls):
            if existing.call_id == call_id and isinstance(
                existing, ExecutingToolCall
            ):
                self._tool_calls[i] = existing.model_copy(
                    update={"live_output": output}
                )
        if self.output_update_handler:
            self._track(self.output_update_handler(call_id, output))
        if self.on_tool_calls_update:
            self._track(self.on_tool_calls_update(self.tool_calls))

    def _track(self, result: Any):
        # Live output arrives from synchronous tool code; async handlers are
        # awaited before the batch completes.
        if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
            future = asyncio.ensure_future(result)
            self._pending_notifications.add(future)

    async def _notify_tool_calls_update(self):
        if self.on_tool_calls_update:
            await maybe_await(self.on_tool_calls_update(self.tool_calls))

    def _log_tool_call(self, call: CompletedToolCall):
        if not self.telemetry:
            return
        self.telemetry.log_tool_call(
            ToolCallEvent(
                function_name=call.request.name,
                function_args=call.request.args,
                duration_ms=int(call.duration_ms or 0),
                success=call.status == "success",
                decision=get_tool_call_decision(call.outcome),
                error=call.response.error,
            )
        )
