import logging
from typing import Any

from .events import (
    ApiErrorEvent,
    ApiRequestEvent,
    ApiResponseEvent,
    TelemetryEvent,
    ToolCallEvent,
)
from .metrics import MetricsRecorder

# A standard Python logger for structured, observable logs
observable_logger = logging.getLogger("chatloop_observable")


class TelemetryLogger:
    """
    Session-scoped sink for telemetry events.

    Events go to a structured logger and, when a `MetricsRecorder` is
    attached, to OpenTelemetry instruments. Nothing is recorded while
    telemetry is disabled in the config.
    """

    def __init__(
        self,
        config: Any,
        metrics: MetricsRecorder | None = None,
        logger: logging.Logger | None = None,
    ):
        self.config = config
        self.metrics = metrics
        self.logger = logger or observable_logger

    @property
    def enabled(self) -> bool:
        return bool(self.config.get_telemetry_enabled())

    def _log(self, event: TelemetryEvent):
        self.logger.info(event.event_name, extra={"data": event.model_dump()})

    def log_tool_call(self, event: ToolCallEvent):
        if not self.enabled:
            return
        self._log(event)
        if self.metrics:
            self.metrics.record_tool_call(
                function_name=event.function_name,
                duration_ms=event.duration_ms,
                success=event.success,
                decision=event.decision.value if event.decision else None,
            )

    def log_api_request(self, event: ApiRequestEvent):
        if not self.enabled:
            return
        if not self.config.get_telemetry_log_prompts_enabled():
            event = event.model_copy(update={"request_text": None})
        self._log(event)

    def log_api_error(self, event: ApiErrorEvent):
        if not self.enabled:
            return
        self._log(event)
        if self.metrics:
            self.metrics.record_api_error(
                model=event.model,
                duration_ms=event.duration_ms,
                status_code=event.status_code,
                error_type=event.error_type,
            )

    def log_api_response(self, event: ApiResponseEvent):
        if not self.enabled:
            return
        if not self.config.get_telemetry_log_prompts_enabled():
            event = event.model_copy(update={"response_text": None})
        self._log(event)
        if not self.metrics:
            return
        self.metrics.record_api_response(
            model=event.model,
            duration_ms=event.duration_ms,
            status_code=event.status_code,
            error=event.error,
        )
        if not event.error:
            for count, token_type in (
                (event.input_token_count, "input"),
                (event.output_token_count, "output"),
                (event.cached_content_token_count, "cache"),
                (event.thoughts_token_count, "thought"),
                (event.tool_token_count, "tool"),
            ):
                self.metrics.record_token_usage(event.model, count, token_type)
