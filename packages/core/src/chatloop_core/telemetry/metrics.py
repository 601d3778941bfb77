"""
Records tool-call and API metrics through the OpenTelemetry metrics API.
Without a configured meter provider the instruments are no-ops.
"""

from typing import Any

from opentelemetry import metrics
from opentelemetry.metrics import Counter, Histogram, Meter

from .constants import (
    METRIC_API_REQUEST_COUNT,
    METRIC_API_REQUEST_LATENCY,
    METRIC_TOKEN_USAGE,
    METRIC_TOOL_CALL_COUNT,
    METRIC_TOOL_CALL_LATENCY,
    SERVICE_NAME,
)


class MetricsRecorder:
    """Owns the metric instruments for one session."""

    def __init__(self, session_id: str, meter: Meter | None = None):
        self.session_id = session_id
        self.meter = meter or metrics.get_meter(SERVICE_NAME)
        self.tool_call_counter: Counter = self.meter.create_counter(
            METRIC_TOOL_CALL_COUNT
        )
        self.tool_call_latency_histogram: Histogram = (
            self.meter.create_histogram(METRIC_TOOL_CALL_LATENCY, unit="ms")
        )
        self.api_request_counter: Counter = self.meter.create_counter(
            METRIC_API_REQUEST_COUNT
        )
        self.api_request_latency_histogram: Histogram = (
            self.meter.create_histogram(METRIC_API_REQUEST_LATENCY, unit="ms")
        )
        self.token_usage_counter: Counter = self.meter.create_counter(
            METRIC_TOKEN_USAGE
        )

    def _common_attributes(self) -> dict[str, Any]:
        return {"session.id": self.session_id}

    def record_tool_call(
        self,
        function_name: str,
        duration_ms: int,
        success: bool,
        decision: str | None = None,
    ):
        attributes = {
            **self._common_attributes(),
            "function_name": function_name,
            "success": success,
        }
        if decision is not None:
            attributes["decision"] = decision
        self.tool_call_counter.add(1, attributes)
        self.tool_call_latency_histogram.record(duration_ms, attributes)

    def record_token_usage(self, model: str, token_count: int, token_type: str):
        attributes = {
            **self._common_attributes(),
            "model": model,
            "type": token_type,
        }
        self.token_usage_counter.add(token_count, attributes)

    def record_api_response(
        self,
        model: str,
        duration_ms: int,
        status_code: int | str | None,
        error: str | None,
    ):
        attributes = {
            **self._common_attributes(),
            "model": model,
            "status_code": status_code or ("error" if error else "ok"),
        }
        self.api_request_counter.add(1, attributes)
        self.api_request_latency_histogram.record(duration_ms, attributes)

    def record_api_error(
        self,
        model: str,
        duration_ms: int,
        status_code: int | str | None,
        error_type: str | None,
    ):
        attributes = {
            **self._common_attributes(),
            "model": model,
            "status_code": status_code or "error",
            "error_type": error_type or "unknown",
        }
        self.api_request_counter.add(1, attributes)
        self.api_request_latency_histogram.record(duration_ms, attributes)
