"""
Public API for the telemetry module.
"""

from .events import (
    ApiErrorEvent,
    ApiRequestEvent,
    ApiResponseEvent,
    TelemetryEvent,
    ToolCallDecision,
    ToolCallEvent,
)
from .logger import TelemetryLogger
from .metrics import MetricsRecorder

__all__ = [
    "ApiErrorEvent",
    "ApiRequestEvent",
    "ApiResponseEvent",
    "MetricsRecorder",
    "TelemetryEvent",
    "TelemetryLogger",
    "ToolCallDecision",
    "ToolCallEvent",
]
