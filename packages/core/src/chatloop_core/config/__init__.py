from .config import Config, FlashFallbackHandler, TelemetrySettings
from .models import DEFAULT_FLASH_MODEL, DEFAULT_MODEL

__all__ = [
    "DEFAULT_FLASH_MODEL",
    "DEFAULT_MODEL",
    "Config",
    "FlashFallbackHandler",
    "TelemetrySettings",
]
