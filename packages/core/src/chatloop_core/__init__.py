"""
chatloop_core: the orchestration core of an LLM agent loop.

- `ChatSession` keeps conversation history and sends messages with retry
  and model fallback.
- `CoreToolScheduler` validates, confirms and executes the tool calls the
  model requests.
- `chatloop_core.core.generators` talks to the native Gemini API or to any
  OpenAI-compatible endpoint.
"""

from .config import Config
from .core.cancellation import CancelSignal
from .core.chat import ChatSession
from .core.tool_scheduler import CoreToolScheduler

__all__ = ["CancelSignal", "ChatSession", "Config", "CoreToolScheduler"]
