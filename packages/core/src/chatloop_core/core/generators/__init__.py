from .base import AuthType, ContentGenerator, ContentGeneratorConfig
from .factory import create_content_generator, create_content_generator_config
from .gemini_generator import GeminiContentGenerator
from .openai_converter import (
    StreamToolCallAccumulator,
    from_openai_chat_completion_response,
    from_openai_stream,
    from_openai_stream_chunk,
    to_finish_reason,
    to_openai_chat_completion_request,
)
from .openai_generator import OpenAIContentGenerator

__all__ = [
    "AuthType",
    "ContentGenerator",
    "ContentGeneratorConfig",
    "GeminiContentGenerator",
    "OpenAIContentGenerator",
    "StreamToolCallAccumulator",
    "create_content_generator",
    "create_content_generator_config",
    "from_openai_chat_completion_response",
    "from_openai_stream",
    "from_openai_stream_chunk",
    "to_finish_reason",
    "to_openai_chat_completion_request",
]
