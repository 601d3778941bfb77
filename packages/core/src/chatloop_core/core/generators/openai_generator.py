"""
Content generator backed by any OpenAI-compatible chat-completion endpoint.
"""

import logging
import math
from collections.abc import AsyncIterator
from typing import Any

import httpx
from openai import AsyncOpenAI

from .base import ContentGenerator
from .openai_converter import (
    from_openai_chat_completion_response,
    from_openai_stream,
    to_openai_chat_completion_request,
)

logger = logging.getLogger(__name__)


class OpenAIContentGenerator(ContentGenerator):
    """
    兼容 OpenAI 的内容生成器实现
    请求与响应通过 openai_converter 在两种格式之间转换
    """

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
        proxy: str | None = None,
    ):
        self.model = model
        if client is None:
            http_client = httpx.AsyncClient(proxy=proxy) if proxy else None
            client = AsyncOpenAI(
                api_key=api_key, base_url=base_url, http_client=http_client
            )
        self.client = client

    async def generate_content(
        self,
        model: str,
        config: dict[str, Any],
        contents: list[dict[str, Any]],
    ) -> dict[str, Any]:
        request = to_openai_chat_completion_request(
            contents, config, model or self.model
        )
        completion = await self.client.chat.completions.create(**request)
        return from_openai_chat_completion_response(completion.model_dump())

    async def generate_content_stream(
        self,
        model: str,
        config: dict[str, Any],
        contents: list[dict[str, Any]],
    ) -> AsyncIterator[dict[str, Any]]:
        request = to_openai_chat_completion_request(
            contents, config, model or self.model, stream=True
        )
        stream = await self.client.chat.completions.create(**request)
        return from_openai_stream(self._dump_chunks(stream))

    @staticmethod
    async def _dump_chunks(stream: Any) -> AsyncIterator[dict[str, Any]]:
        async for chunk in stream:
            yield chunk.model_dump()

    async def count_tokens(
        self,
        model: str,
        contents: list[dict[str, Any]],
    ) -> dict[str, Any]:
        # There is no token counting endpoint; estimate 4 characters per token.
        text = "\n".join(
            "".join(p.get("text", "") for p in c.get("parts") or [])
            for c in contents
        )
        return {"total_tokens": math.ceil(len(text) / 4)}

    async def embed_content(
        self,
        model: str,
        contents: list[str],
        task_type: str | None = None,
        title: str | None = None,
    ) -> dict[str, Any]:
        response = await self.client.embeddings.create(
            model=model, input=contents
        )
        return {"embeddings": [item.embedding for item in response.data]}
