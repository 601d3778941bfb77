import logging
from collections.abc import AsyncIterator
from typing import Any

from google import generativeai as genai

from chatloop_core.core.types import ModelError

from .base import ContentGenerator

logger = logging.getLogger(__name__)


def _to_sdk_part(part: dict[str, Any]) -> dict[str, Any]:
    """The SDK rejects `id` on function parts and has no `thought` field."""
    if "function_call" in part:
        fc = part["function_call"]
        return {"function_call": {"name": fc["name"], "args": fc.get("args")}}
    if "function_response" in part:
        fr = part["function_response"]
        return {
            "function_response": {
                "name": fr["name"],
                "response": fr.get("response"),
            }
        }
    return {k: v for k, v in part.items() if k != "thought"}


def _to_sdk_contents(contents: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "role": c["role"],
            "parts": [
                _to_sdk_part(p)
                for p in c.get("parts") or []
                if not p.get("thought")
            ],
        }
        for c in contents
    ]


class GeminiContentGenerator(ContentGenerator):
    """
    Gemini API 内容生成器实现
    使用 Google Generative AI SDK 与 Gemini API 交互
    """

    def __init__(self, api_key: str | None = None):
        if api_key:
            genai.configure(api_key=api_key)

    def _model(self, model: str, config: dict[str, Any]):
        return genai.GenerativeModel(
            model_name=model,
            generation_config=config.get("generation_config") or None,
            system_instruction=config.get("system_instruction"),
            tools=config.get("tools") or None,
        )

    async def generate_content(
        self,
        model: str,
        config: dict[str, Any],
        contents: list[dict[str, Any]],
    ) -> dict[str, Any]:
        """生成内容"""
        try:
            response = await self._model(model, config).generate_content_async(
                _to_sdk_contents(contents),
                request_options={"timeout": config.get("timeout", 600)},
            )
        except Exception as e:
            raise ModelError(f"Failed to generate content: {e!s}", model) from e
        return self._convert_response(response)

    async def generate_content_stream(
        self,
        model: str,
        config: dict[str, Any],
        contents: list[dict[str, Any]],
    ) -> AsyncIterator[dict[str, Any]]:
        """以流式方式生成内容"""
        try:
            response_stream = await self._model(
                model, config
            ).generate_content_async(
                _to_sdk_contents(contents),
                stream=True,
                request_options={"timeout": config.get("timeout", 600)},
            )
        except Exception as e:
            raise ModelError(
                f"Failed to start content stream: {e!s}", model
            ) from e
        return self._convert_stream(response_stream)

    async def _convert_stream(
        self, response_stream: Any
    ) -> AsyncIterator[dict[str, Any]]:
        async for chunk in response_stream:
            yield self._convert_response(chunk)

    async def count_tokens(
        self,
        model: str,
        contents: list[dict[str, Any]],
    ) -> dict[str, Any]:
        """计算内容的 token 数量"""
        model_instance = genai.GenerativeModel(model_name=model)
        response = await model_instance.count_tokens_async(
            _to_sdk_contents(contents)
        )
        return {"total_tokens": response.total_tokens}

    async def embed_content(
        self,
        model: str,
        contents: list[str],
        task_type: str | None = None,
        title: str | None = None,
    ) -> dict[str, Any]:
        """为内容生成嵌入向量"""
        result = await genai.embed_content_async(
            model=model, content=contents, task_type=task_type, title=title
        )
        return {"embeddings": result["embedding"]}

    def _convert_response(self, response: Any) -> dict[str, Any]:
        """将 SDK 响应转换为统一格式"""
        candidates = []
        for index, candidate in enumerate(response.candidates):
            parts = []
            for part in candidate.content.parts:
                part_dict = {}

                if "text" in part:
                    part_dict["text"] = part.text
                if "function_call" in part:
                    part_dict["function_call"] = {
                        "name": part.function_call.name,
                        "args": dict(part.function_call.args),
                    }
                if "function_response" in part:
                    part_dict["function_response"] = {
                        "name": part.function_response.name,
                        "response": dict(part.function_response.response),
                    }
                if "inline_data" in part:
                    part_dict["inline_data"] = {
                        "mime_type": part.inline_data.mime_type,
                        "data": part.inline_data.data,
                    }

                parts.append(part_dict)

            finish_reason = getattr(candidate, "finish_reason", None)
            candidates.append(
                {
                    "index": index,
                    "content": {
                        "role": candidate.content.role or "model",
                        "parts": parts,
                    },
                    "finish_reason": getattr(finish_reason, "name", None),
                }
            )

        result: dict[str, Any] = {"candidates": candidates}

        usage = getattr(response, "usage_metadata", None)
        if usage:
            result["usage_metadata"] = {
                "prompt_token_count": usage.prompt_token_count,
                "candidates_token_count": usage.candidates_token_count,
                "total_token_count": usage.total_token_count,
            }

        return result
