"""
Translation between the native content model and the OpenAI chat-completion
wire format, for both whole and streamed responses.
"""

import json
import logging
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from chatloop_core.core.types import (
    Content,
    FinishReason,
    Part,
    ResponseParseError,
)

logger = logging.getLogger(__name__)

_FINISH_REASONS = {
    "STOP": FinishReason.STOP,
    "LENGTH": FinishReason.MAX_TOKENS,
    "CONTENT_FILTER": FinishReason.SAFETY,
    "TOOL_CALLS": FinishReason.TOOL_CALL,
}


def to_finish_reason(reason: str | None) -> FinishReason | None:
    """Maps an OpenAI finish reason onto the native vocabulary."""
    if not reason:
        return None
    return _FINISH_REASONS.get(reason.upper(), FinishReason.OTHER)


def to_openai_tools(
    tools: list[dict[str, Any]] | None,
) -> list[dict[str, Any]] | None:
    if not tools:
        return None
    openai_tools = []
    for tool in tools:
        for func in tool.get("function_declarations") or []:
            openai_tools.append(
                {
                    "type": "function",
                    "function": {
                        "name": func.get("name") or "",
                        "description": func.get("description") or "",
                        "parameters": func.get("parameters") or {},
                    },
                }
            )
    return openai_tools or None


def _system_message(instruction: Any) -> dict[str, Any] | None:
    if not instruction:
        return None
    if isinstance(instruction, str):
        text = instruction
    else:
        text = "".join(
            p.get("text", "")
            for p in instruction.get("parts") or []
            if not p.get("thought")
        )
    return {"role": "system", "content": text} if text else None


def _content_to_messages(content: Content) -> list[dict[str, Any]]:
    role = "assistant" if content.get("role") == "model" else "user"
    parts = content.get("parts") or []
    text_content = "".join(
        p["text"] for p in parts if p.get("text") and not p.get("thought")
    )
    messages: list[dict[str, Any]] = []

    tool_calls = [
        {
            "id": p["function_call"].get("id"),
            "type": "function",
            "function": {
                "name": p["function_call"].get("name") or "unknown_function",
                "arguments": json.dumps(p["function_call"].get("args") or {}),
            },
        }
        for p in parts
        if p.get("function_call")
    ]
    if tool_calls:
        messages.append(
            {
                "role": "assistant",
                "content": text_content or None,
                "tool_calls": tool_calls,
            }
        )

    for p in parts:
        if not p.get("function_response"):
            continue
        func_response = p["function_response"]
        response = func_response.get("response")
        messages.append(
            {
                "role": "tool",
                "tool_call_id": func_response.get("id"),
                "name": func_response.get("name"),
                "content": response
                if isinstance(response, str)
                else json.dumps(response),
            }
        )

    if not messages and text_content:
        messages.append({"role": role, "content": text_content})

    images = [
        {
            "type": "image_url",
            "image_url": {
                "url": f"data:{p['inline_data']['mime_type']};base64,"
                f"{p['inline_data']['data']}"
            },
        }
        for p in parts
        if p.get("inline_data")
        and p["inline_data"].get("mime_type", "").startswith("image/")
    ]
    if images and role == "user":
        messages.append({"role": "user", "content": images})

    return messages


def to_openai_chat_completion_request(
    contents: list[Content],
    config: dict[str, Any] | None,
    model: str,
    stream: bool = False,
) -> dict[str, Any]:
    """
    Builds keyword arguments for `chat.completions.create` from native
    contents and generation config. Unset fields are omitted.
    """
    config = config or {}
    generation_config = config.get("generation_config") or {}

    messages: list[dict[str, Any]] = []
    system_message = _system_message(config.get("system_instruction"))
    if system_message:
        messages.append(system_message)
    for content in contents:
        messages.extend(_content_to_messages(content))

    openai_tools = to_openai_tools(config.get("tools"))
    request = {
        "model": model,
        "messages": messages,
        "stream": stream,
        "temperature": generation_config.get("temperature"),
        "top_p": generation_config.get("top_p"),
        "max_tokens": generation_config.get("max_output_tokens"),
        "stop": generation_config.get("stop_sequences"),
        "tools": openai_tools,
        "tool_choice": "auto" if openai_tools else None,
    }
    logger.debug(
        f"Prepared OpenAI request: model={model}, messages={len(messages)}, "
        f"tools={len(openai_tools or [])}"
    )
    return {k: v for k, v in request.items() if v is not None}


def _parse_arguments(arguments: str | None, name: str | None) -> dict:
    if not arguments:
        return {}
    try:
        return json.loads(arguments)
    except json.JSONDecodeError as e:
        raise ResponseParseError(
            f"Invalid JSON arguments for tool call '{name}': {e}",
            details={"arguments": arguments},
        ) from e


def _to_usage_metadata(usage: dict[str, Any] | None) -> dict[str, Any] | None:
    if not usage:
        return None
    return {
        "prompt_token_count": usage.get("prompt_tokens"),
        "candidates_token_count": usage.get("completion_tokens"),
        "total_token_count": usage.get("total_tokens"),
    }


def from_openai_chat_completion_response(
    completion: dict[str, Any],
) -> dict[str, Any]:
    """Maps a `ChatCompletion` (as a dict) to a native response."""
    candidates = []
    for position, choice in enumerate(completion.get("choices") or []):
        message = choice.get("message") or {}
        parts: list[Part] = []
        if message.get("content"):
            parts.append(Part(text=message["content"]))
        for tool_call in message.get("tool_calls") or []:
            function = tool_call.get("function") or {}
            parts.append(
                Part(
                    function_call={
                        "id": tool_call.get("id"),
                        "name": function.get("name"),
                        "args": _parse_arguments(
                            function.get("arguments"), function.get("name")
                        ),
                    }
                )
            )
        candidates.append(
            {
                "index": choice.get("index", position),
                "finish_reason": to_finish_reason(choice.get("finish_reason")),
                "content": {"role": "model", "parts": parts},
            }
        )

    response: dict[str, Any] = {"candidates": candidates}
    usage_metadata = _to_usage_metadata(completion.get("usage"))
    if usage_metadata:
        response["usage_metadata"] = usage_metadata
    return response


def from_openai_stream_chunk(chunk: dict[str, Any]) -> dict[str, Any]:
    """
    Maps a streamed `ChatCompletionChunk` to a native response chunk.
    Only text is translated; tool-call deltas go through
    `StreamToolCallAccumulator`.
    """
    candidates = []
    for position, choice in enumerate(chunk.get("choices") or []):
        delta = choice.get("delta") or {}
        parts: list[Part] = []
        if delta.get("content"):
            parts.append(Part(text=delta["content"]))
        candidates.append(
            {
                "index": choice.get("index", position),
                "finish_reason": to_finish_reason(choice.get("finish_reason")),
                "content": {"role": "model", "parts": parts},
            }
        )
    return {"candidates": candidates}


class StreamToolCallAccumulator:
    """Reassembles tool calls whose arguments arrive in fragments."""

    def __init__(self):
        self._tool_calls: dict[int, dict[str, str]] = {}

    def __bool__(self) -> bool:
        return bool(self._tool_calls)

    def add_delta(self, tool_call_delta: dict[str, Any]):
        index = tool_call_delta.get("index")
        if index is None:
            return
        function = tool_call_delta.get("function") or {}
        fragment = function.get("arguments") or ""

        entry = self._tool_calls.get(index)
        if entry is None:
            self._tool_calls[index] = {
                "id": tool_call_delta.get("id") or "",
                "name": function.get("name") or "",
                "arguments": fragment,
            }
            return

        entry["arguments"] += fragment
        if not entry["id"] and tool_call_delta.get("id"):
            entry["id"] = tool_call_delta["id"]
        if not entry["name"] and function.get("name"):
            entry["name"] = function["name"]

    def finalize(self) -> list[Part]:
        """
        Parses every accumulated argument string and returns one
        function_call part per index, in index order.

        Raises:
            ResponseParseError: if any argument string is not valid JSON.
        """
        parts = [
            Part(
                function_call={
                    "id": tc["id"],
                    "name": tc["name"],
                    "args": _parse_arguments(tc["arguments"], tc["name"]),
                }
            )
            for _, tc in sorted(self._tool_calls.items())
        ]
        self._tool_calls.clear()
        return parts


async def from_openai_stream(
    chunks: AsyncIterable[dict[str, Any]],
) -> AsyncIterator[dict[str, Any]]:
    """
    Maps a stream of OpenAI chunks to native response chunks. Text deltas
    are forwarded as they arrive; tool calls are emitted as one chunk once
    the stream reports the `tool_calls` finish reason.
    """
    accumulator = StreamToolCallAccumulator()
    chunk_count = 0

    async for chunk in chunks:
        chunk_count += 1
        usage_metadata = _to_usage_metadata(chunk.get("usage"))
        choices = chunk.get("choices") or []
        if not choices:
            if usage_metadata:
                yield {"candidates": [], "usage_metadata": usage_metadata}
            continue

        choice = choices[0]
        delta = choice.get("delta") or {}
        if delta.get("content"):
            yield from_openai_stream_chunk(chunk)

        for tool_call_delta in delta.get("tool_calls") or []:
            accumulator.add_delta(tool_call_delta)

        finish_reason = choice.get("finish_reason")
        if finish_reason == "tool_calls":
            response: dict[str, Any] = {
                "candidates": [
                    {
                        "index": 0,
                        "finish_reason": FinishReason.TOOL_CALL,
                        "content": {
                            "role": "model",
                            "parts": accumulator.finalize(),
                        },
                    }
                ]
            }
            if usage_metadata:
                response["usage_metadata"] = usage_metadata
            yield response
        elif (finish_reason and not delta.get("content")) or usage_metadata:
            response = {
                "candidates": [
                    {
                        "index": choice.get("index", 0),
                        "finish_reason": to_finish_reason(finish_reason),
                        "content": {"role": "model", "parts": []},
                    }
                ]
            }
            if usage_metadata:
                response["usage_metadata"] = usage_metadata
            yield response

    logger.debug(f"OpenAI stream finished after {chunk_count} chunks")
