"""
Helpers for building user content and reading model responses.
"""

import json
from typing import Any

from chatloop_core.core.types import Content, FunctionCall, Part, PartListUnion


def _to_part(value: str | Part) -> Part:
    if isinstance(value, str):
        return Part(text=value)
    return value


def create_user_content(message: PartListUnion) -> Content:
    """Wraps a string, a part, or a list of strings/parts as a user turn."""
    if isinstance(message, list):
        parts = [_to_part(p) for p in message]
    else:
        parts = [_to_part(message)]
    return Content(role="user", parts=parts)


def _get_parts(response: dict[str, Any]) -> list[Part]:
    try:
        return response["candidates"][0]["content"]["parts"] or []
    except (KeyError, IndexError, TypeError):
        return []


def get_response_text(response: dict[str, Any]) -> str | None:
    """Extracts the non-thought text from a response."""
    text_segments = [
        part["text"]
        for part in _get_parts(response)
        if part.get("text") is not None and not part.get("thought")
    ]
    return "".join(text_segments) if text_segments else None


def get_function_calls(response: dict[str, Any]) -> list[FunctionCall] | None:
    """Extracts function calls from a response."""
    function_calls = [
        part["function_call"]
        for part in _get_parts(response)
        if part.get("function_call")
    ]
    return function_calls if function_calls else None


def get_structured_response_from_parts(parts: list[Part]) -> str | None:
    text_content = "".join(
        p["text"] for p in parts if p.get("text") and not p.get("thought")
    )
    function_calls = [p["function_call"] for p in parts if p.get("function_call")]

    if text_content and function_calls:
        return f"{text_content}\n{json.dumps(function_calls, indent=2)}"
    if text_content:
        return text_content
    if function_calls:
        return json.dumps(function_calls, indent=2)
    return None


def get_structured_response(response: dict[str, Any]) -> str | None:
    """Extracts both text and function calls into a structured string."""
    return get_structured_response_from_parts(_get_parts(response))
