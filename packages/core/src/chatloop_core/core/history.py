"""
聊天历史记录的校验与筛选

The comprehensive history is the single authoritative list; the curated
view is always derived from it with `extract_curated_history`.
"""

from typing import Any

from chatloop_core.core.types import Content


def is_valid_response(response: dict[str, Any]) -> bool:
    """
    检查模型响应是否有效

    Args:
        response: 从模型收到的响应

    Returns:
        如果响应有效则返回 True

    """
    candidates = response.get("candidates")
    if not candidates:
        return False

    content = candidates[0].get("content")
    if not content:
        return False

    return is_valid_content(content)


def is_valid_content(content: dict[str, Any]) -> bool:
    """
    检查内容对象是否有效

    Args:
        content: Content 对象

    Returns:
        如果内容有效则返回 True

    """
    parts = content.get("parts") or []
    if not parts:
        return False

    for part in parts:
        # part 不应为空对象
        if not part or not isinstance(part, dict):
            return False

        # 如果 part 不是思想（thought）且文本为空字符串，则视为无效
        if not part.get("thought") and part.get("text") == "":
            return False

    return True


def is_function_response(content: dict[str, Any]) -> bool:
    """Checks if the content is a user turn made only of function responses."""
    parts = content.get("parts") or []
    return (
        content.get("role") == "user"
        and bool(parts)
        and all("function_response" in part for part in parts)
    )


def is_thought_content(content: dict[str, Any]) -> bool:
    parts = content.get("parts") or []
    return bool(parts) and bool(parts[0].get("thought"))


def is_text_content(content: dict[str, Any] | None) -> bool:
    """A model turn whose first part is plain (non-thought) text."""
    if not content:
        return False
    parts = content.get("parts") or []
    return (
        content.get("role") == "model"
        and bool(parts)
        and isinstance(parts[0].get("text"), str)
        and parts[0]["text"] != ""
        and not parts[0].get("thought")
    )


def validate_history(history: list[Content]) -> None:
    """
    验证聊天历史记录中是否包含正确的角色

    Args:
        history: 聊天历史记录

    Raises:
        ValueError: 如果历史记录无效

    """
    if not history:
        return

    for content in history:
        if content.get("role") not in ("user", "model"):
            raise ValueError(
                f"Role must be user or model, but got {content.get('role')}."
            )


def extract_curated_history(
    comprehensive_history: list[Content],
) -> list[Content]:
    """
    从完整的历史记录中提取经过筛选的（有效的）历史记录

    模型有时可能会生成无效或空的内容（例如，由于安全过滤器或背诵限制）
    从历史记录中提取有效的回合可以确保后续请求能被模型接受
    如果模型的响应无效，则其对应的用户输入也会被一并移除

    Args:
        comprehensive_history: 完整的聊天历史记录

    Returns:
        经过筛选的有效聊天历史记录

    """
    if not comprehensive_history:
        return []

    curated_history: list[Content] = []
    length = len(comprehensive_history)
    i = 0

    while i < length:
        if comprehensive_history[i]["role"] == "user":
            curated_history.append(comprehensive_history[i])
            i += 1
        else:
            model_output: list[Content] = []
            is_valid = True

            # 收集所有连续的模型输出
            while i < length and comprehensive_history[i]["role"] == "model":
                model_output.append(comprehensive_history[i])
                if is_valid and not is_valid_content(comprehensive_history[i]):
                    is_valid = False
                i += 1

            if is_valid:
                curated_history.extend(model_output)
            # 如果模型内容无效，则移除最后一个用户输入
            elif curated_history and curated_history[-1]["role"] == "user":
                curated_history.pop()

    return curated_history


def get_request_text_from_contents(contents: list[Content]) -> str:
    """
    从内容数组中提取所有文本部分并拼接成一个字符串

    Args:
        contents: 内容数组

    Returns:
        拼接后的文本字符串

    """
    return "".join(
        part["text"]
        for content in contents
        for part in content.get("parts") or []
        if part.get("text")
    )
