"""
Error helpers shared by the retry loop and the chat session: readable
messages, HTTP status extraction and on-disk failure reports.
"""

import json
import logging
import tempfile
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any

import aiofiles
import httpx

logger = logging.getLogger(__name__)

REPORT_FILE_PREFIX = "chatloop-client-error"


def get_error_message(error: Any) -> str:
    """Safely gets an error message from an exception."""
    try:
        return str(error)
    except Exception:
        return "Failed to get error details"


def get_error_status(error: Any) -> int | str | None:
    """
    Returns the HTTP status attached to an error, if any.

    SDK errors (openai, google) expose `status_code` or `status`; raw
    `httpx.HTTPStatusError`s carry it on their response.
    """
    for attr in ("status_code", "status", "code"):
        status = getattr(error, attr, None)
        if isinstance(status, (int, str)) and not isinstance(status, bool):
            return status
    response = getattr(error, "response", None)
    if isinstance(response, httpx.Response):
        return response.status_code
    return None


def _build_report(error: Any, context: Any | None) -> dict[str, Any]:
    if isinstance(error, BaseException):
        details = {
            "type": type(error).__name__,
            "message": get_error_message(error),
            "stack": "".join(
                traceback.format_exception(
                    type(error), error, error.__traceback__
                )
            ),
        }
    else:
        details = {"message": get_error_message(error)}

    status = get_error_status(error)
    if status is not None:
        details["status"] = status

    report: dict[str, Any] = {"error": details}
    if context:
        report["context"] = context
    return report


async def report_error(
    error: Any,
    base_message: str,
    context: Any | None = None,
    error_type: str = "general",
) -> Path | None:
    """
    把错误详情写入临时目录下的 JSON 报告文件

    Args:
        error: 捕获到的异常
        base_message: 写入日志的简短说明
        context: 附加的上下文（例如请求内容）
        error_type: 报告类别，用于文件名

    Returns:
        报告文件路径；写入失败时返回 None

    """
    timestamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S-%f")
    report_path = (
        Path(tempfile.gettempdir())
        / f"{REPORT_FILE_PREFIX}-{error_type}-{timestamp}.json"
    )
    report = _build_report(error, context)

    try:
        async with aiofiles.open(report_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(report, indent=2, default=str))
    except OSError as e:
        logger.error(f"{base_message} Failed to write error report: {e}")
        logger.error(f"Underlying error: {report['error']['message']}")
        return None

    logger.error(f"{base_message} Full report available at: {report_path}")
    return report_path
