from .events import ToolCallRequestInfo, ToolCallResponseInfo

__all__ = ["ToolCallRequestInfo", "ToolCallResponseInfo"]
