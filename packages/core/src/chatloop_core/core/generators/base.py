"""
内容生成器基类定义
定义了生成内容、流式生成、计算 token 和生成嵌入向量的核心接口
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from enum import Enum
from typing import Any, TypedDict


class AuthType(str, Enum):
    """认证类型枚举"""

    LOGIN_WITH_GOOGLE_PERSONAL = (
        "oauth-personal"  # 通过个人的 Google 账号 OAuth 登录
    )
    USE_GEMINI = "gemini-api-key"  # 使用 Gemini API 密钥
    USE_VERTEX_AI = "vertex-ai"  # 使用 Vertex AI
    USE_OPENAI = "openai-compatible"  # 使用兼容 OpenAI 的接口


class ContentGeneratorConfig(TypedDict, total=False):
    """内容生成器配置"""

    model: str
    api_key: str | None
    base_url: str | None
    proxy: str | None
    auth_type: AuthType | None


class ContentGenerator(ABC):
    """
    内容生成器接口 (ContentGenerator)
    抽象了生成内容、流式生成内容、计算 token 和生成嵌入向量的核心功能
    这是一个适配器接口，允许系统以统一的方式与不同后端的 AI 服务交互
    （例如，原生 Gemini API 或兼容 OpenAI 的接口）
    """

    @abstractmethod
    async def generate_content(
        self,
        model: str,
        config: dict[str, Any],
        contents: list[dict[str, Any]],
    ) -> dict[str, Any]:
        """
        生成内容

        Args:
            model: 使用的模型名称
            config: 生成配置
            contents: 内容列表

        Returns:
            生成的响应字典

        """

    @abstractmethod
    async def generate_content_stream(
        self,
        model: str,
        config: dict[str, Any],
        contents: list[dict[str, Any]],
    ) -> AsyncIterator[dict[str, Any]]:
        """
        以流式方式生成内容

        Args:
            model: 使用的模型名称
            config: 生成配置
            contents: 内容列表

        Returns:
            一个惰性的、只能消费一次的响应片段序列

        """

    @abstractmethod
    async def count_tokens(
        self,
        model: str,
        contents: list[dict[str, Any]],
    ) -> dict[str, Any]:
        """
        计算内容的 token 数量

        Args:
            model: 使用的模型名称
            contents: 内容列表

        Returns:
            token 计数响应

        """

    @abstractmethod
    async def embed_content(
        self,
        model: str,
        contents: list[str],
        task_type: str | None = None,
        title: str | None = None,
    ) -> dict[str, Any]:
        """
        为内容生成嵌入向量

        Args:
            model: 使用的嵌入模型名称
            contents: 文本内容列表
            task_type: 任务类型（可选）
            title: 标题（可选）

        Returns:
            嵌入向量响应

        """
