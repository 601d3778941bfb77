import os

from chatloop_core.config.models import DEFAULT_MODEL
from chatloop_core.core.types import AuthenticationError

from .base import AuthType, ContentGenerator, ContentGeneratorConfig
from .gemini_generator import GeminiContentGenerator
from .openai_generator import OpenAIContentGenerator


def create_content_generator_config(
    model: str | None = None,
    auth_type: AuthType | None = None,
    proxy: str | None = None,
) -> ContentGeneratorConfig:
    """
    创建内容生成器的配置对象
    这个函数会从环境变量中读取必要的认证信息（API keys 与接口地址）
    并根据指定的认证类型构建一个完整的配置对象

    Args:
        model: 使用的模型名称
        auth_type: 认证类型
        proxy: 可选的代理地址

    Returns:
        内容生成器配置对象

    """
    content_generator_config: ContentGeneratorConfig = {
        "model": model or DEFAULT_MODEL,
        "auth_type": auth_type,
        "proxy": proxy,
    }

    if auth_type == AuthType.USE_GEMINI:
        content_generator_config["api_key"] = os.getenv("GEMINI_API_KEY")
    elif auth_type == AuthType.USE_OPENAI:
        content_generator_config["api_key"] = os.getenv("OPENAI_API_KEY")
        content_generator_config["base_url"] = os.getenv("OPENAI_BASE_URL")

    return content_generator_config


def create_content_generator(
    config: ContentGeneratorConfig,
) -> ContentGenerator:
    """
    Factory function to create the appropriate content generator based on
    auth type.
    """
    auth_type = config.get("auth_type")
    if auth_type == AuthType.USE_OPENAI:
        return OpenAIContentGenerator(
            model=config["model"],
            api_key=config.get("api_key"),
            base_url=config.get("base_url"),
            proxy=config.get("proxy"),
        )
    if auth_type == AuthType.USE_GEMINI:
        return GeminiContentGenerator(api_key=config.get("api_key"))

    raise AuthenticationError(
        f"Unsupported auth type for content generation: {auth_type}",
        auth_type=str(auth_type) if auth_type else None,
    )
