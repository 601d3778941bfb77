import logging
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, PrivateAttr
from pydantic_settings import BaseSettings, SettingsConfigDict

from chatloop_core.config.models import DEFAULT_MODEL
from chatloop_core.core.generators.base import AuthType, ContentGeneratorConfig
from chatloop_core.core.types import ApprovalMode

logger = logging.getLogger(__name__)

# (current_model, fallback_model) -> whether to switch; may be async.
FlashFallbackHandler = Callable[[str, str], Any]


class TelemetrySettings(BaseModel):
    enabled: bool = False
    log_prompts: bool = True


class Config(BaseSettings):
    """
    Session configuration. Values come from keyword arguments or from
    `CHATLOOP_*` environment variables (nested fields use `__`, e.g.
    `CHATLOOP_TELEMETRY__ENABLED`).
    """

    model_config = SettingsConfigDict(
        env_prefix="CHATLOOP_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    model: str = DEFAULT_MODEL
    auth_type: AuthType | None = None
    approval_mode: ApprovalMode = ApprovalMode.DEFAULT
    proxy: str | None = None
    target_dir: Path = Field(default_factory=Path.cwd)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)
    usage_statistics_enabled: bool = True

    # Runtime state, not loaded from the environment
    _content_generator_config: ContentGeneratorConfig | None = PrivateAttr(
        default=None
    )
    _flash_fallback_handler: FlashFallbackHandler | None = PrivateAttr(
        default=None
    )
    _model_switched_during_session: bool = PrivateAttr(default=False)

    def get_session_id(self) -> str:
        return self.session_id

    def get_model(self) -> str:
        if self._content_generator_config:
            return self._content_generator_config.get("model") or self.model
        return self.model

    def set_model(self, new_model: str):
        if self._content_generator_config is not None:
            self._content_generator_config["model"] = new_model
        self.model = new_model
        self._model_switched_during_session = True
        logger.info(f"Model switched to {new_model}")

    def is_model_switched_during_session(self) -> bool:
        return self._model_switched_during_session

    def reset_model_to_default(self):
        self.model = DEFAULT_MODEL
        if self._content_generator_config is not None:
            self._content_generator_config["model"] = DEFAULT_MODEL
        self._model_switched_during_session = False

    def get_auth_type(self) -> AuthType | None:
        if self._content_generator_config:
            return self._content_generator_config.get("auth_type")
        return self.auth_type

    def get_content_generator_config(self) -> ContentGeneratorConfig | None:
        return self._content_generator_config

    def set_content_generator_config(self, config: ContentGeneratorConfig):
        self._content_generator_config = config
        if config.get("auth_type"):
            self.auth_type = config["auth_type"]

    def refresh_auth(self, auth_type: AuthType) -> ContentGeneratorConfig:
        """Builds the generator config for `auth_type` and makes it current."""
        from chatloop_core.core.generators.factory import (
            create_content_generator_config,
        )

        self.set_content_generator_config(
            create_content_generator_config(
                self.get_model(), auth_type, self.get_proxy()
            )
        )
        return self._content_generator_config

    def get_approval_mode(self) -> ApprovalMode:
        return self.approval_mode

    def set_approval_mode(self, mode: ApprovalMode):
        self.approval_mode = mode

    def get_proxy(self) -> str | None:
        return self.proxy

    def get_checkpoint_dir(self) -> Path:
        return self.target_dir / ".chatloop" / "checkpoints"

    def get_telemetry_enabled(self) -> bool:
        return self.telemetry.enabled

    def get_telemetry_log_prompts_enabled(self) -> bool:
        return self.telemetry.log_prompts

    def get_usage_statistics_enabled(self) -> bool:
        return self.usage_statistics_enabled

    def get_flash_fallback_handler(self) -> FlashFallbackHandler | None:
        return self._flash_fallback_handler

    def set_flash_fallback_handler(self, handler: FlashFallbackHandler | None):
        self._flash_fallback_handler = handler
