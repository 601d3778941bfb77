"""
ChatSession: conversation history plus serialized, retried sends to the
content generator.
"""

import asyncio
import copy
import logging
import time
from collections.abc import AsyncIterator
from typing import Any

from chatloop_core.config.models import DEFAULT_FLASH_MODEL
from chatloop_core.core.generators.base import AuthType, ContentGenerator
from chatloop_core.core.history import (
    extract_curated_history,
    get_request_text_from_contents,
    is_function_response,
    is_text_content,
    is_thought_content,
    is_valid_response,
    validate_history,
)
from chatloop_core.core.types import Content, Part, PartListUnion
from chatloop_core.telemetry import (
    ApiErrorEvent,
    ApiRequestEvent,
    ApiResponseEvent,
    TelemetryLogger,
)
from chatloop_core.utils.asyncio_utils import maybe_await
from chatloop_core.utils.errors import get_error_message, get_error_status
from chatloop_core.utils.response_utils import (
    create_user_content,
    get_structured_response,
    get_structured_response_from_parts,
)
from chatloop_core.utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)


class ChatSession:
    """
    Holds the comprehensive history of one conversation and sends messages
    to the model, one exchange at a time.

    History is only updated after an exchange fully succeeds; for streamed
    sends that means after the caller has drained the stream.
    """

    def __init__(
        self,
        config: Any,
        content_generator: ContentGenerator,
        generation_config: dict[str, Any] | None = None,
        history: list[Content] | None = None,
        telemetry: TelemetryLogger | None = None,
        retry_options: dict[str, Any] | None = None,
    ):
        history = history or []
        validate_history(history)
        self.config = config
        self.content_generator = content_generator
        self.generation_config = generation_config or {}
        self.telemetry = telemetry or TelemetryLogger(config)
        self.retry_options = retry_options or {}
        self._history: list[Content] = history
        self._send_lock = asyncio.Lock()

    # --- Telemetry helpers ---

    def _log_api_request(self, contents: list[Content], model: str):
        self.telemetry.log_api_request(
            ApiRequestEvent(
                model=model,
                request_text=get_request_text_from_contents(contents),
            )
        )

    def _log_api_response(
        self,
        duration_ms: int,
        usage_metadata: dict[str, Any] | None = None,
        response_text: str | None = None,
    ):
        self.telemetry.log_api_response(
            ApiResponseEvent.from_usage(
                model=self.config.get_model(),
                duration_ms=duration_ms,
                usage=usage_metadata,
                response_text=response_text,
            )
        )

    def _log_api_error(self, duration_ms: int, error: Exception):
        self.telemetry.log_api_error(
            ApiErrorEvent(
                model=self.config.get_model(),
                error=get_error_message(error),
                error_type=type(error).__name__,
                status_code=get_error_status(error),
                duration_ms=duration_ms,
            )
        )

    # --- Model fallback ---

    async def _handle_flash_fallback(
        self, auth_type: str | None = None
    ) -> str | None:
        """
        Offers to switch to the flash model after persistent 429 errors.
        Only personal OAuth accounts fall back.
        """
        if auth_type != AuthType.LOGIN_WITH_GOOGLE_PERSONAL:
            return None

        current_model = self.config.get_model()
        fallback_model = DEFAULT_FLASH_MODEL
        if current_model == fallback_model:
            return None

        fallback_handler = self.config.get_flash_fallback_handler()
        if not callable(fallback_handler):
            return None

        try:
            accepted = await maybe_await(
                fallback_handler(current_model, fallback_model)
            )
        except Exception as e:
            logger.warning(f"Flash fallback handler failed: {e}")
            return None

        if not accepted:
            logger.debug("Flash fallback rejected by handler")
            return None

        logger.info(f"Switching from {current_model} to {fallback_model}")
        self.config.set_model(fallback_model)
        return fallback_model

    def _retry_kwargs(self) -> dict[str, Any]:
        auth_type = self.config.get_auth_type()
        return {
            **self.retry_options,
            "on_persistent_429": self._handle_flash_fallback,
            "auth_type": auth_type.value
            if isinstance(auth_type, AuthType)
            else auth_type,
        }

    def _request_config(self, config: dict[str, Any] | None) -> dict[str, Any]:
        return {**self.generation_config, **(config or {})}

    # --- Sending ---

    async def send_message(
        self,
        message: PartListUnion,
        config: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Sends a message and waits for the whole response.

        Raises:
            Exception: whatever the content generator raised once retries
                are exhausted. History is left untouched.
        """
        async with self._send_lock:
            user_content = create_user_content(message)
            curated_history = self.get_history(curated=True)
            request_contents = curated_history + [user_content]
            request_config = self._request_config(config)
            logger.debug(
                f"Sending message with {len(request_contents)} content items"
            )

            self._log_api_request(request_contents, self.config.get_model())
            start_time = time.time()

            async def api_call():
                return await self.content_generator.generate_content(
                    model=self.config.get_model(),
                    config=request_config,
                    contents=request_contents,
                )

            try:
                response = await retry_with_backoff(
                    api_call, **self._retry_kwargs()
                )
            except Exception as e:
                self._log_api_error(
                    int((time.time() - start_time) * 1000), e
                )
                raise

            self._log_api_response(
                int((time.time() - start_time) * 1000),
                response.get("usage_metadata"),
                get_structured_response(response),
            )

            candidates = response.get("candidates") or []
            output_content = candidates[0].get("content") if candidates else None
            full_afc_history = response.get("automatic_function_calling_history")
            afc_history = (
                full_afc_history[len(curated_history) :]
                if full_afc_history
                else []
            )
            self._record_history(
                user_content,
                [output_content] if output_content else [],
                afc_history,
            )
            return response

    async def send_message_stream(
        self,
        message: PartListUnion,
        config: dict[str, Any] | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """
        Sends a message and yields response chunks as they arrive.

        The session lock is held while the request is built and the stream
        opened, and again while history is recorded; it is released while
        chunks are consumed. History is recorded only once the stream has
        been fully consumed, so an abandoned stream records nothing.
        """
        async with self._send_lock:
            user_content = create_user_content(message)
            request_contents = self.get_history(curated=True) + [user_content]
            request_config = self._request_config(config)
            model = self.config.get_model()
            logger.debug(
                f"Streaming message with {len(request_contents)} content items"
            )

            self._log_api_request(request_contents, model)
            start_time = time.time()

            async def api_call():
                return await self.content_generator.generate_content_stream(
                    model=self.config.get_model(),
                    config=request_config,
                    contents=request_contents,
                )

            try:
                stream = await retry_with_backoff(
                    api_call, **self._retry_kwargs()
                )
            except Exception as e:
                self._log_api_error(
                    int((time.time() - start_time) * 1000), e
                )
                raise

        output_contents: list[Content] = []
        chunks: list[dict[str, Any]] = []
        try:
            async for chunk in stream:
                chunks.append(chunk)
                if is_valid_response(chunk):
                    content = chunk["candidates"][0]["content"]
                    if not is_thought_content(content):
                        output_contents.append(content)
                else:
                    logger.debug("Received invalid response chunk")
                yield chunk
        except Exception as e:
            self._log_api_error(int((time.time() - start_time) * 1000), e)
            raise

        async with self._send_lock:
            all_parts: list[Part] = [
                part for content in output_contents for part in content["parts"]
            ]
            self._log_api_response(
                int((time.time() - start_time) * 1000),
                self.get_final_usage_metadata(chunks),
                get_structured_response_from_parts(all_parts),
            )
            self._record_history(user_content, output_contents)

    # --- History ---

    def _record_history(
        self,
        user_input: Content,
        model_output: list[Content],
        automatic_function_calling_history: list[Content] | None = None,
    ):
        non_thought_output = [
            content
            for content in model_output
            if not is_thought_content(content)
        ]

        output_contents: list[Content] = []
        if non_thought_output and all(
            content.get("role") for content in non_thought_output
        ):
            output_contents = non_thought_output
        elif not non_thought_output and model_output:
            # The model only produced thoughts; record nothing for it.
            pass
        elif not is_function_response(user_input):
            output_contents.append({"role": "model", "parts": []})

        if automatic_function_calling_history:
            self._history.extend(
                extract_curated_history(automatic_function_calling_history)
            )
        else:
            self._history.append(user_input)

        consolidated: list[Content] = []
        for content in copy.deepcopy(output_contents):
            last = consolidated[-1] if consolidated else None
            if is_text_content(last) and is_text_content(content):
                last["parts"][0]["text"] += content["parts"][0].get("text", "")
                last["parts"].extend(content["parts"][1:])
            else:
                consolidated.append(content)

        self._history.extend(consolidated)
        logger.debug(f"History updated, new length: {len(self._history)}")

    def get_history(self, curated: bool = False) -> list[Content]:
        """
        Returns a deep copy of the history. The curated view drops invalid
        model turns together with the user turn that produced them.
        """
        history = (
            extract_curated_history(self._history) if curated else self._history
        )
        return copy.deepcopy(history)

    def clear_history(self):
        self._history = []

    def add_history(self, content: Content):
        self._history.append(content)

    def set_history(self, history: list[Content]):
        validate_history(history)
        self._history = history

    @staticmethod
    def get_final_usage_metadata(
        chunks: list[dict[str, Any]],
    ) -> dict[str, Any] | None:
        for chunk in reversed(chunks):
            if chunk.get("usage_metadata"):
                return chunk["usage_metadata"]
        return None
