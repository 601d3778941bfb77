import asyncio

import pytest

from chatloop_core.config import Config
from chatloop_core.config.models import DEFAULT_FLASH_MODEL, DEFAULT_MODEL
from chatloop_core.core.chat import ChatSession
from chatloop_core.core.generators.base import AuthType, ContentGenerator


def _response(*parts, usage=None, afc=None):
    response = {
        "candidates": [
            {
                "index": 0,
                "content": {"role": "model", "parts": list(parts)},
                "finish_reason": "STOP",
            }
        ]
    }
    if usage:
        response["usage_metadata"] = usage
    if afc is not None:
        response["automatic_function_calling_history"] = afc
    return response


class _FakeGenerator(ContentGenerator):
    def __init__(
        self,
        responses=None,
        chunks=None,
        errors=None,
        delay=0.0,
        stream_error=None,
    ):
        self.responses = list(responses or [])
        self.chunks = list(chunks or [])
        self.stream_error = stream_error
        self.errors = list(errors or [])
        self.delay = delay
        self.requests = []
        self.models = []
        self.active = 0
        self.max_active = 0

    async def generate_content(self, model, config, contents):
        self.models.append(model)
        self.requests.append(contents)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.errors:
                raise self.errors.pop(0)
            return self.responses.pop(0)
        finally:
            self.active -= 1

    async def generate_content_stream(self, model, config, contents):
        self.models.append(model)
        self.requests.append(contents)
        if self.errors:
            raise self.errors.pop(0)
        chunks = list(self.chunks)
        stream_error = self.stream_error

        async def stream():
            for chunk in chunks:
                yield chunk
            if stream_error is not None:
                raise stream_error

        return stream()

    async def count_tokens(self, model, contents):
        return {"total_tokens": 0}

    async def embed_content(self, model, contents, task_type=None, title=None):
        return {"embeddings": []}


@pytest.fixture
def no_error_reports(monkeypatch):
    async def fake_report_error(*args, **kwargs):
        return None

    monkeypatch.setattr(
        "chatloop_core.utils.retry.report_error", fake_report_error
    )


def _session(generator, config=None, history=None):
    return ChatSession(
        config=config or Config(),
        content_generator=generator,
        history=history,
        retry_options={"initial_delay_ms": 1, "max_delay_ms": 2},
    )


@pytest.mark.asyncio
async def test_send_message_records_user_and_model_turns():
    generator = _FakeGenerator(responses=[_response({"text": "Hi there"})])
    chat = _session(generator)

    response = await chat.send_message("Hello")

    assert response["candidates"][0]["content"]["parts"] == [
        {"text": "Hi there"}
    ]
    assert chat.get_history() == [
        {"role": "user", "parts": [{"text": "Hello"}]},
        {"role": "model", "parts": [{"text": "Hi there"}]},
    ]
    assert generator.requests[0] == [
        {"role": "user", "parts": [{"text": "Hello"}]}
    ]


@pytest.mark.asyncio
async def test_failed_send_leaves_history_untouched(no_error_reports):
    generator = _FakeGenerator(errors=[ValueError("bad request")])
    history = [
        {"role": "user", "parts": [{"text": "a"}]},
        {"role": "model", "parts": [{"text": "b"}]},
    ]
    chat = _session(generator, history=history)

    with pytest.raises(ValueError, match="bad request"):
        await chat.send_message("c")

    assert len(generator.requests) == 1
    assert chat.get_history() == history


@pytest.mark.asyncio
async def test_transient_errors_are_retried():
    generator = _FakeGenerator(
        responses=[_response({"text": "ok"})],
        errors=[RuntimeError("503 Service Unavailable")],
    )
    chat = _session(generator)

    await chat.send_message("ping")

    assert len(generator.requests) == 2
    assert chat.get_history()[-1] == {"role": "model", "parts": [{"text": "ok"}]}


@pytest.mark.asyncio
async def test_get_history_returns_independent_copy():
    chat = _session(
        _FakeGenerator(),
        history=[{"role": "user", "parts": [{"text": "original"}]}],
    )

    snapshot = chat.get_history()
    snapshot[0]["parts"][0]["text"] = "mutated"
    snapshot.append({"role": "model", "parts": [{"text": "extra"}]})

    assert chat.get_history() == [
        {"role": "user", "parts": [{"text": "original"}]}
    ]


@pytest.mark.asyncio
async def test_request_uses_curated_history():
    generator = _FakeGenerator(responses=[_response({"text": "fine"})])
    chat = _session(
        generator,
        history=[
            {"role": "user", "parts": [{"text": "lost"}]},
            {"role": "model", "parts": [{"text": ""}]},
        ],
    )

    await chat.send_message("again")

    assert generator.requests[0] == [
        {"role": "user", "parts": [{"text": "again"}]}
    ]
    # The comprehensive history keeps the invalid turn.
    assert len(chat.get_history()) == 4
    assert len(chat.get_history(curated=True)) == 2


@pytest.mark.asyncio
async def test_automatic_function_calling_history_replaces_user_turn():
    prior = [
        {"role": "user", "parts": [{"text": "earlier"}]},
        {"role": "model", "parts": [{"text": "reply"}]},
    ]
    afc = prior + [
        {"role": "user", "parts": [{"text": "weather?"}]},
        {
            "role": "model",
            "parts": [{"function_call": {"name": "weather", "args": {}}}],
        },
        {
            "role": "user",
            "parts": [
                {
                    "function_response": {
                        "name": "weather",
                        "response": {"output": "sunny"},
                    }
                }
            ],
        },
    ]
    generator = _FakeGenerator(
        responses=[_response({"text": "It is sunny."}, afc=afc)]
    )
    chat = _session(generator, history=prior)

    await chat.send_message("weather?")

    history = chat.get_history()
    assert history[:2] == prior
    assert history[2:] == afc[2:] + [
        {"role": "model", "parts": [{"text": "It is sunny."}]}
    ]


@pytest.mark.asyncio
async def test_truncated_function_calling_history_falls_back_to_user_turn():
    prior = [
        {"role": "user", "parts": [{"text": "earlier"}]},
        {"role": "model", "parts": [{"text": "reply"}]},
    ]
    generator = _FakeGenerator(
        responses=[_response({"text": "done"}, afc=prior[:1])]
    )
    chat = _session(generator, history=prior)

    await chat.send_message("next")

    assert chat.get_history()[2:] == [
        {"role": "user", "parts": [{"text": "next"}]},
        {"role": "model", "parts": [{"text": "done"}]},
    ]


@pytest.mark.asyncio
async def test_function_response_turn_without_output_adds_no_empty_turn():
    response = {"candidates": [{"index": 0, "finish_reason": "STOP"}]}
    generator = _FakeGenerator(responses=[response])
    chat = _session(generator)
    message = {
        "function_response": {"name": "t", "response": {"output": "done"}}
    }

    await chat.send_message([message])

    assert chat.get_history() == [{"role": "user", "parts": [message]}]


@pytest.mark.asyncio
async def test_empty_output_records_empty_model_turn():
    generator = _FakeGenerator(
        responses=[{"candidates": [{"index": 0, "finish_reason": "SAFETY"}]}]
    )
    chat = _session(generator)

    await chat.send_message("blocked?")

    assert chat.get_history()[-1] == {"role": "model", "parts": []}


@pytest.mark.asyncio
async def test_stream_consolidates_text_chunks():
    chunks = [
        _response({"text": "thinking...", "thought": True}),
        _response({"text": "Hel"}),
        _response({"text": ""}),
        _response({"text": "lo"}, usage={"total_token_count": 7}),
    ]
    generator = _FakeGenerator(chunks=chunks)
    chat = _session(generator)

    received = [chunk async for chunk in chat.send_message_stream("Hi")]

    assert received == chunks
    assert chat.get_history() == [
        {"role": "user", "parts": [{"text": "Hi"}]},
        {"role": "model", "parts": [{"text": "Hello"}]},
    ]
    assert ChatSession.get_final_usage_metadata(received) == {
        "total_token_count": 7
    }


@pytest.mark.asyncio
async def test_stream_keeps_function_calls_separate():
    call_part = {"function_call": {"id": "c1", "name": "ls", "args": {}}}
    chunks = [_response({"text": "Listing"}), _response(call_part)]
    chat = _session(_FakeGenerator(chunks=chunks))

    async for _ in chat.send_message_stream("files?"):
        pass

    assert chat.get_history()[1:] == [
        {"role": "model", "parts": [{"text": "Listing"}]},
        {"role": "model", "parts": [call_part]},
    ]


@pytest.mark.asyncio
async def test_stream_creation_failure_leaves_history_untouched(
    no_error_reports,
):
    chat = _session(_FakeGenerator(errors=[ValueError("nope")]))

    with pytest.raises(ValueError):
        async for _ in chat.send_message_stream("Hi"):
            pass

    assert chat.get_history() == []


@pytest.mark.asyncio
async def test_stream_failure_midway_leaves_history_untouched():
    generator = _FakeGenerator(
        chunks=[_response({"text": "partial"})],
        stream_error=RuntimeError("connection reset"),
    )
    chat = _session(generator)
    received = []

    with pytest.raises(RuntimeError, match="connection reset"):
        async for chunk in chat.send_message_stream("Hi"):
            received.append(chunk)

    assert received == [_response({"text": "partial"})]
    assert chat.get_history() == []


@pytest.mark.asyncio
async def test_abandoned_stream_does_not_block_later_sends():
    generator = _FakeGenerator(
        responses=[_response({"text": "second"})],
        chunks=[_response({"text": "one"}), _response({"text": "two"})],
    )
    chat = _session(generator)

    stream = chat.send_message_stream("first")
    first_chunk = await stream.__anext__()
    assert first_chunk == _response({"text": "one"})

    await asyncio.wait_for(chat.send_message("again"), 1.0)

    assert chat.get_history() == [
        {"role": "user", "parts": [{"text": "again"}]},
        {"role": "model", "parts": [{"text": "second"}]},
    ]
    await stream.aclose()
    assert len(chat.get_history()) == 2


@pytest.mark.asyncio
async def test_flash_fallback_after_persistent_quota_errors(no_error_reports):
    config = Config(auth_type=AuthType.LOGIN_WITH_GOOGLE_PERSONAL)
    offers = []

    async def accept_fallback(current_model, fallback_model):
        offers.append((current_model, fallback_model))
        return True

    config.set_flash_fallback_handler(accept_fallback)
    generator = _FakeGenerator(
        responses=[_response({"text": "from flash"})],
        errors=[
            RuntimeError("429 Resource exhausted"),
            RuntimeError("429 Resource exhausted"),
        ],
    )
    chat = _session(generator, config=config)

    await chat.send_message("Hi")

    assert offers == [(DEFAULT_MODEL, DEFAULT_FLASH_MODEL)]
    assert generator.models == [DEFAULT_MODEL, DEFAULT_MODEL, DEFAULT_FLASH_MODEL]
    assert config.get_model() == DEFAULT_FLASH_MODEL
    assert config.is_model_switched_during_session()


@pytest.mark.asyncio
async def test_no_flash_fallback_for_api_key_auth(no_error_reports):
    config = Config(auth_type=AuthType.USE_GEMINI)
    offers = []
    config.set_flash_fallback_handler(lambda *models: offers.append(models))
    generator = _FakeGenerator(
        responses=[_response({"text": "eventually"})],
        errors=[RuntimeError("429"), RuntimeError("429")],
    )
    chat = _session(generator, config=config)

    await chat.send_message("Hi")

    assert offers == []
    assert generator.models == [DEFAULT_MODEL] * 3
    assert not config.is_model_switched_during_session()


@pytest.mark.asyncio
async def test_concurrent_sends_are_serialized():
    generator = _FakeGenerator(
        responses=[_response({"text": "one"}), _response({"text": "two"})],
        delay=0.01,
    )
    chat = _session(generator)

    await asyncio.gather(chat.send_message("first"), chat.send_message("second"))

    assert generator.max_active == 1
    # The second request already sees the first exchange.
    assert len(generator.requests[1]) == 3
    assert len(chat.get_history()) == 4


def test_constructor_rejects_invalid_role():
    with pytest.raises(ValueError, match="Role must be user or model"):
        ChatSession(
            config=Config(),
            content_generator=_FakeGenerator(),
            history=[{"role": "system", "parts": [{"text": "x"}]}],
        )


def test_set_and_clear_history():
    chat = _session(_FakeGenerator())
    chat.add_history({"role": "user", "parts": [{"text": "a"}]})
    assert len(chat.get_history()) == 1

    chat.clear_history()
    assert chat.get_history() == []

    with pytest.raises(ValueError):
        chat.set_history([{"role": "tool", "parts": []}])
