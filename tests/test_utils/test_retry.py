import httpx
import pytest

from chatloop_core.utils.retry import (
    default_should_retry,
    get_retry_after_seconds,
    retry_with_backoff,
)


class _HTTPError(Exception):
    def __init__(self, message, status_code=None, headers=None):
        super().__init__(message)
        self.status_code = status_code
        self.response = httpx.Response(status_code or 500, headers=headers)


class _Flaky:
    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


@pytest.fixture
def reported(monkeypatch):
    reports = []

    async def fake_report_error(error, base_message, context=None, error_type="general"):
        reports.append((error, base_message))
        return None

    monkeypatch.setattr(
        "chatloop_core.utils.retry.report_error", fake_report_error
    )
    return reports


FAST = {"initial_delay_ms": 1, "max_delay_ms": 2}


def test_default_should_retry():
    assert default_should_retry(Exception("429 Too Many Requests"))
    assert default_should_retry(Exception("503 Service Unavailable"))
    assert not default_should_retry(Exception("400 Bad Request"))
    assert not default_should_retry(ValueError("invalid"))


@pytest.mark.asyncio
async def test_returns_after_transient_failures(reported):
    fn = _Flaky([Exception("500"), Exception("502")])

    result = await retry_with_backoff(fn, **FAST)

    assert result == "ok"
    assert fn.calls == 3
    assert reported == []


@pytest.mark.asyncio
async def test_exhaustion_reraises_original_error(reported):
    errors = [Exception(f"500 attempt {i}") for i in range(3)]
    fn = _Flaky(list(errors))

    with pytest.raises(Exception) as exc_info:
        await retry_with_backoff(fn, max_attempts=3, **FAST)

    assert exc_info.value is errors[-1]
    assert fn.calls == 3
    assert len(reported) == 1
    assert reported[0][0] is errors[-1]


@pytest.mark.asyncio
async def test_non_retryable_error_fails_immediately(reported):
    fn = _Flaky([ValueError("bad input")])

    with pytest.raises(ValueError, match="bad input"):
        await retry_with_backoff(fn, **FAST)

    assert fn.calls == 1
    assert len(reported) == 1


@pytest.mark.asyncio
async def test_persistent_429_invokes_fallback_once(reported):
    fn = _Flaky([_HTTPError("429", 429), _HTTPError("429", 429)])
    fallback_calls = []

    async def on_persistent_429(auth_type):
        fallback_calls.append(auth_type)
        return "flash-model"

    result = await retry_with_backoff(
        fn,
        on_persistent_429=on_persistent_429,
        auth_type="oauth-personal",
        **FAST,
    )

    assert result == "ok"
    assert fallback_calls == ["oauth-personal"]
    assert fn.calls == 3


@pytest.mark.asyncio
async def test_fallback_resets_attempt_budget(reported):
    # Four 429s with only three attempts: the switch after the second
    # grants a fresh budget.
    fn = _Flaky([Exception("429")] * 4)

    result = await retry_with_backoff(
        fn,
        max_attempts=3,
        on_persistent_429=lambda auth_type: "flash-model",
        **FAST,
    )

    assert result == "ok"
    assert fn.calls == 5


@pytest.mark.asyncio
async def test_declined_fallback_keeps_retrying(reported):
    fn = _Flaky([Exception("429")] * 2)
    calls = []

    result = await retry_with_backoff(
        fn,
        on_persistent_429=lambda auth_type: calls.append(auth_type),
        **FAST,
    )

    assert result == "ok"
    assert calls == [None]


@pytest.mark.asyncio
async def test_failing_fallback_handler_is_ignored(reported):
    fn = _Flaky([Exception("429")] * 2)

    def broken_handler(auth_type):
        raise RuntimeError("handler broke")

    result = await retry_with_backoff(
        fn, on_persistent_429=broken_handler, **FAST
    )

    assert result == "ok"


def test_retry_after_seconds_numeric():
    error = _HTTPError("429", 429, headers={"Retry-After": "2"})
    assert get_retry_after_seconds(error) == 2.0


def test_retry_after_seconds_in_the_past_is_zero():
    error = _HTTPError(
        "429", 429, headers={"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}
    )
    assert get_retry_after_seconds(error) == 0


def test_retry_after_seconds_without_response():
    assert get_retry_after_seconds(Exception("429")) == 0
    assert get_retry_after_seconds(_HTTPError("500", 500)) == 0
