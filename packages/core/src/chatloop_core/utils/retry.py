"""
Retry with exponential backoff for outbound model calls.
"""

import asyncio
import logging
import random
import re
from collections.abc import Awaitable, Callable
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any, TypeVar

import httpx

from .asyncio_utils import maybe_await
from .errors import get_error_status, report_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SERVER_ERROR_RE = re.compile(r"5\d{2}")


def default_should_retry(error: Exception) -> bool:
    """Retry on rate limiting (429) and any 5xx server error."""
    message = str(error)
    if "429" in message:
        return True
    if _SERVER_ERROR_RE.search(message):
        return True
    return False


def _is_429(error: Exception) -> bool:
    status = get_error_status(error)
    return status in (429, "429") or "429" in str(error)


def get_retry_after_seconds(error: Exception) -> float:
    """Reads a Retry-After header from the error's HTTP response, if any."""
    response = getattr(error, "response", None)
    if not isinstance(response, httpx.Response):
        return 0
    header = response.headers.get("retry-after")
    if not header:
        return 0
    try:
        return max(0.0, float(header))
    except ValueError:
        pass
    # It might be an HTTP date
    try:
        retry_after_date = parsedate_to_datetime(header)
    except (TypeError, ValueError):
        return 0
    delay = retry_after_date - datetime.now(retry_after_date.tzinfo)
    return max(0.0, delay.total_seconds())


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 5,
    initial_delay_ms: int = 5000,
    max_delay_ms: int = 30000,
    should_retry: Callable[[Exception], bool] = default_should_retry,
    on_persistent_429: Callable[[str | None], Any] | None = None,
    auth_type: str | None = None,
) -> T:
    """
    Calls `fn` until it succeeds, retrying transient failures with
    exponential backoff and +-30% jitter.

    After two consecutive 429 errors `on_persistent_429(auth_type)` is
    invoked (it may be sync or async). If it returns a model name the
    attempt counter and delay are reset and the call is retried at once.
    When attempts are exhausted an error report is written and the last
    exception is re-raised unchanged.
    """
    attempt = 0
    current_delay = initial_delay_ms
    consecutive_429_count = 0
    fn_name = getattr(fn, "__name__", repr(fn))

    while True:
        attempt += 1
        try:
            return await fn()
        except Exception as e:
            if _is_429(e):
                consecutive_429_count += 1
            else:
                consecutive_429_count = 0

            if consecutive_429_count >= 2 and on_persistent_429:
                consecutive_429_count = 0
                try:
                    fallback_model = await maybe_await(
                        on_persistent_429(auth_type)
                    )
                except Exception as fallback_error:
                    logger.warning(f"Fallback handler failed: {fallback_error}")
                    fallback_model = None
                if fallback_model:
                    logger.info(f"Switched to fallback model: {fallback_model}")
                    attempt = 0
                    current_delay = initial_delay_ms
                    continue

            if attempt >= max_attempts or not should_retry(e):
                await report_error(
                    e,
                    f"Function {fn_name} failed after {attempt} attempt(s).",
                    error_type="retry",
                )
                raise

            retry_after_seconds = get_retry_after_seconds(e)
            if retry_after_seconds > 0:
                logger.warning(
                    f"Attempt {attempt} failed for {fn_name}. "
                    f"Honoring Retry-After header: waiting for {retry_after_seconds:.2f}s..."
                )
                await asyncio.sleep(retry_after_seconds)
                current_delay = initial_delay_ms
                continue

            jitter = current_delay * 0.3 * (random.random() * 2 - 1)
            delay_with_jitter = max(0, current_delay + jitter)

            logger.warning(
                f"Attempt {attempt} failed for {fn_name}. Retrying in {delay_with_jitter / 1000:.2f}s...",
                exc_info=True,
            )

            await asyncio.sleep(delay_with_jitter / 1000)
            current_delay = min(max_delay_ms, current_delay * 2)
