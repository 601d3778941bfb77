import inspect
from typing import Any


async def maybe_await(value: Any) -> Any:
    """Callbacks may be plain functions or coroutines; accept both."""
    if inspect.isawaitable(value):
        return await value
    return value
