import asyncio


class CancelSignal:
    """
    Cooperative cancellation shared by one chat exchange and the tool calls
    it schedules. Nothing is preempted: tools poll `is_set()` or await
    `wait()` themselves.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: str | None = None

    def set(self, reason: str | None = None):
        """Signal that cancellation has been requested."""
        if not self._event.is_set():
            self.reason = reason
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    async def wait(self):
        """Wait until the cancellation is signaled."""
        await self._event.wait()
