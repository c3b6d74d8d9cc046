"""
Polling manager for the authentication flow.

One instance is owned by whoever runs the login flow and passed to the
code that needs it; there is no module-level instance.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional


logger = logging.getLogger("zephyr_agent.auth")

PollFn = Callable[[], Awaitable[Optional[Any]]]


class PollingTimeout(Exception):
    """Polling did not produce a result before the deadline."""
    pass


class PollingManager:
    """
    Runs one poll loop at a time as an asyncio task.

    ``poll`` is awaited every ``interval`` seconds until it returns a
    value other than None. Errors raised by ``poll`` are logged and the
    loop continues. The task is a plain asyncio task, so it never keeps
    the interpreter alive once the event loop finishes.

    Example:
        ```python
        polling = PollingManager()
        polling.start(check_token, interval=2.0, timeout=300)
        token = await polling.wait()
        ```
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._task: Optional[asyncio.Task] = None
        self._clock = clock

    def is_in_progress(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(
        self,
        poll: PollFn,
        interval: float = 1.0,
        timeout: Optional[float] = None,
    ) -> asyncio.Task:
        """
        Start polling. If a poll loop is already running, its task is
        returned and ``poll`` is ignored.
        """
        if self.is_in_progress():
            return self._task

        self._task = asyncio.get_running_loop().create_task(
            self._run(poll, interval, timeout),
            name="zephyr-auth-polling",
        )
        return self._task

    async def _run(self, poll: PollFn, interval: float, timeout: Optional[float]) -> Any:
        deadline = None if timeout is None else self._clock() + timeout
        while True:
            try:
                result = await poll()
            except Exception as e:
                logger.debug(f"Polling error: {e}")
                result = None

            if result is not None:
                return result

            if deadline is not None and self._clock() >= deadline:
                raise PollingTimeout(f"No result after {timeout}s")

            await asyncio.sleep(interval)

    async def wait(self) -> Any:
        """Await the running poll loop's result."""
        if self._task is None:
            raise RuntimeError("Polling was not started")
        return await self._task

    def stop(self) -> None:
        """Cancel the running poll loop, if any."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
