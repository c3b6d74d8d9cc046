"""
Run-once cell for async work.

The first caller of :meth:`OnceCell.get_or_start` starts the factory;
every caller, concurrent or later, awaits the same future and gets the
same value or the same exception.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Awaitable, Callable, Generic, Optional, TypeVar


T = TypeVar("T")


class OnceState(Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class OnceCell(Generic[T]):
    """
    Memoized future with an explicit tri-state.

    Example:
        cell: OnceCell[Engine] = OnceCell()
        engine = await cell.get_or_start(lambda: create_engine(options))
    """

    def __init__(self) -> None:
        self._future: Optional[asyncio.Future] = None

    @property
    def state(self) -> OnceState:
        if self._future is None:
            return OnceState.NOT_STARTED
        if not self._future.done():
            return OnceState.IN_PROGRESS
        return OnceState.COMPLETED

    def get_or_start(self, factory: Callable[[], Awaitable[T]]) -> "asyncio.Future[T]":
        """
        Return the shared future, creating it from ``factory`` on first use.

        The returned future is shielded: cancelling one waiter does not
        cancel the work for the others.
        """
        if self._future is None:
            self._future = asyncio.ensure_future(factory())
        return asyncio.shield(self._future)

    def wait(self) -> "asyncio.Future[T]":
        """
        Await work that is already running or done, without starting it.

        Raises:
            RuntimeError: if the cell was never started
        """
        if self._future is None:
            raise RuntimeError("OnceCell was not started")
        return asyncio.shield(self._future)

    def value(self) -> T:
        """
        Completed value. Re-raises the stored error.

        Raises:
            RuntimeError: if the cell has not completed
        """
        if self._future is None or not self._future.done():
            raise RuntimeError(f"OnceCell is {self.state.value}")
        return self._future.result()

    def error(self) -> Optional[BaseException]:
        if self._future is None or not self._future.done() or self._future.cancelled():
            return None
        return self._future.exception()

    def reset(self) -> None:
        """Forget the stored result so the next caller starts again."""
        if self._future is not None and not self._future.done():
            raise RuntimeError("Cannot reset an OnceCell while it is in progress")
        self._future = None

    def __repr__(self) -> str:
        return f"<OnceCell state={self.state.value}>"
