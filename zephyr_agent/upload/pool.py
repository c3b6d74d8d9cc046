"""
Bounded worker pool.

``limit`` workers share one cursor over the input. Each worker claims
the next index, runs the task and stores the result at that index, so
results line up with inputs whatever order tasks finish in.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple, TypeVar


T = TypeVar("T")
R = TypeVar("R")

Settled = Tuple[Optional[BaseException], Optional[R]]


async def settle(aw: Awaitable[R]) -> Settled:
    """
    Await ``aw`` and return ``(error, value)`` instead of raising.

    Cancellation is not captured.
    """
    try:
        return None, await aw
    except Exception as e:
        return e, None


def is_success(result: Settled) -> bool:
    return result[0] is None


async def for_each_limit(
    items: Sequence[T],
    limit: int,
    worker: Callable[[T], Awaitable[R]],
) -> List[R]:
    """
    Run ``worker`` over ``items`` with at most ``limit`` in flight.

    A worker that raises stops the whole run; wrap it with :func:`settle`
    to isolate failures.
    """
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

    results: List[Any] = [None] * len(items)
    cursor = 0

    async def _drain() -> None:
        nonlocal cursor
        while cursor < len(items):
            # claim happens before the first await, so no two workers share an index
            index = cursor
            cursor += 1
            results[index] = await worker(items[index])

    workers = min(limit, len(items))
    await asyncio.gather(*(_drain() for _ in range(workers)))
    return results
