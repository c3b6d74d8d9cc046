"""
Retrying request helper.

Transport failures (timeouts, refused or reset connections), 5xx
responses and 429 rate limits are retried with exponential backoff.
Everything else is returned to the caller as-is.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx


logger = logging.getLogger("zephyr_agent.http")

Sleep = Callable[[float], Awaitable[None]]


def is_retryable_status(status: int) -> bool:
    return status >= 500 or status == 429


async def fetch_with_retries(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    sleep: Sleep = asyncio.sleep,
    **kwargs: Any,
) -> httpx.Response:
    """
    Send a request, retrying up to ``retries`` extra times.

    Delay before attempt ``n`` (0-based retry index) is
    ``min(base_delay * 2 ** n, max_delay)``.

    Returns:
        The last response received (possibly a 5xx after exhausting retries)

    Raises:
        httpx.TransportError: when the final attempt fails at transport level
    """
    attempt = 0
    while True:
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            if attempt >= retries:
                raise
            logger.debug(f"{method} {url} failed ({type(e).__name__}), retrying")
        else:
            if not is_retryable_status(response.status_code) or attempt >= retries:
                return response
            logger.debug(f"{method} {url} returned {response.status_code}, retrying")

        delay = min(base_delay * (2 ** attempt), max_delay)
        attempt += 1
        await sleep(delay)
