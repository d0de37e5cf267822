"""
Deadline helpers for remote calls.

``asyncio.wait_for`` cancels the losing operation, so a request that
outlives its deadline can no longer land a late result.  The timeout is
surfaced as :class:`~lingua.errors.RemoteTimeoutError` so callers
handle it on the same path as any other network failure.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from lingua.errors import RemoteTimeoutError

T = TypeVar("T")


async def run_with_timeout(awaitable: Awaitable[T], timeout_s: float, operation: str) -> T:
    """Await *awaitable* for at most *timeout_s* seconds.

    Raises
    ------
    RemoteTimeoutError
        When the deadline passes.  The underlying task is cancelled.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_s)
    except asyncio.TimeoutError as exc:
        raise RemoteTimeoutError(
            f"{operation} timed out after {timeout_s:g}s",
            code="timeout",
        ) from exc
