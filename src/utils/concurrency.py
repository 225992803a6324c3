"""Shared concurrency primitives for the ingestion pipeline.

Two helpers are exposed:

1. **throttled_gather** -- ``asyncio.gather`` with each awaitable wrapped in
   a semaphore acquire/release.  The upsert batcher uses it to send
   batches to the vector store with a bounded number in flight.

2. **with_timeout** -- ``asyncio.wait_for`` that converts a timeout into
   the caller's domain error, so collaborator calls that hang are treated
   like any other failed call by the retry policies.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from src.utils.errors import NexaIngestError

_T = TypeVar("_T")


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore | None = None,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently with optional semaphore throttling.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Optional semaphore for concurrency control.  When ``None`` every
        awaitable runs unthrottled.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input coroutines.
    """
    if semaphore is None:
        return await asyncio.gather(*coros, return_exceptions=return_exceptions)

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


async def with_timeout(
    awaitable: Awaitable[_T],
    timeout: float | None,
    error_cls: type[NexaIngestError],
    provider_name: str | None = None,
) -> _T:
    """Await *awaitable*, raising *error_cls* if it exceeds *timeout* seconds.

    A ``timeout`` of ``None`` or ``<= 0`` disables the limit.
    """
    if timeout is None or timeout <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise error_cls(
            message=f"Call timed out after {timeout:g}s",
            provider_name=provider_name,
        ) from exc
