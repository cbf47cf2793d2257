"""Fan-out fetch combiner — one concurrent fetch per key, full barrier."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Hashable, Iterable, TypeVar

from ..models import FanOutResult, FetchError

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")


def _describe(error: BaseException, timeout: float | None) -> str:
    if isinstance(error, asyncio.CancelledError):
        return "Cancelled"
    if isinstance(error, asyncio.TimeoutError) and timeout is not None:
        return f"Timed out after {timeout:g}s"
    return str(error) or type(error).__name__


async def fan_out(
    keys: Iterable[K],
    fetch: Callable[[K], Awaitable[T]],
    timeout: float | None = None,
) -> FanOutResult[T]:
    """Fetch every key concurrently and wait for all of them to settle.

    Never raises for a failed fetch: failures, including per-call timeouts and
    cancellations, are returned in ``errors`` and the key is absent from
    ``data``. Duplicate keys are fetched once.
    """
    unique: list[K] = list(dict.fromkeys(keys))

    async def _one(key: K) -> Any:
        if timeout is None:
            return await fetch(key)
        return await asyncio.wait_for(fetch(key), timeout)

    outcomes = await asyncio.gather(
        *(_one(key) for key in unique), return_exceptions=True
    )

    data: dict[K, T] = {}
    errors: list[FetchError] = []
    for key, outcome in zip(unique, outcomes):
        if isinstance(outcome, BaseException):
            reason = _describe(outcome, timeout)
            logger.warning("Fetch for %s failed: %s", key, reason)
            errors.append(FetchError(key=key, reason=reason))
        else:
            data[key] = outcome

    result: FanOutResult[T] = FanOutResult(
        data=data, errors=tuple(errors), total=len(unique)
    )
    logger.info(
        "Fan-out finished: %d/%d loaded (%s)",
        result.loaded, result.total, result.disposition.value,
    )
    return result
