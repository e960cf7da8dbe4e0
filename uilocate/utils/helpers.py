"""Small shared helpers: async retry, clamping, duration formatting."""

from __future__ import annotations

import asyncio
import random
from typing import Any, Awaitable, Callable, TypeVar

from ..core.logger import log

T = TypeVar("T")


async def retry_with_backoff(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: tuple[type[BaseException], ...] = (Exception,),
    **kwargs: Any,
) -> T:
    """Await ``func(*args, **kwargs)``, retrying listed *exceptions*.

    The wait before retry ``n`` is ``base_delay * exponential_base ** n``
    capped at *max_delay*, plus up to ``base_delay / 2`` of jitter. The last
    failure is re-raised unchanged.
    """
    attempts = max_retries + 1
    attempt = 0
    while True:
        try:
            return await func(*args, **kwargs)
        except exceptions as e:
            attempt += 1
            if attempt >= attempts:
                log.error(f"Giving up after {attempts} attempt(s): {e}")
                raise
            delay = min(base_delay * exponential_base ** (attempt - 1), max_delay)
            delay += random.uniform(0, base_delay / 2)  # noqa: S311
            log.warning(f"Attempt {attempt}/{attempts} failed ({e}); next try in {delay:.2f}s")
            await asyncio.sleep(delay)


def clamp(value: float, low: float, high: float) -> float:
    """Clamp *value* into ``[low, high]``."""
    return max(low, min(high, value))


def format_duration(seconds: float) -> str:
    """``0.25 -> "250ms"``, ``12.3 -> "12.3s"``, ``75 -> "1m 15s"``."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(seconds, 60)
    return f"{int(minutes)}m {secs:.0f}s"
