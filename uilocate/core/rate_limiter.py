"""Async rate limiter and request queue for oracle calls.

The limiter enforces three budgets at once: bounded in-flight requests, a
bounded number of requests per rolling minute, and a minimum interval between
request starts. Waiting is a polling loop that sleeps and re-checks, so no
worker thread is ever blocked.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Any, Awaitable, Callable, TypeVar

from .config import config
from .logger import log

__all__ = ["RateLimiter", "RequestQueue", "get_rate_limiter"]

T = TypeVar("T")

_WINDOW_SECONDS = 60.0


class RateLimiter:
    """Concurrency + requests-per-minute + min-interval gate."""

    def __init__(
        self,
        max_concurrent: int = 3,
        requests_per_minute: int = 20,
        min_interval: float = 1.0,
        poll_interval: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if max_concurrent <= 0 or requests_per_minute <= 0:
            raise ValueError("Rate limiter budgets must be positive")
        self.max_concurrent = max_concurrent
        self.requests_per_minute = requests_per_minute
        self.min_interval = min_interval
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep

        self.active = 0
        self._timestamps: deque[float] = deque()
        self._last_start: float | None = None

    def _prune(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= _WINDOW_SECONDS:
            self._timestamps.popleft()

    def can_proceed(self) -> bool:
        """Return True when a new request may start right now."""
        now = self._clock()
        self._prune(now)
        if self.active >= self.max_concurrent:
            return False
        if len(self._timestamps) >= self.requests_per_minute:
            return False
        if self._last_start is not None and now - self._last_start < self.min_interval:
            return False
        return True

    async def acquire(self) -> None:
        """Wait until all budgets allow a new request, then claim a slot."""
        waited = False
        while not self.can_proceed():
            if not waited:
                log.debug(
                    f"Rate limiter waiting: active={self.active}, "
                    f"window={len(self._timestamps)}/{self.requests_per_minute}"
                )
                waited = True
            await self._sleep(self.poll_interval)

        now = self._clock()
        self.active += 1
        self._timestamps.append(now)
        self._last_start = now

    def release(self) -> None:
        """Free an in-flight slot."""
        if self.active > 0:
            self.active -= 1

    async def run(self, factory: Callable[[], Awaitable[T]]) -> T:
        """Run ``factory()`` inside one limiter slot."""
        await self.acquire()
        try:
            return await factory()
        finally:
            self.release()

    def stats(self) -> dict[str, Any]:
        self._prune(self._clock())
        return {
            "active": self.active,
            "requests_in_window": len(self._timestamps),
            "max_concurrent": self.max_concurrent,
            "requests_per_minute": self.requests_per_minute,
            "min_interval": self.min_interval,
        }


class RequestQueue:
    """Submit coroutine factories to run under a shared :class:`RateLimiter`."""

    def __init__(self, limiter: RateLimiter) -> None:
        self.limiter = limiter
        self.completed = 0
        self.failed = 0

    async def submit(self, factory: Callable[[], Awaitable[T]]) -> T:
        """Run one request through the limiter and return its result."""
        try:
            result = await self.limiter.run(factory)
        except Exception:
            self.failed += 1
            raise
        self.completed += 1
        return result

    async def submit_all(self, factories: list[Callable[[], Awaitable[T]]]) -> list[T]:
        """Run many requests concurrently, limiter permitting; results keep input order."""
        return list(await asyncio.gather(*(self.submit(f) for f in factories)))


_default_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """Return the process-wide limiter configured from settings."""
    global _default_limiter
    if _default_limiter is None:
        _default_limiter = RateLimiter(
            max_concurrent=config.rate_limit_max_concurrent,
            requests_per_minute=config.rate_limit_requests_per_minute,
            min_interval=config.rate_limit_min_interval,
            poll_interval=config.rate_limit_poll_interval,
        )
    return _default_limiter
