"""Per-run analysis budget shared by the refinement and correction loops."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Callable


@dataclass
class AnalysisBudget:
    """Explicit, mutable call/depth budget for one analysis run.

    The counter is passed through every loop that talks to the oracle instead
    of living on a shared instance, so a run's budget is visible at each call
    site and trivially reset between runs.
    """

    max_api_calls: int = 10
    max_depth: int = 2
    api_call_count: int = 0
    clock: Callable[[], float] = time.monotonic
    started_at: float = field(default=0.0)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.started_at:
            self.started_at = self.clock()

    @property
    def exhausted(self) -> bool:
        """True once the call counter has reached the cap."""
        return self.api_call_count >= self.max_api_calls

    @property
    def remaining(self) -> int:
        return max(0, self.max_api_calls - self.api_call_count)

    def depth_exhausted(self, depth: int) -> bool:
        """True when *depth* is at or beyond the hard depth cap."""
        return depth >= self.max_depth

    def record_call(self) -> int:
        """Count one oracle call and return the new total."""
        self.api_call_count += 1
        return self.api_call_count

    async def record_call_async(self) -> int:
        """Lock-guarded :meth:`record_call` for callers running concurrently."""
        async with self._lock:
            return self.record_call()

    def elapsed(self) -> float:
        """Seconds since the run started."""
        return self.clock() - self.started_at

    def reset(self) -> None:
        """Zero the counter and restart the clock."""
        self.api_call_count = 0
        self.started_at = self.clock()

    def as_dict(self) -> dict[str, float | int]:
        return {
            "api_call_count": self.api_call_count,
            "max_api_calls": self.max_api_calls,
            "max_depth": self.max_depth,
            "elapsed_seconds": round(self.elapsed(), 3),
        }
