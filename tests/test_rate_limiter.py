import asyncio

import pytest

from uilocate.core.rate_limiter import RateLimiter, RequestQueue


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.now += seconds
        await asyncio.sleep(0)


def make_limiter(**kwargs):
    clock = FakeClock()
    params = {"max_concurrent": 2, "requests_per_minute": 5, "min_interval": 0.0, "poll_interval": 0.5}
    params.update(kwargs)
    return RateLimiter(clock=clock, sleep=clock.sleep, **params), clock


def test_rejects_non_positive_budgets():
    with pytest.raises(ValueError):
        RateLimiter(max_concurrent=0)


@pytest.mark.asyncio
async def test_concurrency_limit():
    limiter, _ = make_limiter()
    await limiter.acquire()
    await limiter.acquire()
    assert not limiter.can_proceed()
    limiter.release()
    assert limiter.can_proceed()


@pytest.mark.asyncio
async def test_min_interval_waits_by_polling():
    limiter, clock = make_limiter(min_interval=1.0)
    await limiter.acquire()
    limiter.release()
    await limiter.acquire()
    assert clock.now >= 1.0


@pytest.mark.asyncio
async def test_requests_per_minute_window():
    limiter, clock = make_limiter(max_concurrent=10, requests_per_minute=2)
    for _ in range(2):
        await limiter.run(lambda: asyncio.sleep(0))
    assert not limiter.can_proceed()

    await limiter.acquire()
    assert clock.now >= 60.0
    assert limiter.stats()["requests_in_window"] == 1


@pytest.mark.asyncio
async def test_run_releases_slot_on_error():
    limiter, _ = make_limiter()

    async def boom():
        raise RuntimeError("fail")

    with pytest.raises(RuntimeError):
        await limiter.run(boom)
    assert limiter.active == 0


@pytest.mark.asyncio
async def test_request_queue_keeps_order_and_counts():
    limiter, _ = make_limiter(max_concurrent=1)
    queue = RequestQueue(limiter)

    def job(value):
        async def _run():
            await asyncio.sleep(0)
            return value

        return _run

    results = await queue.submit_all([job(i) for i in range(4)])

    assert results == [0, 1, 2, 3]
    assert queue.completed == 4
    assert queue.failed == 0
