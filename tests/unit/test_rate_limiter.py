# ============================================================================
# FILE: tests/unit/test_rate_limiter.py
# ============================================================================
"""
Unit tests for the sliding-window job rate limiter
"""

import asyncio

import pytest

from medical_docintel.pipeline.rate_limiter import SlidingWindowRateLimiter


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def test_limit_within_window():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(3, 1.0, clock=clock)

    assert [limiter.try_acquire() for _ in range(4)] == [True, True, True, False]
    assert limiter.in_window == 3


def test_window_slides():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(2, 1.0, clock=clock)

    limiter.try_acquire()
    clock.now = 0.5
    limiter.try_acquire()

    clock.now = 0.9
    assert limiter.try_acquire() is False
    assert limiter.time_until_available() == pytest.approx(0.1)

    clock.now = 1.0
    assert limiter.try_acquire() is True
    assert limiter.in_window == 2


def test_time_until_available_when_free():
    limiter = SlidingWindowRateLimiter(1, 5.0, clock=FakeClock())
    assert limiter.time_until_available() == 0.0


@pytest.mark.parametrize("max_events,period", [(0, 1.0), (1, 0.0)])
def test_invalid_arguments(max_events, period):
    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(max_events, period)


@pytest.mark.asyncio
async def test_acquire_waits_for_slot():
    """Second acquire blocks until the first event leaves the window"""
    limiter = SlidingWindowRateLimiter(1, 0.05)
    loop = asyncio.get_running_loop()

    start = loop.time()
    await limiter.acquire()
    await limiter.acquire()

    assert loop.time() - start >= 0.04


@pytest.mark.asyncio
async def test_acquire_is_cancellable():
    limiter = SlidingWindowRateLimiter(1, 60.0)
    await limiter.acquire()

    task = asyncio.create_task(limiter.acquire())
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
