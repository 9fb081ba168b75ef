# ============================================================================
# FILE: tests/unit/test_retry.py
# ============================================================================
"""
Unit tests for backoff and the async retry helper
"""

import asyncio

import pytest

from medical_docintel.core.retry import RetryConfig, backoff_delay, retry_async


class Flaky:
    """Callable failing with `error` for the first `failures` calls."""

    def __init__(self, failures, error=ValueError("boom"), result="ok", delay=0.0):
        self.failures = failures
        self.error = error
        self.result = result
        self.delay = delay
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.calls <= self.failures:
            raise self.error
        return self.result


@pytest.mark.parametrize("attempt,expected", [(0, 2.0), (1, 4.0), (2, 8.0), (5, 30.0)])
def test_backoff_delay(attempt, expected):
    assert backoff_delay(attempt, 2.0, max_delay=30.0) == expected


def test_backoff_delay_uncapped():
    assert backoff_delay(10, 1.0) == 1024.0


@pytest.mark.asyncio
async def test_succeeds_after_failures():
    operation = Flaky(failures=2)

    result = await retry_async(operation, RetryConfig(max_attempts=3, base_delay=0))

    assert result == "ok"
    assert operation.calls == 3


@pytest.mark.asyncio
async def test_reraises_last_error_when_exhausted():
    operation = Flaky(failures=5)

    with pytest.raises(ValueError, match="boom"):
        await retry_async(operation, RetryConfig(max_attempts=2, base_delay=0))

    assert operation.calls == 2


@pytest.mark.asyncio
async def test_give_up_on_stops_immediately():
    operation = Flaky(failures=5, error=KeyError("fatal"))

    with pytest.raises(KeyError):
        await retry_async(operation, RetryConfig(max_attempts=3, base_delay=0, give_up_on=(KeyError,)))

    assert operation.calls == 1


@pytest.mark.asyncio
async def test_only_retry_on_listed_errors():
    operation = Flaky(failures=5, error=TypeError("nope"))

    with pytest.raises(TypeError):
        await retry_async(operation, RetryConfig(max_attempts=3, base_delay=0, retry_on=(ValueError,)))

    assert operation.calls == 1


@pytest.mark.asyncio
async def test_overall_timeout():
    operation = Flaky(failures=0, delay=1.0)

    with pytest.raises(asyncio.TimeoutError):
        await retry_async(operation, RetryConfig(timeout=0.05))


@pytest.mark.asyncio
async def test_backoff_sleep_is_cancellable():
    operation = Flaky(failures=5)
    task = asyncio.create_task(retry_async(operation, RetryConfig(max_attempts=3, base_delay=60)))
    await asyncio.sleep(0.01)

    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert operation.calls == 1
