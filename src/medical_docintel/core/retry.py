# ============================================================================
# src/medical_docintel/core/retry.py
# ============================================================================
"""
Cancellable retry with exponential backoff.

Attempt n (0-based) that fails waits base_delay * 2^n before attempt n+1.
Sleeps are asyncio sleeps, so cancelling the caller (shutdown, job timeout)
stops the retry loop immediately. An optional overall timeout bounds the
whole operation including backoff.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry with exponential backoff."""
    max_attempts: int = 3
    base_delay: float = 1.0            # seconds
    max_delay: float = 60.0            # seconds
    timeout: Optional[float] = None    # seconds, whole operation
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)
    give_up_on: Tuple[Type[BaseException], ...] = ()


def backoff_delay(attempt: int, base_delay: float, max_delay: Optional[float] = None) -> float:
    """
    Delay after the given 0-based failed attempt.

    >>> backoff_delay(0, 1.0), backoff_delay(1, 1.0), backoff_delay(2, 1.0)
    (1.0, 2.0, 4.0)
    """
    delay = base_delay * (2 ** attempt)
    if max_delay is not None:
        delay = min(delay, max_delay)
    return delay


def _log_before_sleep(operation_name: str):
    def _before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        sleep_for = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"{operation_name} attempt {retry_state.attempt_number} failed: {exc}. "
            f"Retrying in {sleep_for:.1f}s"
        )
    return _before_sleep


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    operation_name: str = "operation",
) -> T:
    """
    Run an async operation with retries.

    Example:
        data = await retry_async(
            lambda: client.complete(messages),
            RetryConfig(max_attempts=2, base_delay=1.0),
            operation_name="extraction LLM call",
        )

    Raises the last exception once attempts are exhausted, the first
    exception matching give_up_on, or asyncio.TimeoutError when the overall
    timeout elapses.
    """
    config = config or RetryConfig()

    retry_condition = retry_if_exception_type(config.retry_on)
    if config.give_up_on:
        retry_condition = retry_condition & retry_if_not_exception_type(config.give_up_on)

    async def _run() -> Any:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(config.max_attempts),
            wait=wait_exponential(multiplier=config.base_delay, min=0, max=config.max_delay),
            retry=retry_condition,
            before_sleep=_log_before_sleep(operation_name),
            sleep=asyncio.sleep,
            reraise=True,
        ):
            with attempt:
                return await operation()

    if config.timeout is not None:
        return await asyncio.wait_for(_run(), timeout=config.timeout)
    return await _run()
