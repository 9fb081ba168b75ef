# ============================================================================
# src/medical_docintel/pipeline/rate_limiter.py
# ============================================================================
"""
Sliding-window rate limiter for job starts.

At most max_events acquisitions in any period-second window. acquire()
waits (cancellably) until a slot frees up instead of rejecting.
"""

import asyncio
import time
from collections import deque
from typing import Callable, Deque


class SlidingWindowRateLimiter:
    def __init__(
        self,
        max_events: int,
        period: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_events < 1:
            raise ValueError("max_events must be >= 1")
        if period <= 0:
            raise ValueError("period must be > 0")
        self.max_events = max_events
        self.period = period
        self._clock = clock
        self._events: Deque[float] = deque()
        self._lock = asyncio.Lock()

    def _prune(self, now: float) -> None:
        while self._events and now - self._events[0] >= self.period:
            self._events.popleft()

    def try_acquire(self) -> bool:
        """Take a slot if one is free right now."""
        now = self._clock()
        self._prune(now)
        if len(self._events) < self.max_events:
            self._events.append(now)
            return True
        return False

    def time_until_available(self) -> float:
        now = self._clock()
        self._prune(now)
        if len(self._events) < self.max_events:
            return 0.0
        return max(self._events[0] + self.period - now, 0.0)

    async def acquire(self) -> None:
        async with self._lock:
            while not self.try_acquire():
                await asyncio.sleep(self.time_until_available())

    @property
    def in_window(self) -> int:
        self._prune(self._clock())
        return len(self._events)
