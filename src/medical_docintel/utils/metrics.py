# ============================================================================
# src/medical_docintel/utils/metrics.py
# ============================================================================
"""
In-process metrics for the document pipeline.

Counters (jobs completed/failed/retried, OCR fallbacks), gauges (in-flight
jobs) and timers (per-stage durations). Exposed on /api/metrics.
"""

import time
from typing import Dict, List, Optional, Any
from collections import defaultdict
import statistics


class MetricsCollector:
    """Collect and aggregate metrics."""

    def __init__(self):
        self._counters: Dict[str, int] = defaultdict(int)
        self._gauges: Dict[str, float] = {}
        self._timers: Dict[str, List[float]] = defaultdict(list)

    def increment(self, name: str, value: int = 1) -> None:
        self._counters[name] += value

    def set_gauge(self, name: str, value: float) -> None:
        self._gauges[name] = value

    def record_time(self, name: str, duration: float) -> None:
        """
        Record operation duration.

        Args:
            name: Operation name
            duration: Duration in seconds
        """
        self._timers[name].append(duration)

    def get_counter(self, name: str) -> int:
        return self._counters.get(name, 0)

    def get_gauge(self, name: str) -> Optional[float]:
        return self._gauges.get(name)

    def get_timer_stats(self, name: str) -> Optional[Dict[str, float]]:
        """
        Get timer statistics.

        Returns:
            Dict with count, min, max, mean, median, p95
        """
        values = self._timers.get(name, [])
        if not values:
            return None

        sorted_values = sorted(values)
        count = len(values)

        return {
            'count': count,
            'min': sorted_values[0],
            'max': sorted_values[-1],
            'mean': statistics.mean(values),
            'median': statistics.median(values),
            'p95': sorted_values[min(int(count * 0.95), count - 1)],
        }

    def get_all_metrics(self) -> Dict[str, Any]:
        return {
            'counters': dict(self._counters),
            'gauges': dict(self._gauges),
            'timers': {
                name: self.get_timer_stats(name)
                for name in self._timers.keys()
            }
        }

    def reset(self) -> None:
        self._counters.clear()
        self._gauges.clear()
        self._timers.clear()


class Timer:
    """Context manager for timing operations."""

    def __init__(self, collector: MetricsCollector, operation: str):
        self.collector = collector
        self.operation = operation
        self.start_time: Optional[float] = None
        self.duration: Optional[float] = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.perf_counter() - self.start_time
        self.collector.record_time(self.operation, self.duration)

    @property
    def elapsed_ms(self) -> int:
        if self.start_time is None:
            return 0
        end = self.start_time + self.duration if self.duration is not None else time.perf_counter()
        return int((end - self.start_time) * 1000)
