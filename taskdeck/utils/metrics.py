"""
Metrics collection for recurring task processing.
"""

import time
from typing import Dict, Any, Callable
from collections import defaultdict
from datetime import datetime, timezone
from functools import wraps
import threading


class MetricsCollector:
    """Collects counters and timings for occurrence generation."""

    def __init__(self):
        """Initialize metrics collector."""
        self.metrics = defaultdict(int)
        self.timers = defaultdict(float)
        self.lock = threading.Lock()

        self.metrics["occurrences_generated_total"] = 0
        self.metrics["series_exhausted_total"] = 0
        self.metrics["pattern_updates_total"] = 0
        self.metrics["instances_removed_total"] = 0

    def increment_counter(self, metric_name: str, value: int = 1):
        """Increment a counter metric."""
        with self.lock:
            self.metrics[metric_name] += value

    def record_timer(self, metric_name: str, duration: float):
        """Record a timing metric."""
        with self.lock:
            self.timers[metric_name] += duration

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics values."""
        with self.lock:
            return {
                "counters": dict(self.metrics),
                "timers": dict(self.timers),
                "timestamp": datetime.now(timezone.utc).isoformat()
            }

    def occurrence_generated(self):
        """Record that an occurrence was generated."""
        self.increment_counter("occurrences_generated_total")

    def series_exhausted(self):
        """Record that a series hit its end date."""
        self.increment_counter("series_exhausted_total")

    def pattern_updated(self, removed: int = 0):
        """Record a pattern change and how many instances it discarded."""
        self.increment_counter("pattern_updates_total")
        self.increment_counter("instances_removed_total", removed)

    def time_operation(self, metric_name: str) -> Callable:
        """Decorator accumulating the wall time spent in the wrapped callable."""
        def decorator(func):
            @wraps(func)
            def wrapper(*args, **kwargs):
                start_time = time.perf_counter()
                try:
                    return func(*args, **kwargs)
                finally:
                    self.record_timer(metric_name, time.perf_counter() - start_time)
            return wrapper
        return decorator


# Global metrics instance
metrics_collector = MetricsCollector()
