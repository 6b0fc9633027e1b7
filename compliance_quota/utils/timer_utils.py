"""Timing helpers for request and worker latency logging."""

import time
from typing import Optional


def elapsed_ms(start_time: float) -> float:
    """
    Milliseconds elapsed since ``start_time``.

    Args:
        start_time: Start time from time.perf_counter()
    """
    return (time.perf_counter() - start_time) * 1000


class Timer:
    """
    Measures one span of work.

    Usage:
        >>> timer = Timer().start()
        >>> report = await worker.generate(...)
        >>> logger.info(f"Generated in {timer.stop():.0f}ms")

    Also works as a context manager.
    """

    def __init__(self):
        self.start_time: Optional[float] = None
        self._stopped_ms: Optional[float] = None

    def start(self) -> "Timer":
        self.start_time = time.perf_counter()
        self._stopped_ms = None
        return self

    def stop(self) -> float:
        """Stop the timer and return elapsed milliseconds."""
        if self.start_time is not None and self._stopped_ms is None:
            self._stopped_ms = elapsed_ms(self.start_time)
        return self.elapsed_ms

    @property
    def elapsed_ms(self) -> float:
        """Final time if stopped, running time otherwise."""
        if self._stopped_ms is not None:
            return self._stopped_ms
        if self.start_time is None:
            return 0.0
        return elapsed_ms(self.start_time)

    def __enter__(self) -> "Timer":
        return self.start()

    def __exit__(self, *args) -> None:
        self.stop()
