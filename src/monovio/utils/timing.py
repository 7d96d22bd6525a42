"""Wall-clock timing helpers for the front end."""

from __future__ import annotations

import time
from dataclasses import dataclass


class Timer:
    """Millisecond stopwatch built on ``time.perf_counter``."""

    @staticmethod
    def tic() -> float:
        """Return a start mark."""
        return time.perf_counter()

    @staticmethod
    def toc(start: float) -> float:
        """Return milliseconds elapsed since ``start``."""
        return (time.perf_counter() - start) * 1000


@dataclass
class StatsCollector:
    """Running summary of timing samples for one named quantity.

    Only aggregates are kept, so memory stays constant over an unbounded
    stream. Instances are owned by the component that records into them,
    so two front ends running side by side keep separate statistics.
    """

    name: str
    count: int = 0
    total: float = 0.0
    max: float = 0.0
    last: float | None = None

    def add_sample(self, value_ms: float) -> None:
        """Record one sample in milliseconds."""
        value_ms = float(value_ms)
        self.count += 1
        self.total += value_ms
        self.max = value_ms if self.count == 1 else max(self.max, value_ms)
        self.last = value_ms

    @property
    def mean(self) -> float:
        return self.total / self.count if self.count else 0.0

    def reset(self) -> None:
        self.count = 0
        self.total = 0.0
        self.max = 0.0
        self.last = None

    def __str__(self) -> str:
        return f"{self.name}: n={self.count} mean={self.mean:.3f} max={self.max:.3f}"
