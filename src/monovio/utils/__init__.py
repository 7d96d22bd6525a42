"""Shared utilities."""

from .timing import StatsCollector, Timer

__all__ = ["StatsCollector", "Timer"]
