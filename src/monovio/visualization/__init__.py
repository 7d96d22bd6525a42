"""Visualization of front-end output."""

from .rerun_visualizer import RerunVisualizer

__all__ = ["RerunVisualizer"]
