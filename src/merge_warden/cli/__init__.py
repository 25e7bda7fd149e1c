"""CLI helpers exposed for other modules."""

from .ui import StepTracker, publish_tracker

__all__ = ["StepTracker", "publish_tracker"]
