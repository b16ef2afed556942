"""Feedback control from tick timings to load adjustments."""

from dynregion.control.adaptive import AdaptiveControlSystem, ControlOutput

__all__ = ["AdaptiveControlSystem", "ControlOutput"]
