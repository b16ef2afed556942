"""Rolling performance metrics."""

from dynregion.metrics.collector import MetricsCollector

__all__ = ["MetricsCollector"]
