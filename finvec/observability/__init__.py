"""Observability layer - logging and metrics."""

from finvec.observability.logging import setup_logging
from finvec.observability.metrics import MetricsCollector, get_metrics

__all__ = ["setup_logging", "MetricsCollector", "get_metrics"]
