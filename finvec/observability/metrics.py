"""
Prometheus metrics for vector storage operations.

Defines and exposes metrics for:
- Insert/search call counts per backend and outcome
- Operation latency
- Stored rows skipped during search (malformed or wrong-length vectors)

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import Counter, Histogram, start_http_server

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


class MetricsCollector:
    """
    Prometheus metrics collector for vector storage backends.

    Usage:
        metrics = get_metrics()
        metrics.record_operation("embedded", "search", "success", 0.004)
    """

    def __init__(self):
        """Initialize Prometheus metrics."""
        self.operations = Counter(
            "finvec_vector_operations_total",
            "Total vector store operations",
            ["backend", "operation", "status"],  # status: success, error
        )

        self.operation_latency = Histogram(
            "finvec_vector_operation_latency_seconds",
            "Time spent in a vector store operation",
            ["backend", "operation"],
            buckets=LATENCY_BUCKETS,
        )

        self.vectors_inserted = Counter(
            "finvec_vectors_inserted_total",
            "Total vectors written to a backend",
            ["backend"],
        )

        self.rows_skipped = Counter(
            "finvec_search_rows_skipped_total",
            "Stored rows skipped during search",
            ["backend"],
        )

    def start_server(self, port: int = 8000) -> None:
        """Start the Prometheus HTTP endpoint."""
        start_http_server(port)
        logger.info(f"Metrics server started on port {port}")

    def record_operation(
        self,
        backend: str,
        operation: str,
        status: str,
        latency: float,
    ) -> None:
        """Record one insert or search call."""
        self.operations.labels(
            backend=backend, operation=operation, status=status
        ).inc()
        self.operation_latency.labels(backend=backend, operation=operation).observe(
            latency
        )

    def record_inserted(self, backend: str, count: int) -> None:
        """Record vectors written by a successful insert."""
        self.vectors_inserted.labels(backend=backend).inc(count)

    def record_skipped(self, backend: str, count: int) -> None:
        """Record rows skipped by a search."""
        if count:
            self.rows_skipped.labels(backend=backend).inc(count)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get the global metrics collector, creating it on first use."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
