"""Prometheus metrics definitions and helpers.

Provides the metric families shared by the API process: inbound HTTP
traffic, calls to upstream IPTV providers and outgoing email.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class APIMetrics:
    """API process metrics."""

    def __init__(self, registry: CollectorRegistry = REGISTRY) -> None:
        """Initialize API metrics.

        Args:
            registry: Prometheus registry to use
        """
        self.registry = registry

        # Inbound HTTP
        self.http_requests = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status"],
            registry=registry,
        )

        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=registry,
        )

        self.http_requests_in_progress = Gauge(
            "http_requests_in_progress",
            "HTTP requests currently in progress",
            ["method"],
            registry=registry,
        )

        # Upstream player API
        self.upstream_requests = Counter(
            "upstream_requests_total",
            "Total requests sent to upstream IPTV providers",
            ["action", "outcome"],
            registry=registry,
        )

        self.upstream_request_duration = Histogram(
            "upstream_request_duration_seconds",
            "Upstream IPTV provider response time",
            ["action"],
            buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
            registry=registry,
        )

        # Outgoing email
        self.emails_sent = Counter(
            "emails_sent_total",
            "Transactional emails by message type and outcome",
            ["message_type", "outcome"],
            registry=registry,
        )

    def render(self) -> bytes:
        """Render the registry in Prometheus exposition format."""
        return generate_latest(self.registry)


_metrics: APIMetrics | None = None


def get_metrics() -> APIMetrics:
    """Return the process-wide metrics instance, creating it on first use.

    Returns:
        Shared APIMetrics bound to the default registry
    """
    global _metrics
    if _metrics is None:
        _metrics = APIMetrics()
    return _metrics


__all__ = ["APIMetrics", "get_metrics", "CONTENT_TYPE_LATEST"]
