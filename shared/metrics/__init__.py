"""Metrics module using Prometheus."""

from .prometheus_metrics import CONTENT_TYPE_LATEST, APIMetrics, get_metrics

__all__ = [
    "APIMetrics",
    "get_metrics",
    "CONTENT_TYPE_LATEST",
]
