"""Observability layer: metrics and failure classification. No external SaaS."""

from ghaudit.observability.failure_classifier import FailureCategory, FailureClassifier
from ghaudit.observability.metrics import MetricsCollector

__all__ = [
    "FailureCategory",
    "FailureClassifier",
    "MetricsCollector",
]
