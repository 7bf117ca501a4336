"""Failure categorization for metrics and logs. Maps exceptions to the audit error taxonomy."""

import asyncio
from enum import Enum

from ghaudit.application.exceptions import (
    ConfigurationError,
    EvaluationError,
    NotificationError,
    PersistenceError,
    UpstreamResponseError,
)
from ghaudit.domain.exceptions import ViolationDetectedError


class FailureCategory(str, Enum):
    """Taxonomy for failure classification."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    EVALUATION_ERROR = "EVALUATION_ERROR"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    NOTIFICATION_ERROR = "NOTIFICATION_ERROR"
    VIOLATION_DETECTED = "VIOLATION_DETECTED"
    CANCELLED = "CANCELLED"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


class FailureClassifier:
    """
    Classifies exceptions into FailureCategory. The caller increments metrics
    and chooses the log level.
    """

    @staticmethod
    def classify(exception: BaseException) -> FailureCategory:
        """Map exception to FailureCategory. Unknown -> UNEXPECTED_ERROR."""
        if isinstance(exception, ViolationDetectedError):
            return FailureCategory.VIOLATION_DETECTED
        if isinstance(exception, ConfigurationError):
            return FailureCategory.CONFIGURATION_ERROR
        if isinstance(exception, UpstreamResponseError):
            return FailureCategory.UPSTREAM_ERROR
        if isinstance(exception, EvaluationError):
            return FailureCategory.EVALUATION_ERROR
        if isinstance(exception, PersistenceError):
            return FailureCategory.PERSISTENCE_ERROR
        if isinstance(exception, NotificationError):
            return FailureCategory.NOTIFICATION_ERROR
        if isinstance(exception, asyncio.CancelledError):
            return FailureCategory.CANCELLED
        return FailureCategory.UNEXPECTED_ERROR
