"""Application-layer exceptions. Do not reuse domain exceptions."""

from typing import Any


class ApplicationError(Exception):
    """Base for all application-layer errors."""

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context: dict[str, Any] = dict(context)
        super().__init__(message)

    def with_context(self, **context: Any) -> "ApplicationError":
        """Attach key/value context (owner, repo, ...) without replacing existing keys."""
        for key, value in context.items():
            self.context.setdefault(key, value)
        return self


class ConfigurationError(ApplicationError):
    """Raised when settings are missing or invalid. Detected before any audit starts."""


class UpstreamResponseError(ApplicationError):
    """Raised when the repository source fails or answers with an unexpected status."""

    def __init__(
        self,
        message: str = "unexpected upstream response",
        *,
        status_code: int | None = None,
        body: str = "",
        **context: Any,
    ) -> None:
        super().__init__(message, status_code=status_code, body=body, **context)
        self.status_code = status_code
        self.body = body


class SnapshotNotFoundError(UpstreamResponseError):
    """Raised by the offline source when no persisted snapshot exists for a repository."""


class EvaluationError(ApplicationError):
    """Raised when the policy evaluator fails for a snapshot."""


class PersistenceError(ApplicationError):
    """Raised when a snapshot cannot be written to or read from the dump directory."""


class NotificationError(ApplicationError):
    """Raised when posting the report notification fails. The audit result stays valid."""
