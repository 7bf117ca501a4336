"""Domain-specific exceptions. Pure domain layer, no infrastructure."""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ghaudit.domain.models import AuditResult


class DomainError(Exception):
    """Base for all domain-layer errors."""

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context: dict[str, Any] = dict(context)
        super().__init__(message)

    def with_context(self, **context: Any) -> "DomainError":
        """Attach key/value context (owner, repo, ...) without replacing existing keys."""
        for key, value in context.items():
            self.context.setdefault(key, value)
        return self


class InvalidStateTransitionError(DomainError):
    """Raised when an audit run state transition is not allowed."""


class ViolationDetectedError(DomainError):
    """
    Raised when a completed audit found at least one policy violation.
    Not a pipeline failure: the caller decides whether it affects the exit code.
    """

    def __init__(self, result: "AuditResult") -> None:
        super().__init__(
            f"{result.violation_count} violation(s) detected",
            categories=sorted(result.records),
        )
        self.result = result
