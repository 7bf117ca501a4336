"""Domain layer: snapshot and audit models, exceptions. Pure business logic only."""

from ghaudit.domain.exceptions import (
    DomainError,
    InvalidStateTransitionError,
    ViolationDetectedError,
)
from ghaudit.domain.models import (
    AuditInput,
    AuditRecord,
    AuditResult,
    Branch,
    PolicyViolation,
    Repository,
    RepositoryOwner,
)

__all__ = [
    "AuditInput",
    "AuditRecord",
    "AuditResult",
    "Branch",
    "DomainError",
    "InvalidStateTransitionError",
    "PolicyViolation",
    "Repository",
    "RepositoryOwner",
    "ViolationDetectedError",
]
