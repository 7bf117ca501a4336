"""Audit domain models. Snapshots are immutable and fully serializable for offline replay."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RepositoryOwner(BaseModel):
    """Owner account of a repository. Extra upstream fields are preserved."""

    model_config = ConfigDict(extra="allow", frozen=True)

    login: str


class Repository(BaseModel):
    """
    Repository descriptor as listed by the source. Identity is full_name (owner/name).
    Fields the policy may need are typed; every other upstream field is kept verbatim.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    name: str
    full_name: str
    owner: RepositoryOwner
    html_url: str = ""
    private: bool = False
    archived: bool = False
    visibility: str | None = None

    @property
    def owner_login(self) -> str:
        return self.owner.login


class Branch(BaseModel):
    """Branch with head reference. protection is set only for protected branches."""

    model_config = ConfigDict(extra="allow", frozen=True)

    name: str
    commit: dict[str, Any] = Field(default_factory=dict)
    protected: bool = False
    protection: dict[str, Any] | None = None


class AuditInput(BaseModel):
    """
    One repository's point-in-time snapshot, the input document of the policy.
    Built once per repository per run; timestamp is seconds since epoch (UTC).
    """

    model_config = ConfigDict(frozen=True)

    repo: Repository
    branches: list[Branch] = Field(default_factory=list)
    collaborators: list[dict[str, Any]] = Field(default_factory=list)
    hooks: list[dict[str, Any]] = Field(default_factory=list)
    teams: list[dict[str, Any]] = Field(default_factory=list)
    timestamp: int

    @property
    def captured_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, timezone.utc)


class PolicyViolation(BaseModel):
    """Named policy failure emitted by the evaluator (one entry of the Rego `fail` set)."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    category: str
    message: str = ""


@dataclass(frozen=True)
class AuditRecord:
    """Immutable record: which violation, in which repository, detected when (UTC)."""

    violation: PolicyViolation
    repository: Repository
    detected_at: datetime

    @property
    def category(self) -> str:
        return self.violation.category

    @property
    def message(self) -> str:
        return self.violation.message

    def to_dict(self) -> dict[str, Any]:
        """Structured representation for JSON logging."""
        return {
            "category": self.category,
            "message": self.message,
            "repo": self.repository.full_name,
            "detected_at": self.detected_at.isoformat(),
        }


@dataclass
class AuditResult:
    """
    Run-level aggregate. records maps category -> records in completion order.
    Mutated only through add(), which the orchestrator serializes.
    """

    repos: list[Repository]
    started_at: datetime
    records: dict[str, list[AuditRecord]] = field(default_factory=dict)
    completed_at: datetime | None = None

    def add(self, *records: AuditRecord) -> None:
        for record in records:
            self.records.setdefault(record.category, []).append(record)

    @property
    def violation_count(self) -> int:
        return sum(len(v) for v in self.records.values())

    @property
    def has_violations(self) -> bool:
        return self.violation_count > 0

    @property
    def elapsed_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    def all_records(self) -> list[AuditRecord]:
        return [r for records in self.records.values() for r in records]
