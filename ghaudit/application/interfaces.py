"""Collaborator interfaces. The orchestrator depends only on these protocols."""

from typing import Any, Protocol

from ghaudit.domain.models import AuditInput, Branch, PolicyViolation, Repository


class RepositorySource(Protocol):
    """
    Repository data for one owner. Every list call returns the complete
    (internally paginated) sequence or raises UpstreamResponseError.
    """

    async def list_repositories(self, owner: str) -> list[Repository]:
        ...

    async def list_branches(self, owner: str, repo: str) -> list[Branch]:
        ...

    async def get_branch_protection(self, owner: str, repo: str, branch: str) -> dict[str, Any]:
        """Protection ruleset of a protected branch. Fails for unprotected branches."""
        ...

    async def list_collaborators(self, owner: str, repo: str) -> list[dict[str, Any]]:
        ...

    async def list_hooks(self, owner: str, repo: str) -> list[dict[str, Any]]:
        ...

    async def list_teams(self, owner: str, repo: str) -> list[dict[str, Any]]:
        ...


class PolicyEvaluator(Protocol):
    """Opaque scoring function. Any non-error return is authoritative."""

    async def evaluate(self, snapshot: AuditInput) -> list[PolicyViolation]:
        ...


class NotificationSink(Protocol):
    """Posts one rendered report message (e.g. a Slack webhook payload)."""

    async def post(self, message: dict[str, Any]) -> None:
        ...
