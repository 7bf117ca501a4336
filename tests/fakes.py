"""In-memory collaborators shared by unit tests: repository source and policy evaluator."""

import asyncio
from typing import Any

from ghaudit.domain.models import AuditInput, Branch, PolicyViolation, Repository


def make_repo(name: str, owner: str = "acme", **extra: Any) -> Repository:
    return Repository(
        name=name,
        full_name=f"{owner}/{name}",
        owner={"login": owner},
        html_url=f"https://github.com/{owner}/{name}",
        **extra,
    )


def make_branch(name: str = "main", protected: bool = False, **extra: Any) -> Branch:
    return Branch(name=name, commit={"sha": f"sha-{name}"}, protected=protected, **extra)


class FakeSource:
    """
    RepositorySource over fixed data. Records every call as (kind, owner/name); can fail
    or delay per repository and tracks the peak number of concurrent snapshot fetches.
    """

    def __init__(
        self,
        repos: list[Repository],
        *,
        branches: dict[str, list[Branch]] | None = None,
        protections: dict[tuple[str, str], dict[str, Any]] | None = None,
        fail_on: dict[str, Exception] | None = None,
        delays: dict[str, float] | None = None,
        list_error: Exception | None = None,
    ) -> None:
        self.repos = repos
        self.branches = branches or {}
        self.protections = protections or {}
        self.fail_on = fail_on or {}
        self.delays = delays or {}
        self.list_error = list_error
        self.calls: list[tuple[str, str]] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    def calls_for(self, full_name: str) -> list[str]:
        return [kind for kind, key in self.calls if key == full_name]

    def fetched_repos(self) -> set[str]:
        return {key for kind, key in self.calls if kind != "list_repositories"}

    async def _fetch(self, kind: str, owner: str, repo: str) -> str:
        key = f"{owner}/{repo}"
        self.calls.append((kind, key))
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(key, 0))
        finally:
            self.in_flight -= 1
        if key in self.fail_on:
            raise self.fail_on[key]
        return key

    async def list_repositories(self, owner: str) -> list[Repository]:
        self.calls.append(("list_repositories", owner))
        if self.list_error is not None:
            raise self.list_error
        return list(self.repos)

    async def list_branches(self, owner: str, repo: str) -> list[Branch]:
        key = await self._fetch("branches", owner, repo)
        return list(self.branches.get(key, [make_branch()]))

    async def get_branch_protection(self, owner: str, repo: str, branch: str) -> dict[str, Any]:
        key = f"{owner}/{repo}"
        self.calls.append(("protection", key))
        return self.protections.get((key, branch), {"required_signatures": {"enabled": True}})

    async def list_collaborators(self, owner: str, repo: str) -> list[dict[str, Any]]:
        await self._fetch("collaborators", owner, repo)
        return [{"login": "octocat", "permissions": {"admin": True}}]

    async def list_hooks(self, owner: str, repo: str) -> list[dict[str, Any]]:
        await self._fetch("hooks", owner, repo)
        return [{"id": 1, "config": {"url": "https://hooks.example.com"}}]

    async def list_teams(self, owner: str, repo: str) -> list[dict[str, Any]]:
        await self._fetch("teams", owner, repo)
        return [{"slug": "core", "permission": "push"}]


class FakeEvaluator:
    """PolicyEvaluator returning preset violations per repository full name."""

    def __init__(
        self,
        violations: dict[str, list[PolicyViolation]] | None = None,
        *,
        fail_on: dict[str, Exception] | None = None,
    ) -> None:
        self.violations = violations or {}
        self.fail_on = fail_on or {}
        self.evaluated: list[str] = []

    async def evaluate(self, snapshot: AuditInput) -> list[PolicyViolation]:
        key = snapshot.repo.full_name
        self.evaluated.append(key)
        await asyncio.sleep(0)
        if key in self.fail_on:
            raise self.fail_on[key]
        return list(self.violations.get(key, []))
