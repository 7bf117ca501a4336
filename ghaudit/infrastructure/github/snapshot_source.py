"""Offline repository source replaying snapshots persisted by a previous run (--dump, then --load)."""

from typing import Any

from ghaudit.application.exceptions import SnapshotNotFoundError
from ghaudit.domain.models import AuditInput, Branch, Repository
from ghaudit.infrastructure.persistence.snapshot_store import SnapshotStore


class SnapshotDirectorySource:
    """
    RepositorySource served from a snapshot directory, keyed by owner/name.
    The owner argument of list_repositories is ignored: the directory is the listing.
    """

    def __init__(self, snapshots: dict[str, AuditInput]) -> None:
        self._snapshots = dict(snapshots)

    @classmethod
    def from_store(cls, store: SnapshotStore) -> "SnapshotDirectorySource":
        return cls(store.load_all())

    def _get(self, owner: str, repo: str) -> AuditInput:
        key = f"{owner}/{repo}"
        snapshot = self._snapshots.get(key)
        if snapshot is None:
            raise SnapshotNotFoundError("no snapshot for repository", repo=key)
        return snapshot

    async def list_repositories(self, owner: str) -> list[Repository]:
        return [self._snapshots[k].repo for k in sorted(self._snapshots)]

    async def list_branches(self, owner: str, repo: str) -> list[Branch]:
        return list(self._get(owner, repo).branches)

    async def get_branch_protection(self, owner: str, repo: str, branch: str) -> dict[str, Any]:
        for b in self._get(owner, repo).branches:
            if b.name == branch and b.protection is not None:
                return b.protection
        raise SnapshotNotFoundError(
            "no branch protection in snapshot", repo=f"{owner}/{repo}", branch=branch
        )

    async def list_collaborators(self, owner: str, repo: str) -> list[dict[str, Any]]:
        return list(self._get(owner, repo).collaborators)

    async def list_hooks(self, owner: str, repo: str) -> list[dict[str, Any]]:
        return list(self._get(owner, repo).hooks)

    async def list_teams(self, owner: str, repo: str) -> list[dict[str, Any]]:
        return list(self._get(owner, repo).teams)
