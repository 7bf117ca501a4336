"""Snapshot builder: assembles one repository's AuditInput from the repository source."""

import asyncio
import logging
import time
from typing import Any, Awaitable, Optional

from ghaudit.application.interfaces import RepositorySource
from ghaudit.domain.models import AuditInput, Branch, Repository
from ghaudit.infrastructure.persistence.snapshot_store import SnapshotStore


async def _gather_or_cancel(*aws: Awaitable[Any]) -> list[Any]:
    """
    Run awaitables concurrently. On the first failure cancel the rest and raise it,
    so a snapshot is either complete or not produced at all.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
    for task in tasks:
        if task in done and not task.cancelled() and task.exception() is not None:
            raise task.exception()
    return [task.result() for task in tasks]


class SnapshotBuilder:
    """
    Builds AuditInput atomically: branches (with protection for protected branches only),
    collaborators, hooks and teams. Persists the snapshot when a store is configured.
    """

    def __init__(
        self,
        source: RepositorySource,
        store: Optional[SnapshotStore] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._source = source
        self._store = store
        self._logger = logger or logging.getLogger(__name__)

    async def _branches(self, owner: str, name: str) -> list[Branch]:
        branches: list[Branch] = []
        for branch in await self._source.list_branches(owner, name):
            protection = None
            if branch.protected:
                protection = await self._source.get_branch_protection(owner, name, branch.name)
            branches.append(branch.model_copy(update={"protection": protection}))
        return branches

    async def build(self, repo: Repository) -> AuditInput:
        owner, name = repo.owner_login, repo.name
        captured_at = int(time.time())
        self._logger.debug("retrieving_repository_data", extra={"repo": repo.full_name})

        branches, collaborators, hooks, teams = await _gather_or_cancel(
            self._branches(owner, name),
            self._source.list_collaborators(owner, name),
            self._source.list_hooks(owner, name),
            self._source.list_teams(owner, name),
        )
        snapshot = AuditInput(
            repo=repo,
            branches=branches,
            collaborators=collaborators,
            hooks=hooks,
            teams=teams,
            timestamp=captured_at,
        )

        if self._store is not None:
            await asyncio.to_thread(self._store.save, snapshot)

        self._logger.debug(
            "snapshot_built",
            extra={"repo": repo.full_name, "branches": len(branches)},
        )
        return snapshot
