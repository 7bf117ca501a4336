"""Audit orchestrator: list → dispatch to a bounded worker pool → build, evaluate, merge → report."""

import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, Optional

from ghaudit.application.exceptions import ApplicationError
from ghaudit.application.interfaces import PolicyEvaluator, RepositorySource
from ghaudit.application.report import ReportSink
from ghaudit.application.snapshot_builder import SnapshotBuilder
from ghaudit.core.context import owner_ctx, run_id_ctx
from ghaudit.domain.exceptions import DomainError, InvalidStateTransitionError
from ghaudit.domain.models import AuditRecord, AuditResult, Repository
from ghaudit.observability.failure_classifier import FailureClassifier
from ghaudit.observability.metrics import MetricsCollector

DEFAULT_THREAD = 4


class AuditState(str, Enum):
    """Lifecycle of one audit run."""

    IDLE = "idle"
    LISTING = "listing"
    DISPATCHING = "dispatching"
    DRAINING = "draining"
    FINALIZED = "finalized"
    ABORTED = "aborted"


_STATE_TRANSITIONS: Dict[AuditState, FrozenSet[AuditState]] = {
    AuditState.IDLE: frozenset({AuditState.LISTING}),
    AuditState.LISTING: frozenset({AuditState.DISPATCHING, AuditState.ABORTED}),
    AuditState.DISPATCHING: frozenset({AuditState.DRAINING, AuditState.ABORTED}),
    AuditState.DRAINING: frozenset({AuditState.FINALIZED, AuditState.ABORTED}),
    AuditState.FINALIZED: frozenset(),
    AuditState.ABORTED: frozenset(),
}


def select_repositories(
    repos: list[Repository], limit: int, *, skip_archived: bool = False
) -> list[Repository]:
    """First `limit` repositories in listing order (all when limit is 0)."""
    if skip_archived:
        repos = [r for r in repos if not r.archived]
    if limit > 0:
        return repos[:limit]
    return list(repos)


class AuditOrchestrator:
    """
    Runs one audit. Workers pull repositories from a shared FIFO queue until it is empty
    or the run is aborted; results are merged under a lock. First error wins: it stops
    further pulls, cancels in-flight siblings and is raised from audit() unchanged.
    An instance serves a single run.
    """

    def __init__(
        self,
        source: RepositorySource,
        evaluator: PolicyEvaluator,
        builder: Optional[SnapshotBuilder] = None,
        reporter: Optional[ReportSink] = None,
        *,
        thread: int = DEFAULT_THREAD,
        limit: int = 0,
        skip_archived: bool = False,
        logger: Optional[logging.Logger] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        if thread < 1:
            raise ValueError("thread must be >= 1")
        if limit < 0:
            raise ValueError("limit must be >= 0")
        self._source = source
        self._evaluator = evaluator
        self._logger = logger or logging.getLogger(__name__)
        self._builder = builder or SnapshotBuilder(source, logger=self._logger)
        self._reporter = reporter or ReportSink()
        self._thread = thread
        self._limit = limit
        self._skip_archived = skip_archived
        self._metrics = metrics

        self._state = AuditState.IDLE
        self._queue: asyncio.Queue[Repository] = asyncio.Queue()
        self._merge_lock = asyncio.Lock()
        self._abort = asyncio.Event()
        self._first_error: BaseException | None = None
        self._workers: list[asyncio.Task[None]] = []
        self._result: AuditResult | None = None

    @property
    def state(self) -> AuditState:
        return self._state

    @property
    def result(self) -> AuditResult | None:
        """The aggregate; only final once state is FINALIZED."""
        return self._result

    def _transition(self, new_state: AuditState) -> None:
        allowed = _STATE_TRANSITIONS.get(self._state, frozenset())
        if new_state not in allowed:
            raise InvalidStateTransitionError(
                f"Invalid audit state transition from {self._state.value} to {new_state.value}"
            )
        self._logger.debug(
            "audit_state_changed",
            extra={"from_state": self._state.value, "to_state": new_state.value},
        )
        self._state = new_state

    def _record_failure(self, error: BaseException) -> None:
        """Keep the first error only; signal every worker to stop pulling."""
        if self._first_error is None:
            self._first_error = error
            current = asyncio.current_task()
            for worker in self._workers:
                if worker is not current:
                    worker.cancel()
        self._abort.set()

    async def _process(self, repo: Repository) -> list[AuditRecord]:
        start = time.perf_counter()
        snapshot = await self._builder.build(repo)
        built = time.perf_counter()
        violations = await self._evaluator.evaluate(snapshot)
        if self._metrics:
            self._metrics.observe_latency(
                "audit_stage_latency", (built - start) * 1000, stage="build"
            )
            self._metrics.observe_latency(
                "audit_stage_latency", (time.perf_counter() - built) * 1000, stage="evaluate"
            )
        self._logger.info(
            "repository_evaluated",
            extra={"repo": repo.full_name, "violations": len(violations)},
        )
        return [
            AuditRecord(violation=v, repository=repo, detected_at=snapshot.captured_at)
            for v in violations
        ]

    async def _merge(self, records: list[AuditRecord]) -> None:
        async with self._merge_lock:
            if self._abort.is_set() or self._result is None:
                return
            self._result.add(*records)
        if self._metrics:
            self._metrics.increment("repositories_processed")
            for record in records:
                self._metrics.increment("violations_detected", category=record.category)

    async def _worker(self, worker_id: int) -> None:
        while not self._abort.is_set():
            try:
                repo = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                if self._state == AuditState.DISPATCHING:
                    self._transition(AuditState.DRAINING)
                return
            try:
                records = await self._process(repo)
            except Exception as e:
                self._logger.error(
                    "repository_audit_failed",
                    extra={"repo": repo.full_name, "worker": worker_id, "error": str(e)},
                )
                if isinstance(e, (ApplicationError, DomainError)):
                    e.with_context(owner=repo.owner_login, repo=repo.full_name)
                self._record_failure(e)
                return
            await self._merge(records)

    def _abort_run(self, error: BaseException) -> None:
        if self._state not in (AuditState.ABORTED, AuditState.FINALIZED):
            self._transition(AuditState.ABORTED)
        if self._metrics:
            self._metrics.increment(
                "audit_failures", category=FailureClassifier.classify(error).value
            )

    async def _run_workers(self) -> None:
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"audit-worker-{i}")
            for i in range(self._thread)
        ]
        try:
            await asyncio.gather(*self._workers, return_exceptions=True)
        except asyncio.CancelledError:
            for worker in self._workers:
                worker.cancel()
            await asyncio.gather(*self._workers, return_exceptions=True)
            raise

    async def audit(self, owner: str) -> AuditResult:
        """
        Audit every repository of owner. Returns the finalized result when no violation
        was found; raises ViolationDetectedError (from the report sink) when at least one
        was; raises the first fatal error otherwise, without reporting.
        """
        run_id_ctx.set(uuid.uuid4().hex[:12])
        owner_ctx.set(owner)
        started_at = datetime.now(timezone.utc)
        self._transition(AuditState.LISTING)
        self._logger.info("audit_started", extra={"limit": self._limit})

        try:
            try:
                repos = await self._source.list_repositories(owner)
            except Exception as e:
                if isinstance(e, (ApplicationError, DomainError)):
                    e.with_context(owner=owner)
                raise
            self._logger.info("repositories_listed", extra={"total": len(repos)})

            selected = select_repositories(repos, self._limit, skip_archived=self._skip_archived)
            self._result = AuditResult(repos=list(repos), started_at=started_at)
            for repo in selected:
                self._queue.put_nowait(repo)

            self._transition(AuditState.DISPATCHING)
            self._logger.info(
                "audit_dispatching",
                extra={"selected": len(selected), "thread": self._thread},
            )
            await self._run_workers()
        except BaseException as e:
            self._abort_run(e)
            raise

        if self._first_error is not None:
            self._abort_run(self._first_error)
            raise self._first_error

        self._result.completed_at = datetime.now(timezone.utc)
        self._transition(AuditState.FINALIZED)
        self._logger.info(
            "audit_completed",
            extra={
                "violations": self._result.violation_count,
                "elapsed_s": round(self._result.elapsed_seconds, 3),
            },
        )

        await self._reporter.report(self._result)
        return self._result
