# ghaudit/main.py

import asyncio
import logging
from contextlib import AsyncExitStack
from pathlib import Path
from typing import Annotated, Any, Optional

import typer

from ghaudit import __version__
from ghaudit.application.exceptions import ApplicationError
from ghaudit.application.interfaces import NotificationSink, PolicyEvaluator, RepositorySource
from ghaudit.application.orchestrator import AuditOrchestrator
from ghaudit.application.report import ReportSink
from ghaudit.application.snapshot_builder import SnapshotBuilder
from ghaudit.config.logging import configure_logging
from ghaudit.config.settings import AuditSettings, load_settings
from ghaudit.domain.exceptions import DomainError, ViolationDetectedError
from ghaudit.infrastructure.github.auth import GitHubAppAuth
from ghaudit.infrastructure.github.client import GitHubAppClient
from ghaudit.infrastructure.github.snapshot_source import SnapshotDirectorySource
from ghaudit.infrastructure.notify.slack_webhook import SlackWebhookClient
from ghaudit.infrastructure.persistence.snapshot_store import SnapshotStore
from ghaudit.infrastructure.policy.local import LocalPolicyEvaluator
from ghaudit.infrastructure.policy.remote import RemotePolicyEvaluator
from ghaudit.observability.failure_classifier import FailureCategory, FailureClassifier
from ghaudit.observability.metrics import MetricsCollector

logger = logging.getLogger("ghaudit")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2

app = typer.Typer(
    help=f"GitHub audit with OPA/Rego ({__version__})",
    add_completion=False,
)


async def _build_source(settings: AuditSettings, stack: AsyncExitStack) -> RepositorySource:
    if settings.load_dir is not None:
        logger.info("using_snapshot_directory", extra={"path": str(settings.load_dir)})
        return SnapshotDirectorySource.from_store(SnapshotStore(settings.load_dir))

    auth = GitHubAppAuth(settings.app_id, settings.install_id, settings.private_key())
    client = GitHubAppClient(
        auth, base_url=settings.api_url, logger=logging.getLogger("ghaudit.github")
    )
    return await stack.enter_async_context(client)


async def _build_evaluator(settings: AuditSettings, stack: AsyncExitStack) -> PolicyEvaluator:
    if settings.policy is not None:
        logger.info("using_local_policy", extra={"policy": str(settings.policy)})
        return LocalPolicyEvaluator(
            settings.policy, package=settings.package, opa_binary=settings.opa_binary
        )

    logger.info("using_policy_server", extra={"url": settings.url})
    remote = RemotePolicyEvaluator(
        settings.url or "", package=settings.package, headers=settings.header_map
    )
    return await stack.enter_async_context(remote)


async def _build_notifier(
    settings: AuditSettings, stack: AsyncExitStack
) -> Optional[NotificationSink]:
    if settings.slack_webhook is None:
        return None
    client = SlackWebhookClient(settings.slack_webhook.get_secret_value())
    return await stack.enter_async_context(client)


async def run_audit(settings: AuditSettings, metrics: Optional[MetricsCollector] = None) -> int:
    """Wire collaborators from settings, run one audit, and map the outcome to an exit code."""
    async with AsyncExitStack() as stack:
        source = await _build_source(settings, stack)
        evaluator = await _build_evaluator(settings, stack)
        notifier = await _build_notifier(settings, stack)

        store = None
        if settings.dump_dir is not None:
            store = SnapshotStore(settings.dump_dir)
            store.prepare()

        orchestrator = AuditOrchestrator(
            source,
            evaluator,
            SnapshotBuilder(source, store, logger=logger),
            ReportSink(notifier),
            thread=settings.thread,
            limit=settings.limit,
            skip_archived=settings.skip_archived,
            logger=logger,
            metrics=metrics,
        )
        try:
            await orchestrator.audit(settings.owner)
        except ViolationDetectedError as e:
            logger.info("violation_detected", extra={"violations": e.result.violation_count})
            return EXIT_FAILURE if settings.fail else EXIT_OK
    return EXIT_OK


def execute(settings: AuditSettings) -> int:
    """Run the audit to completion; typed failures are logged with their context."""
    verbose = settings.log_level in ("trace", "debug")
    try:
        return asyncio.run(run_audit(settings))
    except (ApplicationError, DomainError) as e:
        category = FailureClassifier.classify(e)
        logger.error(
            e.message,
            extra={"category": category.value, **e.context},
            exc_info=verbose,
        )
        if category == FailureCategory.CONFIGURATION_ERROR:
            return EXIT_CONFIG_ERROR
        return EXIT_FAILURE
    except Exception:
        logger.exception("unexpected_error")
        return EXIT_FAILURE


@app.command()
def audit(
    owner: Annotated[
        Optional[str],
        typer.Option("--owner", "-o", help="GitHub owner (or organization) name to be audited [GHAUDIT_OWNER]"),
    ] = None,
    app_id: Annotated[
        Optional[int],
        typer.Option("--app-id", help="GitHub App ID [GHAUDIT_APP_ID]"),
    ] = None,
    install_id: Annotated[
        Optional[int],
        typer.Option("--install-id", help="GitHub App installation ID [GHAUDIT_INSTALL_ID]"),
    ] = None,
    private_key_file: Annotated[
        Optional[Path],
        typer.Option("--private-key-file", help="GitHub App private key file path [GHAUDIT_PRIVATE_KEY_FILE]"),
    ] = None,
    private_key_data: Annotated[
        Optional[str],
        typer.Option("--private-key-data", help="GitHub App private key data [GHAUDIT_PRIVATE_KEY_DATA]"),
    ] = None,
    api_url: Annotated[
        Optional[str],
        typer.Option("--api-url", help="GitHub API base URL [GHAUDIT_API_URL]"),
    ] = None,
    policy: Annotated[
        Optional[Path],
        typer.Option("--policy", "-p", help="Local Rego policy dir/file [GHAUDIT_POLICY]"),
    ] = None,
    package: Annotated[
        Optional[str],
        typer.Option("--package", help="Inquiry policy package name [GHAUDIT_PACKAGE]"),
    ] = None,
    url: Annotated[
        Optional[str],
        typer.Option("--url", "-u", help="OPA server URL [GHAUDIT_URL]"),
    ] = None,
    header: Annotated[
        Optional[list[str]],
        typer.Option("--header", "-H", help="HTTP header of requests to the OPA server, 'Key: Value' [GHAUDIT_HEADERS]"),
    ] = None,
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", "-l", help="Log level [trace|debug|info|warn|error] [GHAUDIT_LOG_LEVEL]"),
    ] = None,
    log_format: Annotated[
        Optional[str],
        typer.Option("--log-format", "-f", help="Log format [text|json] [GHAUDIT_LOG_FORMAT]"),
    ] = None,
    fail: Annotated[
        Optional[bool],
        typer.Option("--fail/--no-fail", help="Exit with non-zero code when detecting violation [GHAUDIT_FAIL]"),
    ] = None,
    skip_archived: Annotated[
        Optional[bool],
        typer.Option("--skip-archived/--no-skip-archived", help="Do not audit archived repositories [GHAUDIT_SKIP_ARCHIVED]"),
    ] = None,
    thread: Annotated[
        Optional[int],
        typer.Option("--thread", help="Number of concurrent workers [GHAUDIT_THREAD]"),
    ] = None,
    limit: Annotated[
        Optional[int],
        typer.Option("--limit", help="Limit of auditing repository, 0 is unlimited [GHAUDIT_LIMIT]"),
    ] = None,
    dump: Annotated[
        Optional[Path],
        typer.Option("--dump", help="Directory to dump input data [GHAUDIT_DUMP]"),
    ] = None,
    load: Annotated[
        Optional[Path],
        typer.Option("--load", help="Directory to load input data [GHAUDIT_LOAD]"),
    ] = None,
    slack_webhook: Annotated[
        Optional[str],
        typer.Option("--slack-webhook", help="Slack incoming webhook URL to notify violation [GHAUDIT_SLACK_WEBHOOK]"),
    ] = None,
) -> None:
    """Audit every repository of an owner against OPA/Rego policies."""
    overrides: dict[str, Any] = {
        "owner": owner,
        "app_id": app_id,
        "install_id": install_id,
        "private_key_file": private_key_file,
        "private_key_data": private_key_data,
        "api_url": api_url,
        "policy": policy,
        "package": package,
        "url": url,
        "headers": header or None,
        "log_level": log_level,
        "log_format": log_format,
        "fail": fail,
        "skip_archived": skip_archived,
        "thread": thread,
        "limit": limit,
        "dump_dir": dump,
        "load_dir": load,
        "slack_webhook": slack_webhook,
    }
    try:
        settings = load_settings(**{k: v for k, v in overrides.items() if v is not None})
    except ApplicationError as e:
        typer.echo(f"ghaudit: {e.message}", err=True)
        raise typer.Exit(code=EXIT_CONFIG_ERROR)

    configure_logging(settings.log_level, settings.log_format)
    logger.info(
        "setting_up",
        extra={"owner": settings.owner, "thread": settings.thread, "limit": settings.limit},
    )
    raise typer.Exit(code=execute(settings))
