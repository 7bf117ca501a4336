"""Report sink: console summary, optional notification, and the violation-detected signal."""

import logging
import sys
from typing import Any, Optional, TextIO

from ghaudit.application.interfaces import NotificationSink
from ghaudit.domain.exceptions import ViolationDetectedError
from ghaudit.domain.models import AuditRecord, AuditResult

logger = logging.getLogger(__name__)

MESSAGE_TITLE = "GitHub Audit: evaluation completed"
LIST_LIMIT = 16
COLOR_OK = "#2EB67D"
COLOR_VIOLATION = "#E01E5A"


def _sorted_records(records: list[AuditRecord]) -> list[AuditRecord]:
    return sorted(records, key=lambda r: (r.repository.full_name, r.message))


def _text(text: str, kind: str = "mrkdwn") -> dict[str, Any]:
    return {"type": kind, "text": text}


def _summary_section(result: AuditResult) -> dict[str, Any]:
    return {
        "type": "section",
        "fields": [
            _text(f"*Scanned*: {len(result.repos)} repos"),
            _text(f"*Elapsed*: {result.elapsed_seconds:.1f}s"),
        ],
    }


def build_success_message(result: AuditResult) -> dict[str, Any]:
    """Slack webhook payload for a run without violations."""
    return {
        "text": MESSAGE_TITLE,
        "attachments": [
            {
                "color": COLOR_OK,
                "blocks": [
                    {
                        "type": "header",
                        "text": _text(
                            ":white_check_mark: GitHub Audit: No violation detected",
                            "plain_text",
                        ),
                    },
                    _summary_section(result),
                ],
            }
        ],
    }


def build_category_lines(category: str, records: list[AuditRecord], list_limit: int) -> list[str]:
    """Policy header plus up to list_limit repository entries and an `and N more repos` tail."""
    lines = [f"Policy: *{category}*"]
    for record in _sorted_records(records)[:list_limit]:
        repo = record.repository
        line = f"- <{repo.html_url}|{repo.full_name}>"
        if record.message:
            line += f": {record.message}"
        lines.append(line)
    more = len(records) - list_limit
    if more > 0:
        lines.append("")
        lines.append(f"and {more} more repos")
    return lines


def build_violation_message(result: AuditResult, list_limit: int = LIST_LIMIT) -> dict[str, Any]:
    """Slack webhook payload listing violations per category."""
    blocks: list[dict[str, Any]] = [
        {
            "type": "header",
            "text": _text(f":rotating_light: {len(result.records)} policy violated", "plain_text"),
        },
        _summary_section(result),
    ]
    for category in sorted(result.records):
        lines = build_category_lines(category, result.records[category], list_limit)
        blocks.append({"type": "divider"})
        blocks.append({"type": "section", "text": _text("\n".join(lines))})

    return {
        "text": MESSAGE_TITLE,
        "attachments": [{"color": COLOR_VIOLATION, "blocks": blocks}],
    }


def render_console(result: AuditResult) -> str:
    if not result.has_violations:
        return "\n----- No violation detected -----\n\n"

    lines = ["", f"===== {result.violation_count} violation detected ====="]
    for category in sorted(result.records):
        lines.append(f"[{category}]")
        for record in _sorted_records(result.records[category]):
            lines.append(f"- {record.repository.full_name}: {record.message}")
    lines.append("")
    return "\n".join(lines) + "\n"


class ReportSink:
    """
    Writes the console summary, posts the notification if a sink is configured, and
    raises ViolationDetectedError when the result holds any record.
    """

    def __init__(
        self,
        notifier: Optional[NotificationSink] = None,
        *,
        out: Optional[TextIO] = None,
        list_limit: int = LIST_LIMIT,
    ) -> None:
        self._notifier = notifier
        self._out = out
        self._list_limit = list_limit

    async def report(self, result: AuditResult) -> None:
        out = self._out or sys.stdout
        out.write(render_console(result))
        out.flush()

        if self._notifier is not None:
            if result.has_violations:
                logger.debug("creating_violation_message")
                message = build_violation_message(result, self._list_limit)
            else:
                logger.debug("creating_success_message")
                message = build_success_message(result)
            await self._notifier.post(message)
            logger.info("notification_posted", extra={"violations": result.violation_count})

        if result.has_violations:
            raise ViolationDetectedError(result)
