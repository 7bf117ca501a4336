"""Shared handling of OPA query results: the `fail` rule of the queried package."""

from typing import Any

from pydantic import ValidationError

from ghaudit.application.exceptions import EvaluationError
from ghaudit.domain.models import PolicyViolation

FAIL_RULE = "fail"


def parse_violations(document: Any, *, package: str) -> list[PolicyViolation]:
    """
    Convert the evaluated package document into violations. A package without a
    `fail` rule (or an empty one) means no violation.
    """
    if not isinstance(document, dict):
        raise EvaluationError("unexpected policy result document", package=package)
    raw = document.get(FAIL_RULE) or []
    try:
        return [PolicyViolation.model_validate(item) for item in raw]
    except ValidationError as e:
        raise EvaluationError("invalid fail entry in policy result", package=package) from e
