"""Local evaluator: runs `opa eval` over a policy directory or file, one process per snapshot."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

from ghaudit.application.exceptions import ConfigurationError, EvaluationError
from ghaudit.domain.models import AuditInput, PolicyViolation
from ghaudit.infrastructure.policy.result import parse_violations

DEFAULT_PACKAGE = "github.repo"


class LocalPolicyEvaluator:
    """
    Evaluates `data.<package>` with the OPA CLI, feeding the snapshot on stdin.
    Requires the `opa` binary (path configurable).
    """

    def __init__(
        self,
        policy: Path | str,
        *,
        package: str = DEFAULT_PACKAGE,
        opa_binary: str = "opa",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._policy = Path(policy)
        if not self._policy.exists():
            raise ConfigurationError("policy path not found", policy=str(self._policy))
        self._package = package
        self._binary = opa_binary
        self._logger = logger or logging.getLogger(__name__)

    def command(self) -> list[str]:
        return [
            self._binary,
            "eval",
            "--format",
            "json",
            "--stdin-input",
            "--data",
            str(self._policy),
            f"data.{self._package}",
        ]

    async def evaluate(self, snapshot: AuditInput) -> list[PolicyViolation]:
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.command(),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise EvaluationError("failed to run opa", binary=self._binary) from e

        try:
            stdout, stderr = await proc.communicate(snapshot.model_dump_json().encode("utf-8"))
        except BaseException:
            if proc.returncode is None:
                proc.kill()
            await proc.wait()
            raise
        if proc.returncode != 0:
            raise EvaluationError(
                "opa eval failed",
                package=self._package,
                returncode=proc.returncode,
                stderr=stderr.decode("utf-8", errors="replace").strip(),
            )

        try:
            output = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise EvaluationError("invalid opa output", package=self._package) from e
        if not isinstance(output, dict):
            raise EvaluationError("invalid opa output", package=self._package)

        results = output.get("result") or []
        if not results:
            raise EvaluationError("no eval result", package=self._package)
        try:
            value = results[0]["expressions"][0]["value"]
        except (KeyError, IndexError, TypeError) as e:
            raise EvaluationError("invalid opa output", package=self._package) from e
        self._logger.debug(
            "policy_evaluated",
            extra={"repo": snapshot.repo.full_name, "package": self._package},
        )
        return parse_violations(value, package=self._package)
