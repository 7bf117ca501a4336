"""OPA server evaluator: queries the Data API of a remote policy server over HTTP."""

import logging
from typing import Any, Optional

import httpx

from ghaudit.application.exceptions import EvaluationError
from ghaudit.domain.models import AuditInput, PolicyViolation
from ghaudit.infrastructure.policy.result import parse_violations

DEFAULT_PACKAGE = "github.repo"
DEFAULT_TIMEOUT = 30.0


class RemotePolicyEvaluator:
    """
    POST {url}/v1/data/<package path> with {"input": snapshot}. Extra headers (e.g.
    Authorization) are sent on every request. A response without `result` means the
    package is undefined on the server.
    """

    def __init__(
        self,
        url: str,
        *,
        package: str = DEFAULT_PACKAGE,
        headers: Optional[dict[str, str]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._package = package
        self._path = "/v1/data/" + package.replace(".", "/")
        self._logger = logger or logging.getLogger(__name__)
        self._client = httpx.AsyncClient(
            base_url=url.rstrip("/"),
            headers=headers or {},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "RemotePolicyEvaluator":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def evaluate(self, snapshot: AuditInput) -> list[PolicyViolation]:
        body = {"input": snapshot.model_dump(mode="json")}
        try:
            resp = await self._client.post(self._path, json=body)
        except httpx.HTTPError as e:
            raise EvaluationError(
                "policy server request failed", package=self._package, error=str(e)
            ) from e
        if resp.status_code != httpx.codes.OK:
            raise EvaluationError(
                "unexpected policy server response",
                package=self._package,
                status_code=resp.status_code,
                body=resp.text,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise EvaluationError(
                "invalid opa output", package=self._package, body=resp.text
            ) from e
        if not isinstance(data, dict):
            raise EvaluationError("invalid opa output", package=self._package, body=resp.text)
        if "result" not in data:
            raise EvaluationError("no eval result", package=self._package)
        self._logger.debug(
            "policy_evaluated",
            extra={"repo": snapshot.repo.full_name, "package": self._package},
        )
        return parse_violations(data["result"], package=self._package)
