"""GitHub REST API repository source. Paginated reads authenticated as a GitHub App installation."""

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from ghaudit.application.exceptions import UpstreamResponseError
from ghaudit.domain.models import Branch, Repository
from ghaudit.infrastructure.github.auth import GitHubAppAuth

DEFAULT_API_URL = "https://api.github.com"
PER_PAGE = 100
DEFAULT_TIMEOUT = 30.0


class GitHubAppClient:
    """
    RepositorySource backed by the GitHub REST API. Every list call walks pages of
    PER_PAGE items until a short page. Transport failures and non-200 answers raise
    UpstreamResponseError with status code and body.
    """

    def __init__(
        self,
        auth: GitHubAppAuth,
        *,
        base_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._auth = auth
        self._logger = logger or logging.getLogger(__name__)
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
        )

    async def __aenter__(self) -> "GitHubAppClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> httpx.Response:
        token = await self._auth.installation_token(self._client)
        try:
            return await self._client.get(
                path,
                params=params,
                headers={"Authorization": f"token {token}"},
            )
        except httpx.HTTPError as e:
            raise UpstreamResponseError(
                "GitHub request failed", body=str(e), path=path
            ) from e

    @staticmethod
    def _check(resp: httpx.Response, path: str) -> None:
        if resp.status_code != httpx.codes.OK:
            raise UpstreamResponseError(
                status_code=resp.status_code,
                body=resp.text,
                path=path,
            )

    async def _get_json(self, path: str) -> Any:
        resp = await self._get(path)
        self._check(resp, path)
        return resp.json()

    async def _paginate(self, path: str) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        page = 1
        while True:
            resp = await self._get(path, params={"page": page, "per_page": PER_PAGE})
            self._check(resp, path)
            got = resp.json()
            items.extend(got)
            self._logger.debug(
                "github_page_retrieved",
                extra={"path": path, "page": page, "got": len(got)},
            )
            if len(got) < PER_PAGE:
                return items
            page += 1

    async def list_repositories(self, owner: str) -> list[Repository]:
        try:
            raw = await self._paginate(f"/orgs/{owner}/repos")
        except UpstreamResponseError as e:
            if e.status_code != httpx.codes.NOT_FOUND:
                raise
            # Not an organization: fall back to the user account.
            raw = await self._paginate(f"/users/{owner}/repos")
        return [Repository.model_validate(r) for r in raw]

    async def list_branches(self, owner: str, repo: str) -> list[Branch]:
        raw = await self._paginate(f"/repos/{owner}/{repo}/branches")
        return [Branch.model_validate(b) for b in raw]

    async def get_branch_protection(self, owner: str, repo: str, branch: str) -> dict[str, Any]:
        return await self._get_json(
            f"/repos/{owner}/{repo}/branches/{quote(branch, safe='')}/protection"
        )

    async def list_collaborators(self, owner: str, repo: str) -> list[dict[str, Any]]:
        return await self._paginate(f"/repos/{owner}/{repo}/collaborators")

    async def list_hooks(self, owner: str, repo: str) -> list[dict[str, Any]]:
        return await self._paginate(f"/repos/{owner}/{repo}/hooks")

    async def list_teams(self, owner: str, repo: str) -> list[dict[str, Any]]:
        return await self._paginate(f"/repos/{owner}/{repo}/teams")
