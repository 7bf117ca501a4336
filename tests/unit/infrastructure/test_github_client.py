"""GitHubAppClient against the fake REST API: pagination, owner fallback, sub-resources, errors."""

import pytest

from ghaudit.application.exceptions import UpstreamResponseError
from ghaudit.infrastructure.github.auth import GitHubAppAuth
from ghaudit.infrastructure.github.client import GitHubAppClient
from fake_github import APP_ID, INSTALL_ID, repo_payload


@pytest.fixture
async def client(private_key_pem, github_transport):
    auth = GitHubAppAuth(APP_ID, INSTALL_ID, private_key_pem)
    async with GitHubAppClient(
        auth, base_url="http://github.test", transport=github_transport
    ) as c:
        yield c


async def test_list_repositories_walks_all_pages(client, github):
    github.add_org_repos("acme", 250)

    repos = await client.list_repositories("acme")

    assert len(repos) == 250
    assert repos[0].full_name == "acme/repo000"
    assert repos[-1].full_name == "acme/repo249"
    assert github.requests.count("/orgs/acme/repos") == 3


async def test_exact_page_multiple_requests_one_empty_page(client, github):
    github.add_org_repos("acme", 100)

    repos = await client.list_repositories("acme")

    assert len(repos) == 100
    assert github.requests.count("/orgs/acme/repos") == 2


async def test_listing_preserves_upstream_fields(client, github):
    github.orgs["acme"] = [repo_payload("acme", "alpha", archived=True, topics=["infra"])]

    (repo,) = await client.list_repositories("acme")

    assert repo.archived is True
    assert repo.model_dump()["topics"] == ["infra"]
    assert repo.owner_login == "acme"


async def test_user_account_fallback_on_missing_org(client, github):
    github.users["octocat"] = [repo_payload("octocat", "hello-world")]

    repos = await client.list_repositories("octocat")

    assert [r.full_name for r in repos] == ["octocat/hello-world"]
    assert github.requests == ["/orgs/octocat/repos", "/users/octocat/repos"]


async def test_unknown_owner_raises_upstream_error(client):
    with pytest.raises(UpstreamResponseError) as exc_info:
        await client.list_repositories("nobody")

    assert exc_info.value.status_code == 404
    assert exc_info.value.context["path"] == "/users/nobody/repos"


async def test_server_error_is_not_retried_as_user(client, github):
    github.add_org_repos("acme", 3)
    github.fail_status["/orgs/acme/repos"] = 502

    with pytest.raises(UpstreamResponseError) as exc_info:
        await client.list_repositories("acme")

    assert exc_info.value.status_code == 502
    assert "Server Error" in exc_info.value.body
    assert "/users/acme/repos" not in github.requests


async def test_sub_resources(client, github):
    github.branches["acme/alpha"] = [
        {"name": "main", "commit": {"sha": "abc"}, "protected": True},
        {"name": "dev", "commit": {"sha": "def"}, "protected": False},
    ]
    github.protections[("acme/alpha", "main")] = {"required_pull_request_reviews": {}}
    github.collaborators["acme/alpha"] = [{"login": "octocat"}]
    github.hooks["acme/alpha"] = [{"id": 7, "config": {"url": "https://ci.example.com"}}]
    github.teams["acme/alpha"] = [{"slug": "core"}]

    branches = await client.list_branches("acme", "alpha")
    protection = await client.get_branch_protection("acme", "alpha", "main")

    assert [(b.name, b.protected) for b in branches] == [("main", True), ("dev", False)]
    assert branches[0].commit == {"sha": "abc"}
    assert protection == {"required_pull_request_reviews": {}}
    assert await client.list_collaborators("acme", "alpha") == [{"login": "octocat"}]
    assert (await client.list_hooks("acme", "alpha"))[0]["id"] == 7
    assert await client.list_teams("acme", "alpha") == [{"slug": "core"}]


async def test_missing_protection_raises(client):
    with pytest.raises(UpstreamResponseError) as exc_info:
        await client.get_branch_protection("acme", "alpha", "main")
    assert exc_info.value.status_code == 404


async def test_token_requested_once_for_many_calls(client, github):
    github.add_org_repos("acme", 5)

    await client.list_repositories("acme")
    await client.list_hooks("acme", "repo000")
    await client.list_teams("acme", "repo001")

    assert len(github.token_requests) == 1
