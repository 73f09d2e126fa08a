"""Tests for the async GitHub client."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from repohealth.github import (
    BranchNotFoundError,
    GitHubAPIError,
    GitHubClient,
    GitHubRateLimitError,
    RepositoryNotFoundError,
)

REPO = {
    "name": "widgets",
    "full_name": "octo/widgets",
    "description": "Widgets",
    "language": "Python",
    "stargazers_count": 10,
    "forks_count": 2,
    "open_issues_count": 1,
    "default_branch": "trunk",
    "owner": {"login": "octo", "avatar_url": "https://example.com/a.png"},
}

TREE = {
    "tree": [
        {"path": "src", "type": "tree"},
        {"path": "src/app.py", "type": "blob", "size": 40},
        {"path": "README.md", "type": "blob", "size": 12},
    ],
    "truncated": False,
}


def _handler(requests: list[httpx.Request]):
    def handle(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        path = request.url.path
        if path == "/repos/octo/widgets":
            return httpx.Response(200, json=REPO)
        if path == "/repos/octo/widgets/git/trees/trunk":
            return httpx.Response(200, json=TREE)
        if path == "/repos/octo/widgets/git/trees/nope":
            return httpx.Response(404, json={"message": "Not Found"})
        if path == "/repos/octo/widgets/branches":
            return httpx.Response(
                200, json=[{"name": "dev", "protected": False}, {"name": "trunk", "protected": True}]
            )
        if path == "/repos/octo/widgets/contents/README.md":
            return httpx.Response(200, text="# widgets\n" + "x" * 100)
        if path == "/repos/octo/widgets/contents/pyproject.toml":
            return httpx.Response(200, text="[project]\nname = 'widgets'\n")
        if path.startswith("/repos/octo/widgets/contents/"):
            return httpx.Response(404, json={"message": "Not Found"})
        if path == "/repos/octo/limited":
            return httpx.Response(403, headers={"x-ratelimit-remaining": "0"})
        if path == "/repos/octo/broken":
            return httpx.Response(500)
        return httpx.Response(404, json={"message": "Not Found"})

    return handle


def _client(requests: list[httpx.Request], **kwargs) -> GitHubClient:
    return GitHubClient(transport=httpx.MockTransport(_handler(requests)), **kwargs)


def test_fetch_metadata_maps_fields() -> None:
    requests: list[httpx.Request] = []
    client = _client(requests, token="secret")

    metadata = asyncio.run(client.fetch_repo_metadata("octo", "widgets"))

    assert metadata.full_name == "octo/widgets"
    assert metadata.default_branch == "trunk"
    assert metadata.stars == 10
    assert metadata.avatar_url == "https://example.com/a.png"
    assert requests[0].headers["authorization"] == "Bearer secret"


def test_token_falls_back_to_environment(monkeypatch) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "from-env")

    assert GitHubClient().token == "from-env"
    assert GitHubClient().has_token is True


def test_fetch_tree_builds_nested_nodes() -> None:
    client = _client([])

    tree = asyncio.run(client.fetch_repo_tree("octo", "widgets", "trunk"))

    assert sorted(node.path for node in tree) == ["README.md", "src"]
    src = next(node for node in tree if node.path == "src")
    assert src.size == 40


def test_missing_branch_and_repository_raise_operational_errors() -> None:
    client = _client([])

    with pytest.raises(BranchNotFoundError, match="Branch not found: nope"):
        asyncio.run(client.fetch_repo_tree("octo", "widgets", "nope"))
    with pytest.raises(RepositoryNotFoundError, match="not found"):
        asyncio.run(client.fetch_repo_metadata("octo", "ghost"))


def test_rate_limit_and_server_errors() -> None:
    client = _client([])

    with pytest.raises(GitHubRateLimitError):
        asyncio.run(client.fetch_repo_metadata("octo", "limited"))
    with pytest.raises(GitHubAPIError):
        asyncio.run(client.fetch_repo_metadata("octo", "broken"))


def test_fetch_important_files_skips_missing_and_truncates() -> None:
    requests: list[httpx.Request] = []
    client = _client(requests, max_file_length=20)

    files = asyncio.run(client.fetch_important_files("octo", "widgets", "trunk"))

    assert list(files) == ["README.md", "pyproject.toml"]
    assert files["README.md"] == ("# widgets\n" + "x" * 100)[:20]
    assert len(requests) == client.max_important_files
    assert all(request.url.params["ref"] == "trunk" for request in requests)
    assert requests[0].headers["accept"] == "application/vnd.github.raw+json"


def test_fetch_branches_puts_default_first() -> None:
    client = _client([])

    branches = asyncio.run(client.fetch_repo_branches("octo", "widgets", "trunk"))

    assert [branch.name for branch in branches] == ["trunk", "dev"]
    assert branches[0].is_default and branches[0].protected


def test_connection_failures_become_api_errors() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = GitHubClient(transport=httpx.MockTransport(refuse))

    with pytest.raises(GitHubAPIError, match="GitHub request failed"):
        asyncio.run(client.fetch_repo_metadata("octo", "widgets"))


def test_client_reopens_after_close() -> None:
    client = _client([])

    async def scenario() -> None:
        async with client:
            await client.fetch_repo_metadata("octo", "widgets")
        await client.fetch_repo_metadata("octo", "widgets")
        await client.aclose()

    asyncio.run(scenario())
    assert client._client is None
