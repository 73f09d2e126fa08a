"""Async client for the GitHub REST API."""

from __future__ import annotations

import asyncio
import os
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..logging import get_logger
from ..models import BranchInfo, FileTreeNode, RepoMetadata
from ..tree import build_tree

DEFAULT_API_URL = "https://api.github.com"
ENV_TOKEN_KEYS = ("GITHUB_TOKEN", "GH_TOKEN")

# Fetched in order; missing files are skipped.
IMPORTANT_FILES = (
    "README.md",
    "package.json",
    "tsconfig.json",
    "pyproject.toml",
    "requirements.txt",
    "Cargo.toml",
    "go.mod",
    "Dockerfile",
    ".env.example",
    "src/index.ts",
    "src/main.ts",
    "main.py",
    "app.py",
    "index.js",
)

logger = get_logger("github.client")


class UpstreamError(RuntimeError):
    """An operational failure reported by the source-hosting API."""

    status_code = 502

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class RepositoryNotFoundError(UpstreamError):
    status_code = 404


class BranchNotFoundError(UpstreamError):
    status_code = 404


class GitHubRateLimitError(UpstreamError):
    status_code = 503


class GitHubAPIError(UpstreamError):
    status_code = 502


class GitHubClient:
    """Fetches repository metadata, trees, files and branches.

    The underlying `httpx.AsyncClient` is opened lazily and may be closed
    between analyses with `aclose()`; the next call reopens it.
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str = DEFAULT_API_URL,
        request_timeout: float = 15.0,
        max_important_files: int = 10,
        max_file_length: int = 20_000,
        important_files: Sequence[str] = IMPORTANT_FILES,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = token or _first_env_value(ENV_TOKEN_KEYS)
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout
        self.max_important_files = max_important_files
        self.max_file_length = max_file_length
        self.important_files = tuple(important_files)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def has_token(self) -> bool:
        return bool(self.token)

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        client = self._client
        self._client = None
        if client is not None and not client.is_closed:
            await client.aclose()

    async def fetch_repo_metadata(self, owner: str, name: str) -> RepoMetadata:
        response = await self._get(f"/repos/{owner}/{name}")
        if response.status_code == 404:
            raise RepositoryNotFoundError(f"Repository not found: {owner}/{name}")
        self._raise_for_status(response, f"{owner}/{name}")
        payload = response.json()
        owner_payload = payload.get("owner") if isinstance(payload.get("owner"), dict) else {}
        return RepoMetadata(
            owner=owner_payload.get("login") or owner,
            name=payload.get("name") or name,
            full_name=payload.get("full_name") or f"{owner}/{name}",
            description=payload.get("description"),
            language=payload.get("language"),
            stars=_as_int(payload.get("stargazers_count")),
            forks=_as_int(payload.get("forks_count")),
            open_issues=_as_int(payload.get("open_issues_count")),
            default_branch=payload.get("default_branch") or "main",
            avatar_url=owner_payload.get("avatar_url"),
        )

    async def fetch_repo_tree(self, owner: str, name: str, branch: str) -> List[FileTreeNode]:
        response = await self._get(
            f"/repos/{owner}/{name}/git/trees/{branch}", params={"recursive": "1"}
        )
        if response.status_code == 404:
            raise BranchNotFoundError(f"Branch not found: {branch}")
        self._raise_for_status(response, f"{owner}/{name}@{branch}")
        payload = response.json()
        if payload.get("truncated"):
            logger.info("Tree listing for %s/%s was truncated by the API", owner, name)
        entries = payload.get("tree")
        return build_tree(entries if isinstance(entries, list) else [])

    async def fetch_important_files(self, owner: str, name: str, branch: str) -> Dict[str, str]:
        """Fetch well-known files concurrently; absent files are left out."""
        candidates = self.important_files[: max(0, self.max_important_files)]
        contents = await asyncio.gather(
            *(self._fetch_file(owner, name, branch, path) for path in candidates)
        )
        return {path: text for path, text in zip(candidates, contents) if text is not None}

    async def fetch_repo_branches(
        self, owner: str, name: str, default_branch: str
    ) -> List[BranchInfo]:
        """List branches with the default branch first."""
        response = await self._get(f"/repos/{owner}/{name}/branches", params={"per_page": "100"})
        self._raise_for_status(response, f"{owner}/{name}")
        payload = response.json()
        branches: List[BranchInfo] = []
        for item in payload if isinstance(payload, list) else []:
            if not isinstance(item, dict) or not isinstance(item.get("name"), str):
                continue
            branches.append(
                BranchInfo(
                    name=item["name"],
                    is_default=item["name"] == default_branch,
                    protected=bool(item.get("protected")),
                )
            )
        if not any(branch.is_default for branch in branches):
            branches.append(BranchInfo(name=default_branch, is_default=True))
        branches.sort(key=lambda branch: not branch.is_default)
        return branches

    # ------------------------------------------------------------------
    # Internal helpers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers = {
                "Accept": "application/vnd.github+json",
                "User-Agent": "repohealth",
            }
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.request_timeout,
                transport=self._transport,
            )
        return self._client

    async def _get(
        self,
        path: str,
        *,
        params: Dict[str, str] | None = None,
        headers: Dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            return await self._get_client().get(path, params=params, headers=headers)
        except httpx.HTTPError as exc:
            raise GitHubAPIError(f"GitHub request failed: {exc}") from exc

    async def _fetch_file(self, owner: str, name: str, branch: str, path: str) -> Optional[str]:
        response = await self._get(
            f"/repos/{owner}/{name}/contents/{path}",
            params={"ref": branch},
            headers={"Accept": "application/vnd.github.raw+json"},
        )
        if response.status_code == 404:
            return None
        self._raise_for_status(response, path)
        return response.text[: self.max_file_length]

    @staticmethod
    def _raise_for_status(response: httpx.Response, subject: str) -> None:
        if response.status_code < 400:
            return
        if response.status_code == 429 or (
            response.status_code == 403
            and response.headers.get("x-ratelimit-remaining") == "0"
        ):
            raise GitHubRateLimitError(
                "GitHub API rate limit exceeded. Please try again later."
            )
        raise GitHubAPIError(
            f"GitHub API error {response.status_code} for {subject}",
            status_code=502,
        )


def _first_env_value(keys: Sequence[str]) -> str | None:
    for key in keys:
        value = os.getenv(key)
        if value:
            return value
    return None


def _as_int(value: Any) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


__all__ = [
    "BranchNotFoundError",
    "GitHubAPIError",
    "GitHubClient",
    "GitHubRateLimitError",
    "IMPORTANT_FILES",
    "RepositoryNotFoundError",
    "UpstreamError",
]
