"""GitHub access: reference parsing and the async REST client."""

from .client import (
    BranchNotFoundError,
    GitHubAPIError,
    GitHubClient,
    GitHubRateLimitError,
    RepositoryNotFoundError,
    UpstreamError,
)
from .urls import InvalidRepositoryError, RepoReference, parse_repo_reference

__all__ = [
    "BranchNotFoundError",
    "GitHubAPIError",
    "GitHubClient",
    "GitHubRateLimitError",
    "InvalidRepositoryError",
    "RepoReference",
    "RepositoryNotFoundError",
    "UpstreamError",
    "parse_repo_reference",
]
