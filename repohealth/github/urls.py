"""Parsing of user-supplied repository references."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

_SEGMENT = re.compile(r"^[A-Za-z0-9_.-]+$")
_GITHUB_HOSTS = {"github.com", "www.github.com"}


class InvalidRepositoryError(ValueError):
    """Raised when a reference does not name an owner/name pair on GitHub."""


@dataclass(frozen=True)
class RepoReference:
    owner: str
    name: str
    branch: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


def parse_repo_reference(value: str) -> RepoReference:
    """Accept ``owner/name`` or a github.com URL (optionally ``.git`` or ``/tree/<branch>``)."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidRepositoryError("Invalid GitHub repository URL")
    text = value.strip()

    if "://" not in text and not text.lower().startswith(("github.com/", "www.github.com/")):
        segments = [part for part in text.split("/") if part]
        if len(segments) != 2:
            raise InvalidRepositoryError(f"Invalid GitHub repository URL: {value}")
        return _reference(segments[0], segments[1], None, value)

    parsed = urlparse(text if "://" in text else f"https://{text}")
    if parsed.scheme not in ("http", "https") or (parsed.hostname or "").lower() not in _GITHUB_HOSTS:
        raise InvalidRepositoryError(f"Invalid GitHub repository URL: {value}")
    segments = [part for part in parsed.path.split("/") if part]
    if len(segments) < 2:
        raise InvalidRepositoryError(f"Invalid GitHub repository URL: {value}")
    branch = None
    if len(segments) >= 4 and segments[2] == "tree":
        branch = "/".join(segments[3:])
    return _reference(segments[0], segments[1], branch, value)


def _reference(owner: str, name: str, branch: Optional[str], original: str) -> RepoReference:
    if name.endswith(".git"):
        name = name[: -len(".git")]
    if not _SEGMENT.match(owner) or not _SEGMENT.match(name) or name in (".", ".."):
        raise InvalidRepositoryError(f"Invalid GitHub repository URL: {original}")
    return RepoReference(owner=owner, name=name, branch=branch)


__all__ = ["InvalidRepositoryError", "RepoReference", "parse_repo_reference"]
