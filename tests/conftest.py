from __future__ import annotations

import logging
from typing import Iterator

import pytest

from tests._fixtures.tree_builder import TreeBuilder


@pytest.fixture
def tree_builder() -> TreeBuilder:
    """Provide a fresh builder for repository listings."""
    return TreeBuilder()


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        "REPOHEALTH_LLM_API_KEY",
        "OPENROUTER_API_KEY",
        "OPENAI_API_KEY",
        "REPOHEALTH_LLM_MODEL",
        "OPENROUTER_MODEL",
        "REPOHEALTH_LLM_BASE_URL",
        "OPENAI_BASE_URL",
        "GITHUB_TOKEN",
        "GH_TOKEN",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    yield
    logger = logging.getLogger("repohealth")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
