"""Request admission and the streaming analysis pipeline."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Dict, List, Optional, Tuple

from pydantic import BaseModel, ValidationError

from .analyzers import MetricsAnalyzer
from .config import ServiceConfig
from .github import GitHubClient, InvalidRepositoryError, UpstreamError, parse_repo_reference
from .llm import StreamingLLMRunner
from .logging import get_logger
from .models import (
    AnalysisResult,
    BranchInfo,
    CodeMetrics,
    FileStats,
    FileTreeNode,
    RepoMetadata,
    Scores,
    Suggestion,
)
from .prompting import PromptBuilder
from .prompting.constants import SYSTEM_PROMPT
from .scoring import score
from .streaming.frames import CONTENT, DONE, ERROR, METADATA, encode_frame
from .suggestions import generate_automations, generate_refactors
from .tree import calculate_file_stats

MAX_BODY_SIZE = 10 * 1024
GENERIC_FAILURE = "Analysis failed. Please try again."
BODY_TOO_LARGE = "Request body too large"

# Keys of `AnalysisResult.to_dict()` carried by the metadata frame.
_DETERMINISTIC_KEYS = (
    "metadata",
    "branch",
    "file_tree",
    "file_stats",
    "available_branches",
    "metrics",
    "scores",
    "automations",
    "refactors",
)

logger = get_logger("orchestrator")


class AdmissionError(Exception):
    """A request rejected before any upstream work is started."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class AnalysisRequestBody(BaseModel):
    url: str
    branch: Optional[str] = None
    force_refresh: bool = False


@dataclass(frozen=True)
class AnalysisRequest:
    """An admitted request with its repository reference resolved."""

    url: str
    owner: str
    name: str
    branch: Optional[str] = None
    force_refresh: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


def admit_request(
    raw_body: bytes | str,
    *,
    content_length: str | int | None = None,
    max_body_size: int = MAX_BODY_SIZE,
) -> AnalysisRequest:
    """Validate size, JSON syntax, shape and repository reference, in that order."""
    check_declared_length(content_length, max_body_size)
    body = raw_body.encode("utf-8") if isinstance(raw_body, str) else raw_body
    if len(body) > max_body_size:
        raise AdmissionError(413, BODY_TOO_LARGE)

    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise AdmissionError(400, "Invalid JSON in request body") from None

    try:
        parsed = AnalysisRequestBody.model_validate(data)
    except ValidationError as exc:
        raise AdmissionError(422, _describe_validation(exc)) from None

    try:
        reference = parse_repo_reference(parsed.url)
    except InvalidRepositoryError as exc:
        raise AdmissionError(422, str(exc)) from None

    return AnalysisRequest(
        url=parsed.url,
        owner=reference.owner,
        name=reference.name,
        branch=(parsed.branch or "").strip() or reference.branch,
        force_refresh=parsed.force_refresh,
    )


def check_declared_length(
    content_length: str | int | None, max_body_size: int = MAX_BODY_SIZE
) -> None:
    """Reject a request whose declared length exceeds the cap, before any read."""
    declared = _as_length(content_length)
    if declared is not None and declared > max_body_size:
        raise AdmissionError(413, BODY_TOO_LARGE)


class AnalysisState(str, Enum):
    RECEIVED = "received"
    RATE_CHECKED = "rate-checked"
    FETCHING_METADATA = "fetching-metadata"
    FETCHING_PARALLEL = "fetching-parallel"
    COMPUTING_METRICS = "computing-metrics"
    PROMPTING = "prompting"
    GENERATING = "generating"
    DONE = "done"
    ERROR = "error"


@dataclass
class AnalysisRun:
    """Tracks the lifecycle of one request for logging and tests."""

    label: str = "request"
    state: AnalysisState = AnalysisState.RECEIVED
    history: List[AnalysisState] = field(default_factory=lambda: [AnalysisState.RECEIVED])

    def advance(self, state: AnalysisState) -> None:
        logger.debug("%s: %s -> %s", self.label, self.state.value, state.value)
        self.state = state
        self.history.append(state)

    @property
    def finished(self) -> bool:
        return self.state in (AnalysisState.DONE, AnalysisState.ERROR)


@dataclass
class PreparedAnalysis:
    """Everything computed before the generative backend is contacted."""

    run: AnalysisRun
    metadata: RepoMetadata
    branch: str
    file_tree: List[FileTreeNode]
    file_stats: FileStats
    branches: List[BranchInfo]
    metrics: CodeMetrics
    scores: Scores
    automations: List[Suggestion]
    refactors: List[Suggestion]
    prompt: str

    def deterministic_result(self) -> AnalysisResult:
        return AnalysisResult(
            metadata=self.metadata,
            branch=self.branch,
            metrics=self.metrics,
            scores=self.scores,
            file_tree=self.file_tree,
            file_stats=self.file_stats,
            available_branches=self.branches,
            automations=self.automations,
            refactors=self.refactors,
        )

    def metadata_payload(self) -> Dict[str, Any]:
        data = self.deterministic_result().to_dict()
        return {key: data[key] for key in _DETERMINISTIC_KEYS}


class AnalysisOrchestrator:
    """Runs fetch, analysis and prompt assembly, then streams generation as frames."""

    def __init__(
        self,
        github: GitHubClient | None = None,
        llm_runner: StreamingLLMRunner | None = None,
        prompt_builder: PromptBuilder | None = None,
        analyzer: MetricsAnalyzer | None = None,
    ) -> None:
        self.github = github or GitHubClient()
        self.llm_runner = llm_runner or StreamingLLMRunner()
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.analyzer = analyzer or MetricsAnalyzer()

    @classmethod
    def from_config(cls, config: ServiceConfig) -> "AnalysisOrchestrator":
        """Build the production pipeline from loaded settings."""
        github = GitHubClient(
            config.github.token,
            base_url=config.github.base_url,
            request_timeout=config.github.request_timeout,
            max_important_files=config.github.max_important_files,
            max_file_length=config.github.max_file_length,
        )
        llm_kwargs: Dict[str, Any] = {}
        if config.llm.api_key:
            llm_kwargs["api_key"] = config.llm.api_key
        llm_runner = StreamingLLMRunner(
            config.llm.model,
            base_url=config.llm.base_url,
            temperature=config.llm.temperature,
            max_tokens=config.llm.max_tokens,
            request_timeout=config.llm.request_timeout,
            **llm_kwargs,
        )
        prompt_builder = PromptBuilder(
            max_files=config.prompt.max_files,
            max_file_length=config.prompt.max_file_length,
            max_tree_lines=config.prompt.max_tree_lines,
        )
        return cls(github, llm_runner, prompt_builder)

    @property
    def is_configured(self) -> bool:
        return self.llm_runner.is_configured

    async def prepare(
        self, request: AnalysisRequest, run: AnalysisRun | None = None
    ) -> PreparedAnalysis:
        run = run or AnalysisRun(label=request.full_name)
        owner, name = request.owner, request.name
        try:
            run.advance(AnalysisState.FETCHING_METADATA)
            metadata = await self.github.fetch_repo_metadata(owner, name)
            branch = request.branch or metadata.default_branch

            run.advance(AnalysisState.FETCHING_PARALLEL)
            tree, files, branches = await gather_fail_fast(
                self.github.fetch_repo_tree(owner, name, branch),
                self.github.fetch_important_files(owner, name, branch),
                self.github.fetch_repo_branches(owner, name, metadata.default_branch),
            )

            run.advance(AnalysisState.COMPUTING_METRICS)
            metrics = self.analyzer.analyze(tree, files)
            scores = score(metrics)
            file_stats = calculate_file_stats(tree)
            automations = generate_automations(metrics, metadata.language)
            refactors = generate_refactors(metrics, metadata.language)

            run.advance(AnalysisState.PROMPTING)
            context = self.prompt_builder.build_context(metadata, tree, file_stats, files, branch)
            prompt = self.prompt_builder.build_prompt(context, metrics, scores)
        except BaseException:
            run.advance(AnalysisState.ERROR)
            raise
        finally:
            await self.github.aclose()

        logger.info(
            "Prepared %s@%s: %d files, overall score %d",
            metadata.full_name,
            branch,
            file_stats.total_files,
            scores.overall,
        )
        return PreparedAnalysis(
            run=run,
            metadata=metadata,
            branch=branch,
            file_tree=tree,
            file_stats=file_stats,
            branches=branches,
            metrics=metrics,
            scores=scores,
            automations=automations,
            refactors=refactors,
            prompt=prompt,
        )

    async def stream(self, prepared: PreparedAnalysis) -> AsyncIterator[str]:
        """Yield one metadata frame, content frames, then a single terminal frame."""
        run = prepared.run
        run.advance(AnalysisState.GENERATING)
        yield encode_frame(METADATA, prepared.metadata_payload())

        chunks = self.llm_runner.stream(prepared.prompt, system=SYSTEM_PROMPT)
        failed = False
        try:
            async for chunk in chunks:
                yield encode_frame(CONTENT, chunk)
        except Exception:
            logger.exception("Generation failed for %s", prepared.metadata.full_name)
            failed = True
        finally:
            aclose = getattr(chunks, "aclose", None)
            if aclose is not None:
                await aclose()

        if failed:
            run.advance(AnalysisState.ERROR)
            yield encode_frame(ERROR, GENERIC_FAILURE)
            return
        run.advance(AnalysisState.DONE)
        yield encode_frame(DONE)

    async def run(self, request: AnalysisRequest) -> AsyncIterator[str]:
        """Prepare and stream in one go; upstream failures surface before any frame."""
        prepared = await self.prepare(request)
        async for frame in self.stream(prepared):
            yield frame


async def gather_fail_fast(*awaitables: Awaitable[Any]) -> Tuple[Any, ...]:
    """Await all concurrently; on the first failure cancel the rest and re-raise."""
    tasks = [asyncio.ensure_future(awaitable) for awaitable in awaitables]
    try:
        return tuple(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def public_error(exc: BaseException) -> Tuple[int, str]:
    """Map a failure to the status code and message shown to callers."""
    if isinstance(exc, AdmissionError):
        return exc.status_code, exc.message
    if isinstance(exc, UpstreamError):
        return exc.status_code, str(exc)
    return 500, GENERIC_FAILURE


def _as_length(value: str | int | None) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _describe_validation(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request body"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "body"
    return f"Invalid request body: {location}: {first.get('msg', 'invalid value')}"


__all__ = [
    "AdmissionError",
    "AnalysisOrchestrator",
    "AnalysisRequest",
    "AnalysisRequestBody",
    "AnalysisRun",
    "AnalysisState",
    "BODY_TOO_LARGE",
    "GENERIC_FAILURE",
    "MAX_BODY_SIZE",
    "PreparedAnalysis",
    "admit_request",
    "check_declared_length",
    "gather_fail_fast",
    "public_error",
]
