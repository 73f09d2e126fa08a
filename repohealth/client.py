"""Consuming side of an analysis: cache lookup, stream decoding, cache write-back."""

from __future__ import annotations

import json
from typing import AsyncIterator, Callable, Dict, Optional, Protocol

import httpx

from .github import parse_repo_reference
from .logging import get_logger
from .models import AnalysisResult
from .orchestrator import AnalysisOrchestrator, admit_request
from .stores import ResultCache
from .streaming import AnalysisConsumer, AnalysisStreamError, Frame, FrameDecoder

logger = get_logger("client")


class AnalysisRequestError(RuntimeError):
    """The analysis endpoint refused the request before streaming."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


class FrameSource(Protocol):
    def open(self, payload: Dict[str, object]) -> AsyncIterator[bytes | str]:
        ...


class InProcessSource:
    """Runs the orchestrator in the current event loop."""

    def __init__(self, orchestrator: AnalysisOrchestrator) -> None:
        self.orchestrator = orchestrator

    async def open(self, payload: Dict[str, object]) -> AsyncIterator[bytes | str]:
        request = admit_request(json.dumps(payload))
        async for frame in self.orchestrator.run(request):
            yield frame


class HTTPSource:
    """Posts to a running service and relays the raw event stream."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 180.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def open(self, payload: Dict[str, object]) -> AsyncIterator[bytes | str]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            async with client.stream(
                "POST", f"{self.base_url}/api/analyze", json=payload
            ) as response:
                if response.status_code != 200:
                    await response.aread()
                    raise AnalysisRequestError(response.status_code, _error_message(response))
                async for chunk in response.aiter_bytes():
                    yield chunk


class AnalysisClient:
    """Returns cached results when fresh, otherwise streams a new analysis."""

    def __init__(self, source: FrameSource, cache: ResultCache | None = None) -> None:
        self.source = source
        self.cache = cache

    async def analyze(
        self,
        url: str,
        branch: Optional[str] = None,
        *,
        force_refresh: bool = False,
        on_frame: Callable[[Frame], None] | None = None,
    ) -> AnalysisResult:
        reference = parse_repo_reference(url)
        branch = branch or reference.branch

        if self.cache is not None and not force_refresh:
            cached = self.cache.get(reference.full_name, branch)
            if cached is not None:
                logger.info("Serving %s from cache", reference.full_name)
                return cached

        payload: Dict[str, object] = {"url": url, "force_refresh": force_refresh}
        if branch:
            payload["branch"] = branch

        decoder = FrameDecoder()
        consumer = AnalysisConsumer()
        async for chunk in self.source.open(payload):
            for frame in decoder.feed(chunk):
                consumer.feed(frame)
                if on_frame is not None:
                    on_frame(frame)
        for frame in decoder.flush():
            consumer.feed(frame)
            if on_frame is not None:
                on_frame(frame)

        result = consumer.result
        if result is None:
            raise AnalysisStreamError("Stream ended without a terminal frame")
        if self.cache is not None and consumer.cacheable:
            self.cache.set(reference.full_name, result, branch)
        return result


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        return payload["error"]
    return f"HTTP {response.status_code}"


__all__ = [
    "AnalysisClient",
    "AnalysisRequestError",
    "FrameSource",
    "HTTPSource",
    "InProcessSource",
]
