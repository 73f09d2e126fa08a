from __future__ import annotations

import asyncio
import json
from typing import AsyncIterator, List

import httpx
import pytest

from repohealth.llm import LLMError, LLMRequest, StreamingLLMRunner
from repohealth.llm.runner import parse_stream_line


def _sse(*payloads: object) -> bytes:
    lines = [f"data: {json.dumps(payload)}\n\n" for payload in payloads]
    lines.append("data: [DONE]\n\n")
    return "".join(lines).encode("utf-8")


def _collect(iterator: AsyncIterator[str]) -> List[str]:
    async def drain() -> List[str]:
        return [chunk async for chunk in iterator]

    return asyncio.run(drain())


def test_parse_stream_line_variants() -> None:
    assert parse_stream_line('data: {"choices":[{"delta":{"content":"hi"}}]}') == "hi"
    assert parse_stream_line('data: {"choices":[{"text":"legacy"}]}') == "legacy"
    assert parse_stream_line("data: [DONE]") is None
    assert parse_stream_line(": keep-alive") is None
    assert parse_stream_line("data: not-json") is None
    assert parse_stream_line('data: {"choices":[]}') is None
    with pytest.raises(LLMError, match="overloaded"):
        parse_stream_line('data: {"error":{"message":"overloaded"}}')


def test_configuration_reads_environment(monkeypatch) -> None:
    assert StreamingLLMRunner().is_configured is False

    monkeypatch.setenv("OPENROUTER_API_KEY", "key")
    monkeypatch.setenv("REPOHEALTH_LLM_MODEL", "vendor/model")
    runner = StreamingLLMRunner()

    assert runner.is_configured is True
    assert runner.model == "vendor/model"
    assert runner.base_url == StreamingLLMRunner.DEFAULT_BASE_URL


def test_explicit_none_api_key_ignores_environment(monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "key")

    assert StreamingLLMRunner(api_key=None).is_configured is False


def test_custom_streamer_receives_request() -> None:
    seen: List[LLMRequest] = []

    async def streamer(request: LLMRequest) -> AsyncIterator[str]:
        seen.append(request)
        for chunk in ("a", "b"):
            yield chunk

    runner = StreamingLLMRunner("m", streamer=streamer, api_key=None)

    assert runner.is_configured is True
    assert _collect(runner.stream("prompt", system="sys")) == ["a", "b"]
    assert seen[0].prompt == "prompt"
    assert seen[0].system == "sys"
    assert seen[0].model == "m"


def test_http_streamer_posts_and_yields_deltas() -> None:
    captured: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        body = _sse(
            {"choices": [{"delta": {"role": "assistant"}}]},
            {"choices": [{"delta": {"content": "Hello"}}]},
            {"choices": [{"delta": {"content": ", world"}}]},
        )
        return httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})

    runner = StreamingLLMRunner(
        "m",
        base_url="https://llm.test/v1/",
        api_key="secret",
        max_tokens=None,
        transport=httpx.MockTransport(handler),
    )

    assert _collect(runner.stream("prompt", system="sys")) == ["Hello", ", world"]
    request = captured[0]
    assert str(request.url) == "https://llm.test/v1/chat/completions"
    assert request.headers["authorization"] == "Bearer secret"
    payload = json.loads(request.content)
    assert payload["stream"] is True
    assert payload["messages"][0] == {"role": "system", "content": "sys"}
    assert payload["messages"][1] == {"role": "user", "content": "prompt"}
    assert "max_tokens" not in payload


def test_http_streamer_raises_on_error_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="bad key")

    runner = StreamingLLMRunner(
        "m", api_key="secret", transport=httpx.MockTransport(handler)
    )

    with pytest.raises(LLMError, match="401"):
        _collect(runner.stream("prompt"))


def test_http_streamer_wraps_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    runner = StreamingLLMRunner(
        "m", api_key="secret", transport=httpx.MockTransport(handler)
    )

    with pytest.raises(LLMError, match="LLM request failed"):
        _collect(runner.stream("prompt"))


def test_http_streamer_requires_api_key() -> None:
    runner = StreamingLLMRunner("m", api_key=None)

    with pytest.raises(LLMError, match="No API key"):
        _collect(runner.stream("prompt"))
