"""Streaming client for OpenAI-compatible chat-completions backends."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Optional, Sequence

import httpx

from ..logging import get_logger

_AUTO_API_KEY = object()
_STREAM_DONE = "[DONE]"

logger = get_logger("llm.runner")


class LLMError(RuntimeError):
    """Raised when the generative backend rejects or aborts a request."""


@dataclass
class LLMRequest:
    """A single streamed completion request."""

    prompt: str
    system: Optional[str]
    model: str
    temperature: Optional[float]
    max_tokens: Optional[int]
    base_url: str
    api_key: Optional[str]
    request_timeout: Optional[float]


Streamer = Callable[[LLMRequest], AsyncIterator[str]]


class StreamingLLMRunner:
    """Streams text deltas from the configured backend.

    A custom `streamer` replaces the HTTP transport entirely; tests and
    offline runs use it to feed canned output.
    """

    DEFAULT_MODEL = "google/gemini-2.0-flash-001"
    DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
    ENV_MODEL_KEYS = ("REPOHEALTH_LLM_MODEL", "OPENROUTER_MODEL")
    ENV_BASE_URL_KEYS = ("REPOHEALTH_LLM_BASE_URL", "OPENAI_BASE_URL")
    ENV_API_KEY_KEYS = (
        "REPOHEALTH_LLM_API_KEY",
        "OPENROUTER_API_KEY",
        "OPENAI_API_KEY",
    )

    def __init__(
        self,
        model: str | None = None,
        *,
        base_url: str | None = None,
        api_key: str | None | object = _AUTO_API_KEY,
        temperature: Optional[float] = 0.4,
        max_tokens: Optional[int] = 3000,
        request_timeout: Optional[float] = 120.0,
        streamer: Streamer | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.model = model or _first_env_value(self.ENV_MODEL_KEYS) or self.DEFAULT_MODEL
        self.base_url = (
            base_url or _first_env_value(self.ENV_BASE_URL_KEYS) or self.DEFAULT_BASE_URL
        ).rstrip("/")
        self.api_key = (
            _first_env_value(self.ENV_API_KEY_KEYS) if api_key is _AUTO_API_KEY else api_key
        )
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.request_timeout = request_timeout
        self._transport = transport
        self._custom_streamer = streamer is not None
        self._streamer: Streamer = streamer or self._http_streamer

    @property
    def is_configured(self) -> bool:
        return self._custom_streamer or bool(self.api_key)

    def stream(self, prompt: str, *, system: str | None = None) -> AsyncIterator[str]:
        """Return an async iterator of text deltas for `prompt`."""
        request = LLMRequest(
            prompt=prompt,
            system=system,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            base_url=self.base_url,
            api_key=self.api_key,
            request_timeout=self.request_timeout,
        )
        return self._streamer(request)

    async def _http_streamer(self, request: LLMRequest) -> AsyncIterator[str]:
        if not request.api_key:
            raise LLMError("No API key configured for the generative backend.")
        payload: dict[str, object] = {
            "model": request.model,
            "messages": _build_messages(request.system, request.prompt),
            "stream": True,
        }
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.max_tokens is not None:
            payload["max_tokens"] = request.max_tokens
        headers = {
            "Authorization": f"Bearer {request.api_key}",
            "Accept": "text/event-stream",
        }

        try:
            async with httpx.AsyncClient(
                timeout=request.request_timeout, transport=self._transport
            ) as client:
                async with client.stream(
                    "POST",
                    f"{request.base_url}/chat/completions",
                    json=payload,
                    headers=headers,
                ) as response:
                    if response.status_code >= 400:
                        detail = (await response.aread()).decode("utf-8", errors="ignore")
                        raise LLMError(
                            f"LLM request failed with status {response.status_code}: "
                            f"{detail.strip() or response.reason_phrase}"
                        )
                    async for line in response.aiter_lines():
                        if _is_done(line):
                            break
                        delta = parse_stream_line(line)
                        if delta:
                            yield delta
        except httpx.HTTPError as exc:
            raise LLMError(f"LLM request failed: {exc}") from exc


def parse_stream_line(line: str) -> Optional[str]:
    """Extract the text delta from one server-sent ``data:`` line."""
    line = line.strip()
    if not line.startswith("data:"):
        return None
    data = line[len("data:"):].strip()
    if not data or data == _STREAM_DONE:
        return None
    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        logger.debug("Skipping undecodable stream line: %.80s", data)
        return None
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise LLMError(f"LLM stream reported an error: {message}")
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta")
    if isinstance(delta, dict) and isinstance(delta.get("content"), str):
        return delta["content"]
    text = choices[0].get("text")
    return text if isinstance(text, str) else None


def _is_done(line: str) -> bool:
    line = line.strip()
    return line.startswith("data:") and line[len("data:"):].strip() == _STREAM_DONE


def _build_messages(system: str | None, prompt: str) -> list[dict[str, str]]:
    messages: list[dict[str, str]] = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})
    return messages


def _first_env_value(keys: Sequence[str]) -> str | None:
    for key in keys:
        value = os.getenv(key)
        if value:
            return value
    return None


__all__ = ["LLMError", "LLMRequest", "StreamingLLMRunner", "parse_stream_line"]
