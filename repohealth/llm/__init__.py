"""Generative backend adapters."""

from .runner import LLMError, LLMRequest, StreamingLLMRunner

__all__ = ["LLMError", "LLMRequest", "StreamingLLMRunner"]
