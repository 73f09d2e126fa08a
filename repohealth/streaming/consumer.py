"""Folds a frame stream back into a complete `AnalysisResult`."""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Optional

from ..diagrams import process_diagrams
from ..logging import get_logger
from ..models import AnalysisResult, GeneratedNarrative
from .extract import extract_json_object
from .frames import CONTENT, DONE, ERROR, METADATA, Frame

PARSE_FAILURE_SUMMARY = "Analysis completed with parsing issues."

logger = get_logger("streaming.consumer")


class AnalysisStreamError(RuntimeError):
    """Raised when the stream cannot yield any result at all."""


class AnalysisConsumer:
    """Accumulates frames for one analysis.

    The ``metadata`` frame supplies the deterministic floor; ``content``
    frames are concatenated; ``done`` decodes the narrative and merges it.
    Deterministic fields are never taken from the narrative.
    """

    def __init__(self) -> None:
        self._deterministic: Optional[AnalysisResult] = None
        self._chunks: List[str] = []
        self._result: Optional[AnalysisResult] = None

    @property
    def finished(self) -> bool:
        return self._result is not None

    @property
    def result(self) -> Optional[AnalysisResult]:
        return self._result

    @property
    def cacheable(self) -> bool:
        """Results flagged with a stream error are shown but not cached."""
        return self._result is not None and self._result.error is None

    @property
    def raw_text(self) -> str:
        return "".join(self._chunks)

    def feed(self, frame: Frame) -> Optional[AnalysisResult]:
        if self._result is not None:
            logger.debug("Ignoring %s frame after terminal frame", frame.type)
            return self._result

        if frame.type == METADATA:
            deterministic = AnalysisResult.from_dict(frame.data)
            if deterministic is None:
                raise AnalysisStreamError("Received malformed metadata frame")
            self._deterministic = deterministic
        elif frame.type == CONTENT:
            if isinstance(frame.data, str):
                self._chunks.append(frame.data)
        elif frame.type == ERROR:
            message = frame.data if isinstance(frame.data, str) else "Analysis failed."
            if self._deterministic is None:
                raise AnalysisStreamError(message)
            logger.warning("Stream ended with error: %s", message)
            self._result = replace(
                self._deterministic,
                diagrams=process_diagrams(None, None, None).as_dict(),
                error=message,
            )
        elif frame.type == DONE:
            if self._deterministic is None:
                raise AnalysisStreamError("Stream finished before metadata was received")
            self._result = self._merge(self._deterministic)
        return self._result

    def feed_all(self, frames: Iterable[Frame]) -> Optional[AnalysisResult]:
        for frame in frames:
            self.feed(frame)
        return self._result

    def _merge(self, deterministic: AnalysisResult) -> AnalysisResult:
        extraction = extract_json_object(self.raw_text)
        if extraction.found:
            narrative = GeneratedNarrative.from_payload(extraction.data)
            parse_failed = False
        else:
            logger.warning(
                "Could not decode narrative from %d characters of output", len(self.raw_text)
            )
            narrative = GeneratedNarrative(summary=PARSE_FAILURE_SUMMARY)
            parse_failed = True
        diagrams = process_diagrams(
            narrative.diagrams, narrative.architecture, narrative.data_flow
        )
        return replace(
            deterministic,
            narrative=narrative,
            diagrams=diagrams.as_dict(),
            parse_failed=parse_failed,
            error=None,
        )


__all__ = ["AnalysisConsumer", "AnalysisStreamError", "PARSE_FAILURE_SUMMARY"]
