"""Best-effort extraction of a JSON object embedded in free text."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(frozen=True)
class Extraction:
    """Outcome of an extraction; `found` is False for the empty sentinel."""

    found: bool
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "Extraction":
        return _EMPTY


_EMPTY = Extraction(found=False)


def extract_json_object(text: object) -> Extraction:
    """Return the first balanced ``{...}`` span in `text` that parses as an object.

    Braces inside JSON strings are ignored. Unbalanced openings and spans that
    balance but fail to parse are skipped and scanning resumes at the next
    opening brace. Never raises; returns `Extraction.empty()` when nothing
    usable is found.
    """
    if not isinstance(text, str):
        return Extraction.empty()

    start = text.find("{")
    while start != -1:
        end = _matching_brace(text, start)
        if end == -1:
            start = text.find("{", start + 1)
            continue
        try:
            parsed = json.loads(text[start : end + 1])
        except (json.JSONDecodeError, RecursionError):
            parsed = None
        if isinstance(parsed, dict):
            return Extraction(found=True, data=parsed)
        start = text.find("{", start + 1)
    return Extraction.empty()


def _matching_brace(text: str, start: int) -> int:
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return -1


__all__ = ["Extraction", "extract_json_object"]
