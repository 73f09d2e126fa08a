"""Encoding and incremental decoding of the newline-delimited event stream."""

from __future__ import annotations

import codecs
import json
from dataclasses import dataclass
from typing import Any, List

from ..logging import get_logger

FRAME_PREFIX = "data: "
FRAME_SEPARATOR = "\n\n"

METADATA = "metadata"
CONTENT = "content"
ERROR = "error"
DONE = "done"
FRAME_TYPES = (METADATA, CONTENT, ERROR, DONE)

logger = get_logger("streaming.frames")


@dataclass(frozen=True)
class Frame:
    type: str
    data: Any = None

    @property
    def is_terminal(self) -> bool:
        return self.type in (ERROR, DONE)


def encode_frame(frame_type: str, data: Any = None) -> str:
    """Serialise one frame as ``data: <json>`` followed by a blank line."""
    if frame_type not in FRAME_TYPES:
        raise ValueError(f"Unknown frame type: {frame_type}")
    payload = json.dumps({"type": frame_type, "data": data}, ensure_ascii=False)
    return f"{FRAME_PREFIX}{payload}{FRAME_SEPARATOR}"


class FrameDecoder:
    """Buffers partial records across reads and yields complete frames.

    Accepts ``bytes`` (decoded incrementally as UTF-8) or ``str`` chunks.
    Records without the ``data: `` prefix and records whose payload is not a
    JSON object with a known ``type`` are skipped.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: bytes | str) -> List[Frame]:
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._buffer += chunk
        records = self._buffer.split(FRAME_SEPARATOR)
        self._buffer = records.pop()
        return self._parse_records(records)

    def flush(self) -> List[Frame]:
        """Parse whatever remains once the stream has ended."""
        tail = self._decoder.decode(b"", final=True)
        remaining = (self._buffer + tail).strip("\n")
        self._buffer = ""
        return self._parse_records([remaining]) if remaining else []

    def _parse_records(self, records: List[str]) -> List[Frame]:
        frames: List[Frame] = []
        for record in records:
            record = record.strip("\n")
            if not record.startswith(FRAME_PREFIX):
                continue
            try:
                payload = json.loads(record[len(FRAME_PREFIX):])
            except json.JSONDecodeError:
                logger.warning("Skipping malformed frame: %.80s", record)
                continue
            if not isinstance(payload, dict) or payload.get("type") not in FRAME_TYPES:
                logger.warning("Skipping frame with unknown type: %.80s", record)
                continue
            frames.append(Frame(type=payload["type"], data=payload.get("data")))
        return frames


__all__ = [
    "CONTENT",
    "DONE",
    "ERROR",
    "FRAME_TYPES",
    "Frame",
    "FrameDecoder",
    "METADATA",
    "encode_frame",
]
