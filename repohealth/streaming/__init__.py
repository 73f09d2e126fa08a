"""Event-stream framing, payload extraction and stream consumption."""

from .consumer import AnalysisConsumer, AnalysisStreamError
from .extract import Extraction, extract_json_object
from .frames import Frame, FrameDecoder, encode_frame

__all__ = [
    "AnalysisConsumer",
    "AnalysisStreamError",
    "Extraction",
    "Frame",
    "FrameDecoder",
    "encode_frame",
    "extract_json_object",
]
