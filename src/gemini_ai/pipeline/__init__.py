"""
Pipeline layer: body bytes → JSON frames → generation chunks.
"""

from gemini_ai.pipeline.base import Decoder, EventMapper
from gemini_ai.pipeline.decode import FrameDecoder, FramingMode
from gemini_ai.pipeline.event_map import (
    FrameKind,
    GeminiEventMapper,
    classify_frame,
    map_finish_reason,
)

__all__ = [
    "Decoder",
    "EventMapper",
    "FrameDecoder",
    "FrameKind",
    "FramingMode",
    "GeminiEventMapper",
    "classify_frame",
    "map_finish_reason",
]
