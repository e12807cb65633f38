"""
Type definitions for gemini-ai-python.

Request shapes, content parts, safety settings and response chunks.
"""

from gemini_ai.types.content import (
    Content,
    FileDataPart,
    FunctionCallPart,
    FunctionResponsePart,
    InlineDataPart,
    OtherPart,
    Part,
    Role,
    TextPart,
)
from gemini_ai.types.request import (
    FunctionCallingMode,
    FunctionDeclaration,
    GenerateContentRequest,
    GenerationConfig,
    Tool,
    ToolConfig,
)
from gemini_ai.types.response import (
    FinishReason,
    GenerationChunk,
    ModelInfo,
    UsageMetadata,
)
from gemini_ai.types.safety import (
    HarmBlockThreshold,
    HarmCategory,
    SafetyRating,
    SafetySetting,
)

__all__ = [
    # Content
    "Content",
    "FileDataPart",
    "FunctionCallPart",
    "FunctionResponsePart",
    "InlineDataPart",
    "OtherPart",
    "Part",
    "Role",
    "TextPart",
    # Request
    "FunctionCallingMode",
    "FunctionDeclaration",
    "GenerateContentRequest",
    "GenerationConfig",
    "Tool",
    "ToolConfig",
    # Response
    "FinishReason",
    "GenerationChunk",
    "ModelInfo",
    "UsageMetadata",
    # Safety
    "HarmBlockThreshold",
    "HarmCategory",
    "SafetyRating",
    "SafetySetting",
]
