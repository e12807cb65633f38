"""
Response models: generation chunks, usage counters and model info.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from gemini_ai.types.content import Content, FunctionCallPart, Part, Role, TextPart
from gemini_ai.types.safety import SafetyRating


class FinishReason(str, Enum):
    """Why a candidate stopped. NONE_YET marks a non-final chunk."""

    STOP = "stop"
    MAX_TOKENS = "max_tokens"
    SAFETY = "safety"
    OTHER = "other"
    NONE_YET = "none_yet"


class UsageMetadata(BaseModel):
    """Token counters. Only the final chunk of a stream is guaranteed complete."""

    model_config = ConfigDict(frozen=True)

    prompt_token_count: int | None = None
    candidates_token_count: int | None = None
    total_token_count: int | None = None
    cached_content_token_count: int | None = None


class GenerationChunk(BaseModel):
    """One decoded unit of a generation response.

    For non-streaming calls the whole response is a single chunk.

    Attributes:
        parts: Content parts in order
        finish_reason: Terminal reason, NONE_YET while more chunks follow
        usage: Token usage attached to this chunk, if any
        model_version: Model version reported by the service
    """

    model_config = ConfigDict(frozen=True)

    parts: tuple[Part, ...] = ()
    finish_reason: FinishReason = FinishReason.NONE_YET
    usage: UsageMetadata | None = None
    model_version: str | None = None
    role: Role | None = None
    safety_ratings: tuple[SafetyRating, ...] = ()

    @property
    def text(self) -> str:
        """Concatenated text of all text parts."""
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))

    @property
    def function_calls(self) -> list[FunctionCallPart]:
        return [p for p in self.parts if isinstance(p, FunctionCallPart)]

    @property
    def is_final(self) -> bool:
        return self.finish_reason != FinishReason.NONE_YET

    def to_content(self) -> Content:
        """Convert to a model turn for chat history."""
        return Content(role=self.role or Role.MODEL, parts=self.parts)


class ModelInfo(BaseModel):
    """Metadata describing a model available to the caller."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str
    version: str | None = None
    display_name: str | None = Field(default=None, alias="displayName")
    description: str | None = None
    input_token_limit: int | None = Field(default=None, alias="inputTokenLimit")
    output_token_limit: int | None = Field(default=None, alias="outputTokenLimit")
    supported_generation_methods: list[str] = Field(
        default_factory=list, alias="supportedGenerationMethods"
    )
    temperature: float | None = None
    max_temperature: float | None = Field(default=None, alias="maxTemperature")
    top_p: float | None = Field(default=None, alias="topP")
    top_k: int | None = Field(default=None, alias="topK")

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> ModelInfo:
        return cls.model_validate(data)
