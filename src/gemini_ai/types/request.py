"""
Request models for generateContent / streamGenerateContent / countTokens.

Python-side names are snake_case; ``to_payload`` produces the camelCase
wire JSON expected by the service.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from gemini_ai.types.content import Content, Role, TextPart
from gemini_ai.types.safety import SafetySetting


class GenerationConfig(BaseModel):
    """Sampling and output controls. Unset fields are omitted from the payload."""

    model_config = ConfigDict(frozen=True)

    candidate_count: int | None = None
    stop_sequences: list[str] | None = None
    max_output_tokens: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    response_mime_type: str | None = None
    response_schema: dict[str, Any] | None = None

    def to_wire(self) -> dict[str, Any]:
        names = {
            "candidate_count": "candidateCount",
            "stop_sequences": "stopSequences",
            "max_output_tokens": "maxOutputTokens",
            "temperature": "temperature",
            "top_p": "topP",
            "top_k": "topK",
            "response_mime_type": "responseMimeType",
            "response_schema": "responseSchema",
        }
        return {
            wire: value
            for attr, wire in names.items()
            if (value := getattr(self, attr)) is not None
        }


class FunctionDeclaration(BaseModel):
    """A function the model may call.

    ``parameters`` is an OpenAPI-subset schema object, passed through as-is.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str | None = None
    parameters: dict[str, Any] | None = None

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"name": self.name}
        if self.description:
            wire["description"] = self.description
        if self.parameters is not None:
            wire["parameters"] = self.parameters
        return wire


class Tool(BaseModel):
    """Tools offered to the model."""

    model_config = ConfigDict(frozen=True)

    function_declarations: list[FunctionDeclaration] = Field(default_factory=list)
    code_execution: bool = False
    google_search: bool = False

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {}
        if self.function_declarations:
            wire["functionDeclarations"] = [f.to_wire() for f in self.function_declarations]
        if self.code_execution:
            wire["codeExecution"] = {}
        if self.google_search:
            wire["googleSearch"] = {}
        return wire


class FunctionCallingMode(str, Enum):
    AUTO = "AUTO"
    ANY = "ANY"
    NONE = "NONE"


class ToolConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: FunctionCallingMode = FunctionCallingMode.AUTO
    allowed_function_names: list[str] | None = None

    def to_wire(self) -> dict[str, Any]:
        config: dict[str, Any] = {"mode": self.mode.value}
        if self.allowed_function_names:
            config["allowedFunctionNames"] = self.allowed_function_names
        return {"functionCallingConfig": config}


class GenerateContentRequest(BaseModel):
    """A complete generation request.

    Example:
        >>> request = GenerateContentRequest(
        ...     contents=[Content.user("Explain backoff")],
        ...     generation_config=GenerationConfig(temperature=0.2),
        ... )
        >>> request.to_payload()["generationConfig"]
        {'temperature': 0.2}
    """

    model_config = ConfigDict(frozen=True)

    contents: list[Content]
    system_instruction: Content | None = None
    generation_config: GenerationConfig | None = None
    safety_settings: list[SafetySetting] = Field(default_factory=list)
    tools: list[Tool] = Field(default_factory=list)
    tool_config: ToolConfig | None = None
    cached_content: str | None = None

    @classmethod
    def from_prompt(cls, prompt: str, **kwargs: Any) -> GenerateContentRequest:
        """Create a single-turn request from a text prompt."""
        return cls(contents=[Content(role=Role.USER, parts=(TextPart(text=prompt),))], **kwargs)

    def to_payload(self) -> dict[str, Any]:
        """Build the JSON body sent to the service."""
        payload: dict[str, Any] = {"contents": [c.to_wire() for c in self.contents]}
        if self.system_instruction is not None:
            payload["systemInstruction"] = self.system_instruction.to_wire()
        if self.generation_config is not None and (config := self.generation_config.to_wire()):
            payload["generationConfig"] = config
        if self.safety_settings:
            payload["safetySettings"] = [s.to_wire() for s in self.safety_settings]
        if self.tools:
            payload["tools"] = [t.to_wire() for t in self.tools]
        if self.tool_config is not None:
            payload["toolConfig"] = self.tool_config.to_wire()
        if self.cached_content:
            payload["cachedContent"] = self.cached_content
        return payload
