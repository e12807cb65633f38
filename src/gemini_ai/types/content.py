"""
Content and part models shared by requests and responses.

Provides Pythonic constructors for:
- Text parts
- Inline binary data (images, audio, PDFs)
- References to uploaded files
- Function calls and function responses
"""

from __future__ import annotations

import base64
import mimetypes
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Author of a content turn."""

    USER = "user"
    MODEL = "model"


class TextPart(BaseModel):
    """Plain text."""

    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str

    def to_wire(self) -> dict[str, Any]:
        return {"text": self.text}


class InlineDataPart(BaseModel):
    """Raw bytes with a MIME type, sent base64 encoded."""

    model_config = ConfigDict(frozen=True)

    type: Literal["inline_data"] = "inline_data"
    mime_type: str
    data: bytes

    @classmethod
    def from_path(cls, path: str | Path, mime_type: str | None = None) -> InlineDataPart:
        """Read a local file into an inline data part.

        Args:
            path: File to read
            mime_type: Explicit MIME type (guessed from the suffix otherwise)
        """
        path = Path(path)
        guessed = mime_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return cls(mime_type=guessed, data=path.read_bytes())

    def to_wire(self) -> dict[str, Any]:
        return {
            "inlineData": {
                "mimeType": self.mime_type,
                "data": base64.b64encode(self.data).decode("ascii"),
            }
        }


class FileDataPart(BaseModel):
    """Reference to a file uploaded through the Files API."""

    model_config = ConfigDict(frozen=True)

    type: Literal["file_data"] = "file_data"
    mime_type: str
    file_uri: str

    def to_wire(self) -> dict[str, Any]:
        return {"fileData": {"mimeType": self.mime_type, "fileUri": self.file_uri}}


class FunctionCallPart(BaseModel):
    """A function invocation requested by the model."""

    model_config = ConfigDict(frozen=True)

    type: Literal["function_call"] = "function_call"
    name: str
    args: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        return {"functionCall": {"name": self.name, "args": self.args}}


class FunctionResponsePart(BaseModel):
    """The caller's result for a previous function call."""

    model_config = ConfigDict(frozen=True)

    type: Literal["function_response"] = "function_response"
    name: str
    response: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        return {"functionResponse": {"name": self.name, "response": self.response}}


class OtherPart(BaseModel):
    """A part kind this client does not model (executable code, thoughts, ...).

    Kept verbatim so no model output is silently dropped.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["other"] = "other"
    raw: dict[str, Any]

    def to_wire(self) -> dict[str, Any]:
        return dict(self.raw)


Part = Annotated[
    Union[
        TextPart,
        InlineDataPart,
        FileDataPart,
        FunctionCallPart,
        FunctionResponsePart,
        OtherPart,
    ],
    Field(discriminator="type"),
]


class Content(BaseModel):
    """One turn of a conversation."""

    model_config = ConfigDict(frozen=True)

    role: Role | None = None
    parts: tuple[Part, ...] = ()

    @classmethod
    def user(cls, *items: str | Part) -> Content:
        """Create a user turn from strings and/or parts."""
        return cls(role=Role.USER, parts=tuple(_as_part(i) for i in items))

    @classmethod
    def model(cls, *items: str | Part) -> Content:
        """Create a model turn from strings and/or parts."""
        return cls(role=Role.MODEL, parts=tuple(_as_part(i) for i in items))

    @classmethod
    def text(cls, text: str, role: Role | None = None) -> Content:
        return cls(role=role, parts=(TextPart(text=text),))

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"parts": [p.to_wire() for p in self.parts]}
        if self.role is not None:
            wire["role"] = self.role.value
        return wire


def _as_part(item: str | Part) -> Part:
    if isinstance(item, str):
        return TextPart(text=item)
    return item
