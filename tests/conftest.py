"""Root pytest fixtures for gemini-ai-python tests."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

import pytest

from gemini_ai.transport.base import TransportResponse

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from gemini_ai.transport.base import TransportRequest


class RecordingSleep:
    """Stand-in for asyncio.sleep that records delays without waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class ScriptedTransport:
    """Transport replaying a fixed script, one step per request.

    Steps:
    - an exception: raised from ``send``
    - a dict or list: returned as a fully read JSON body
    - a tuple of bytes (or exceptions): returned as a streaming body
    """

    def __init__(self, *script: Any) -> None:
        self.script = list(script)
        self.requests: list[TransportRequest] = []
        self.responses: list[TransportResponse] = []
        self.closed = False

    async def send(self, request: TransportRequest) -> TransportResponse:
        self.requests.append(request)
        if not self.script:
            raise AssertionError(f"Unexpected request: {request.method} {request.path}")
        step = self.script.pop(0)
        if isinstance(step, BaseException):
            raise step
        if isinstance(step, tuple):
            response = TransportResponse(200, stream=self._body(step))
        else:
            response = TransportResponse(200, content=json.dumps(step).encode())
        self.responses.append(response)
        return response

    @staticmethod
    async def _body(pieces: tuple[Any, ...]) -> AsyncIterator[bytes]:
        for piece in pieces:
            if isinstance(piece, BaseException):
                raise piece
            yield piece

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Sleep replacement collecting backoff delays."""
    return RecordingSleep()


@pytest.fixture
def scripted_transport() -> type[ScriptedTransport]:
    """Factory for transports replaying a script of responses."""
    return ScriptedTransport


@pytest.fixture
def candidate_frame() -> Any:
    """Builder for ``GenerateContentResponse`` frames with one text candidate."""

    def build(
        text: str,
        finish_reason: str | None = None,
        usage: dict[str, int] | None = None,
    ) -> dict[str, Any]:
        candidate: dict[str, Any] = {"content": {"role": "model", "parts": [{"text": text}]}}
        if finish_reason is not None:
            candidate["finishReason"] = finish_reason
        frame: dict[str, Any] = {"candidates": [candidate]}
        if usage is not None:
            frame["usageMetadata"] = usage
        return frame

    return build


@pytest.fixture
def sse_body() -> Any:
    """Encode frames as an ``alt=sse`` response body."""

    def encode(*frames: dict[str, Any]) -> bytes:
        return b"".join(f"data: {json.dumps(f)}\r\n\r\n".encode() for f in frames)

    return encode
