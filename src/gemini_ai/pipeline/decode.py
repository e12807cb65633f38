"""
Stream frame decoder.

Implements two framings over one incremental interface:
- JSON: newline-delimited JSON objects, or the elements of a top-level
  JSON array (``streamGenerateContent`` without ``alt=sse``)
- SSE: Server-Sent Events ``data:`` lines (``alt=sse``)

Frames are found by scanning bytes, so the result never depends on
where the transport happened to split the body.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import TYPE_CHECKING, Any

from gemini_ai.errors import DecodeFailure
from gemini_ai.pipeline.base import Decoder
from gemini_ai.telemetry import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = get_logger(__name__)

_OPEN_BRACE = ord("{")
_CLOSE_BRACE = ord("}")
_OPEN_BRACKET = ord("[")
_CLOSE_BRACKET = ord("]")
_QUOTE = ord('"')
_BACKSLASH = ord("\\")

# Bytes allowed between top-level values
_SEPARATORS = frozenset(b" \t\r\n,[]")

_DONE_SIGNAL = "[DONE]"


class FramingMode(str, Enum):
    """How frames are delimited in a response body."""

    JSON = "json"
    SSE = "sse"


class _JsonScanner:
    """Finds complete top-level JSON objects in a byte buffer.

    Tracks string, escape and nesting state across feeds. Only the bytes
    of the frame still being assembled are kept.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._pos = 0
        self._start = -1
        self._depth = 0
        self._in_string = False
        self._escape = False

    def feed(self, data: bytes) -> list[str]:
        buffer = self._buffer
        buffer.extend(data)
        spans: list[str] = []
        i = self._pos
        end = len(buffer)

        while i < end:
            byte = buffer[i]
            if self._start < 0:
                if byte == _OPEN_BRACE:
                    self._start = i
                    self._depth = 1
                elif byte not in _SEPARATORS:
                    fragment = bytes(buffer[i : i + 64]).decode("utf-8", errors="replace")
                    raise DecodeFailure(
                        f"Unexpected byte {chr(byte)!r} between JSON values",
                        fragment=fragment,
                    )
            elif self._in_string:
                if self._escape:
                    self._escape = False
                elif byte == _BACKSLASH:
                    self._escape = True
                elif byte == _QUOTE:
                    self._in_string = False
            elif byte == _QUOTE:
                self._in_string = True
            elif byte in (_OPEN_BRACE, _OPEN_BRACKET):
                self._depth += 1
            elif byte in (_CLOSE_BRACE, _CLOSE_BRACKET):
                self._depth -= 1
                if self._depth == 0:
                    spans.append(_decode_text(buffer[self._start : i + 1]))
                    self._start = -1
            i += 1

        if self._start < 0:
            buffer.clear()
            self._pos = 0
        else:
            del buffer[: self._start]
            self._pos = i - self._start
            self._start = 0
        return spans

    def flush(self) -> list[str]:
        if self._start >= 0:
            fragment = _decode_text(self._buffer, errors="replace")
            self._reset()
            raise DecodeFailure("Stream ended inside a JSON value", fragment=fragment)
        self._reset()
        return []

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def _reset(self) -> None:
        self._buffer = bytearray()
        self._pos = 0
        self._start = -1
        self._depth = 0
        self._in_string = False
        self._escape = False


class _SseScanner:
    """Collects ``data:`` lines of Server-Sent Events into frames."""

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._data: list[str] = []

    def feed(self, data: bytes) -> list[str]:
        buffer = self._buffer
        buffer.extend(data)
        spans: list[str] = []
        start = 0
        while (newline := buffer.find(b"\n", start)) >= 0:
            self._line(bytes(buffer[start:newline]), spans)
            start = newline + 1
        if start:
            del buffer[:start]
        return spans

    def flush(self) -> list[str]:
        spans: list[str] = []
        if self._buffer:
            line = bytes(self._buffer)
            self._buffer = bytearray()
            self._line(line, spans)
        self._dispatch(spans)
        return spans

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def _line(self, raw: bytes, spans: list[str]) -> None:
        if raw.endswith(b"\r"):
            raw = raw[:-1]
        line = _decode_text(raw)

        if not line or line == _DONE_SIGNAL:
            self._dispatch(spans)
            return
        if line.startswith(":"):
            return

        name, sep, value = line.partition(":")
        if not sep:
            value = ""
        elif value.startswith(" "):
            value = value[1:]

        if name != "data":
            # event:, id:, retry: and unknown fields carry nothing we use
            return
        if value == _DONE_SIGNAL:
            self._dispatch(spans)
            return
        self._data.append(value)

    def _dispatch(self, spans: list[str]) -> None:
        if self._data:
            text = "\n".join(self._data)
            self._data = []
            if text.strip():
                spans.append(text)


class FrameDecoder(Decoder):
    """Incremental decoder turning raw body bytes into JSON frames.

    One decoder serves one response body. ``feed`` returns raw text
    spans; ``decode`` wraps the whole byte stream and yields parsed
    frames.

    Example:
        >>> decoder = FrameDecoder(FramingMode.SSE)
        >>> decoder.feed(b'data: {"a": 1}\\n')
        []
        >>> decoder.feed(b"\\n")
        ['{"a": 1}']
    """

    def __init__(self, mode: FramingMode | str = FramingMode.JSON) -> None:
        """Initialize the decoder.

        Args:
            mode: Body framing
        """
        self._mode = FramingMode(mode)
        self._scanner: _JsonScanner | _SseScanner = (
            _SseScanner() if self._mode == FramingMode.SSE else _JsonScanner()
        )

    @property
    def mode(self) -> FramingMode:
        return self._mode

    @property
    def buffered_bytes(self) -> int:
        """Bytes held for a frame that has not completed yet."""
        return self._scanner.buffered

    def feed(self, data: bytes) -> list[str]:
        if not data:
            return []
        return self._scanner.feed(data)

    def flush(self) -> list[str]:
        return self._scanner.flush()

    def reset(self) -> None:
        """Drop all buffered state."""
        self._scanner = _SseScanner() if self._mode == FramingMode.SSE else _JsonScanner()

    @staticmethod
    def parse(span: str) -> dict[str, Any]:
        """Parse one raw span into a frame.

        Raises:
            DecodeFailure: If the span is not a well-formed JSON object
        """
        try:
            frame = json.loads(span)
        except json.JSONDecodeError as e:
            raise DecodeFailure(f"Malformed JSON frame: {e.msg}", fragment=span, cause=e) from e
        if not isinstance(frame, dict):
            raise DecodeFailure(
                f"Expected a JSON object frame, got {type(frame).__name__}",
                fragment=span,
            )
        return frame

    async def decode(
        self, byte_stream: AsyncIterator[bytes]
    ) -> AsyncIterator[dict[str, Any]]:
        """Decode a byte stream into JSON frames.

        Args:
            byte_stream: Async iterator of raw bytes

        Yields:
            Parsed JSON frames

        Raises:
            DecodeFailure: On a malformed frame or a truncated body
        """
        async for data in byte_stream:
            for span in self.feed(data):
                yield self.parse(span)

        for span in self.flush():
            yield self.parse(span)
        logger.debug("Frame stream finished", mode=self._mode.value)


def _decode_text(data: bytes | bytearray, errors: str = "strict") -> str:
    try:
        return bytes(data).decode("utf-8", errors=errors)
    except UnicodeDecodeError as e:
        raise DecodeFailure(
            "Frame is not valid UTF-8",
            fragment=bytes(data[:64]).decode("utf-8", errors="replace"),
            cause=e,
        ) from e
