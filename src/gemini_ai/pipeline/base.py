"""
Base abstractions for the pipeline layer.

Bytes flow through a Decoder (bytes -> JSON frames) and then an
EventMapper (frames -> generation chunks).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from gemini_ai.errors import GenerationError
    from gemini_ai.types.response import GenerationChunk


class Decoder(ABC):
    """Abstract decoder that converts a byte stream to JSON frames."""

    @abstractmethod
    def feed(self, data: bytes) -> list[str]:
        """Accept the next byte slice.

        Args:
            data: Raw bytes, split at arbitrary boundaries

        Returns:
            Raw JSON text spans completed by this slice
        """
        ...

    @abstractmethod
    def flush(self) -> list[str]:
        """Signal end of input and return any final span."""
        ...

    @abstractmethod
    async def decode(
        self, byte_stream: AsyncIterator[bytes]
    ) -> AsyncIterator[dict[str, Any]]:
        """Decode a byte stream into JSON frames.

        Args:
            byte_stream: Async iterator of raw bytes

        Yields:
            Parsed JSON frames as dictionaries
        """
        ...


class EventMapper(ABC):
    """Abstract mapper that converts JSON frames to generation chunks."""

    @abstractmethod
    def map_frame(self, frame: dict[str, Any]) -> GenerationChunk | GenerationError:
        """Map one frame to a chunk or an error value."""
        ...

    @abstractmethod
    async def map_events(
        self, frames: AsyncIterator[dict[str, Any]]
    ) -> AsyncIterator[GenerationChunk | GenerationError]:
        """Map frames to chunks.

        Args:
            frames: Async iterator of JSON frames

        Yields:
            Chunks, followed by at most one terminal error
        """
        ...
