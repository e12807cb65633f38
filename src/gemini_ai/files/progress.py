"""
Upload progress tracking.

``ProgressTrackingBody`` is an async byte iterable handed to the
transport as a request body. It owns the read cursor of its source and
reports progress after each chunk is handed over.
"""

from __future__ import annotations

import asyncio
import inspect
import os
from dataclasses import dataclass
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any

from gemini_ai.errors import ValidationError
from gemini_ai.telemetry import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 256 * 1024
DEFAULT_CALLBACK_TIMEOUT = 5.0


@dataclass(frozen=True)
class UploadProgress:
    """Snapshot of an upload.

    Attributes:
        bytes_sent: Bytes handed to the transport so far
        total_bytes: Total size, when known
        done: True on the final report
    """

    bytes_sent: int
    total_bytes: int | None = None
    done: bool = False

    @property
    def fraction(self) -> float | None:
        """Completed fraction in [0, 1], or None without a known total."""
        if self.total_bytes is None:
            return None
        if self.total_bytes == 0:
            return 1.0 if self.done else 0.0
        return min(1.0, self.bytes_sent / self.total_bytes)


class ProgressTrackingBody:
    """Single-use async body that reports upload progress.

    Args:
        source: Raw bytes, a file path, or a binary file object
        total_bytes: Total size (derived from the source when possible)
        callback: Sync or async function receiving UploadProgress; its
            failures are logged and never abort the upload
        chunk_size: Bytes per chunk
        callback_timeout: Seconds an async callback may take per report;
            a slower report is abandoned so the upload keeps moving

    Example:
        >>> queue: asyncio.Queue[UploadProgress] = asyncio.Queue(maxsize=16)
        >>> body = ProgressTrackingBody("video.mp4", callback=queue.put_nowait)
    """

    def __init__(
        self,
        source: bytes | str | Path | IO[bytes],
        *,
        total_bytes: int | None = None,
        callback: Callable[[UploadProgress], Any] | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        callback_timeout: float = DEFAULT_CALLBACK_TIMEOUT,
    ) -> None:
        if chunk_size <= 0:
            raise ValidationError(
                "chunk_size must be positive", field="chunk_size", expected="> 0", actual=chunk_size
            )
        self._source = source
        self._callback = callback
        self._chunk_size = chunk_size
        self._callback_timeout = callback_timeout
        self._bytes_sent = 0
        self._consumed = False
        self._total_bytes = total_bytes if total_bytes is not None else self._detect_size(source)

    @staticmethod
    def _detect_size(source: bytes | str | Path | IO[bytes]) -> int | None:
        if isinstance(source, (bytes, bytearray, memoryview)):
            return len(source)
        if isinstance(source, (str, Path)):
            return Path(source).stat().st_size
        try:
            return os.fstat(source.fileno()).st_size - source.tell()
        except (AttributeError, OSError, ValueError):
            return None

    @property
    def bytes_sent(self) -> int:
        return self._bytes_sent

    @property
    def total_bytes(self) -> int | None:
        return self._total_bytes

    async def __aiter__(self) -> AsyncIterator[bytes]:
        if self._consumed:
            raise RuntimeError("ProgressTrackingBody can only be iterated once")
        self._consumed = True

        async for chunk in self._chunks():
            self._bytes_sent += len(chunk)
            yield chunk
            await self._report(UploadProgress(self._bytes_sent, self._total_bytes))

        await self._report(UploadProgress(self._bytes_sent, self._total_bytes, done=True))

    async def _chunks(self) -> AsyncIterator[bytes]:
        source = self._source
        size = self._chunk_size

        if isinstance(source, (bytes, bytearray, memoryview)):
            view = memoryview(source)
            for start in range(0, len(view), size):
                yield bytes(view[start : start + size])
            return

        if isinstance(source, (str, Path)):
            f = await asyncio.to_thread(open, source, "rb")
            try:
                while chunk := await asyncio.to_thread(f.read, size):
                    yield chunk
            finally:
                await asyncio.to_thread(f.close)
            return

        while chunk := await asyncio.to_thread(source.read, size):
            yield chunk

    async def _report(self, progress: UploadProgress) -> None:
        if self._callback is None:
            return
        try:
            result = self._callback(progress)
            if inspect.isawaitable(result):
                await asyncio.wait_for(result, timeout=self._callback_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Upload progress callback timed out",
                timeout=self._callback_timeout,
                bytes_sent=progress.bytes_sent,
            )
        except Exception as e:
            logger.warning(
                "Upload progress callback failed",
                error=f"{type(e).__name__}: {e}",
                bytes_sent=progress.bytes_sent,
            )
