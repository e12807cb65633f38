"""
Transport abstractions.

The rest of the library talks to the service only through the
``Transport`` protocol, so tests and alternative HTTP stacks can stand
in for the httpx implementation.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx

from gemini_ai.errors import DecodeFailure

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable


@dataclass
class TransportRequest:
    """One HTTP exchange to perform.

    Attributes:
        method: HTTP method
        path: Path relative to the base URL, or an absolute URL
        json: JSON body
        params: Query parameters
        headers: Extra headers
        content: Raw body, bytes or an async byte iterable
        stream: Return without reading the body
    """

    method: str
    path: str
    json: Any = None
    params: dict[str, Any] | None = None
    headers: dict[str, str] | None = None
    content: bytes | AsyncIterable[bytes] | None = None
    stream: bool = False


class TransportResponse:
    """A response whose body is either fully read or still streaming.

    The body can be consumed once, through ``aiter_bytes`` or ``aread``.
    ``aclose`` releases the underlying connection and is idempotent.
    """

    def __init__(
        self,
        status_code: int,
        headers: dict[str, str] | httpx.Headers | None = None,
        *,
        content: bytes | None = None,
        stream: AsyncIterator[bytes] | None = None,
        on_close: Callable[[], Awaitable[Any]] | None = None,
    ) -> None:
        """Initialize the response.

        Args:
            status_code: HTTP status code
            headers: Response headers
            content: Fully read body
            stream: Unread body
            on_close: Coroutine function releasing the connection
        """
        self.status_code = status_code
        self.headers = httpx.Headers(headers or {})
        self._content = content
        self._stream = stream
        self._on_close = on_close
        self._closed = False
        self._consumed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def content(self) -> bytes:
        if self._content is None:
            raise RuntimeError("Response body has not been read")
        return self._content

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        """Iterate over the body as it arrives."""
        if self._consumed:
            raise RuntimeError("Response body was already consumed")
        self._consumed = True
        if self._content is not None:
            if self._content:
                yield self._content
            return
        if self._stream is None:
            return
        async for chunk in self._stream:
            if self._closed:
                break
            yield chunk

    async def aread(self) -> bytes:
        """Read the whole body and close the response."""
        if self._content is None:
            self._content = b"".join([chunk async for chunk in self.aiter_bytes()])
            await self.aclose()
        return self._content

    def json(self) -> Any:
        """Parse the read body as JSON.

        Raises:
            DecodeFailure: If the body is not valid JSON
        """
        text = self.content.decode("utf-8", errors="replace")
        if not text.strip():
            return {}
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise DecodeFailure(f"Response is not valid JSON: {e.msg}", fragment=text, cause=e) from e

    async def aclose(self) -> None:
        """Release the connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        stream, self._stream = self._stream, None
        # A generator suspended in another task's read is ended by on_close
        aclose = getattr(stream, "aclose", None)
        if aclose is not None and not getattr(stream, "ag_running", False):
            await aclose()
        if self._on_close is not None:
            await self._on_close()

    async def __aenter__(self) -> TransportResponse:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()


@runtime_checkable
class Transport(Protocol):
    """Sends requests to the service.

    Implementations raise ``TransportFailure`` for connection-level
    problems and the classified ``GenerationError`` for HTTP statuses
    of 400 and above.
    """

    async def send(self, request: TransportRequest) -> TransportResponse: ...

    async def aclose(self) -> None: ...
