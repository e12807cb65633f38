"""
Response stream: a pull-based sequence of generation chunks.

The stream owns one transport body and one FrameDecoder. Bytes are
pulled from the transport only when the consumer asks for the next
item and no decoded item is pending.
"""

from __future__ import annotations

import asyncio
from collections import deque
from functools import partial
from typing import TYPE_CHECKING, Any, TypeVar

from gemini_ai.client.response import CallStats
from gemini_ai.errors import GenerationError
from gemini_ai.pipeline.decode import FrameDecoder, FramingMode
from gemini_ai.pipeline.event_map import FrameKind, GeminiEventMapper, classify_frame
from gemini_ai.resilience.retry import RetryExecutor, RetryPolicy
from gemini_ai.telemetry import get_logger
from gemini_ai.types.content import Role
from gemini_ai.types.response import FinishReason, GenerationChunk

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Iterable

    from gemini_ai.client.cancel import CancelToken
    from gemini_ai.transport.base import TransportResponse

logger = get_logger(__name__)

StreamItem = GenerationChunk | GenerationError
T = TypeVar("T")


class ResponseStream:
    """Async iterator over the chunks of one streaming generate call.

    Items are ``GenerationChunk`` values, possibly followed by exactly one
    terminal ``GenerationError``. Failures before the first chunk go
    through the retry policy; once a chunk has been delivered the request
    is never restarted.

    Example:
        >>> async with model.stream_generate_content("Tell me a story") as stream:
        ...     async for item in stream:
        ...         if isinstance(item, GenerationError):
        ...             print("failed:", item.kind)
        ...             break
        ...         print(item.text, end="")
    """

    def __init__(
        self,
        open_fn: Callable[[], Awaitable[TransportResponse]],
        *,
        policy: RetryPolicy | None = None,
        framing: FramingMode = FramingMode.SSE,
        mapper: GeminiEventMapper | None = None,
        cancel_token: CancelToken | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
        stats: CallStats | None = None,
        on_complete: Callable[[list[GenerationChunk]], Any] | None = None,
    ) -> None:
        """Initialize the stream. No request is sent until the first pull.

        Args:
            open_fn: Sends the request and returns an unread response
            policy: Retry policy for the opening phase
            framing: Body framing
            mapper: Frame mapper
            cancel_token: External cancellation token
            sleep: Backoff sleep override
            stats: Stats object to fill in
            on_complete: Called with all delivered chunks after a clean finish
        """
        self._open_fn = open_fn
        self._executor = RetryExecutor(policy or RetryPolicy(), sleep=sleep)
        self._framing = framing
        self._mapper = mapper or GeminiEventMapper()
        self._cancel_token = cancel_token
        self.stats = stats or CallStats()
        self._on_complete = on_complete
        self._delivered: list[GenerationChunk] = []

        self._response: TransportResponse | None = None
        self._body: AsyncIterator[bytes] | None = None
        self._decoder: FrameDecoder | None = None
        self._pending: deque[StreamItem] = deque()
        self._eof = False
        self._started = False
        self._done = False
        self._closed = False
        self._saw_final = False

    @property
    def closed(self) -> bool:
        """True once the stream has ended or been closed."""
        return self._done

    def __aiter__(self) -> ResponseStream:
        return self

    async def __anext__(self) -> StreamItem:
        if self._done:
            raise StopAsyncIteration

        try:
            if self._cancel_token is not None and self._cancel_token.is_cancelled:
                return await self._finish(self._cancel_token.to_error())

            if not self._started:
                self._started = True
                self.stats.record_start()
                result = await self._executor.execute(
                    self._attempt, cancel_token=self._cancel_token
                )
                self.stats.attempts = result.attempts
                item: StreamItem | None = result.value if result.success else result.error
            else:
                item = await self._next_item()
        except BaseException:
            await self._release()
            self._done = True
            raise

        if self._closed:
            raise StopAsyncIteration
        return await self._deliver(item)

    async def _attempt(self) -> StreamItem | None:
        """One opening attempt: send, then read up to the first item.

        An error surfacing before any chunk is raised so the retry policy
        sees it.
        """
        await self._release()
        self._decoder = FrameDecoder(self._framing)
        self._eof = False
        self._response = await self._until_cancelled(self._open_fn)
        self._body = self._response.aiter_bytes()

        item = await self._next_item()
        if isinstance(item, GenerationError):
            raise item
        return item

    async def _next_item(self) -> StreamItem | None:
        """Next decoded item, or None at a clean end of body."""
        while True:
            if self._pending:
                return self._pending.popleft()
            if self._eof or self._decoder is None or self._body is None:
                return None
            body, decoder = self._body, self._decoder
            try:
                data = await self._until_cancelled(partial(_read, body))
                if data is None:
                    self._eof = True
                    spans = decoder.flush()
                else:
                    spans = decoder.feed(data)
                self._queue(spans)
            except GenerationError as e:
                if self._closed:
                    return None
                self._pending.append(e)
                self._eof = True

    async def _until_cancelled(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Await ``fn()`` unless the cancel token fires first.

        Raises:
            Cancelled: If the token fired before the awaited call finished
        """
        token = self._cancel_token
        if token is None:
            return await fn()
        if token.is_cancelled:
            raise token.to_error()

        work = asyncio.ensure_future(fn())
        waiter = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            pending = [t for t in (work, waiter) if not t.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        if work.done() and not work.cancelled():
            return work.result()
        raise token.to_error()

    def _queue(self, spans: Iterable[str]) -> None:
        for span in spans:
            frame = FrameDecoder.parse(span)
            if classify_frame(frame) == FrameKind.EMPTY:
                continue
            self._pending.append(self._mapper.map_frame(frame))

    async def _deliver(self, item: StreamItem | None) -> StreamItem:
        if item is None:
            if self._saw_final:
                await self._finish(None)
                raise StopAsyncIteration
            logger.debug("Stream closed without a finish reason")
            item = GenerationChunk(finish_reason=FinishReason.OTHER)

        if isinstance(item, GenerationError):
            logger.warning(
                "Stream failed",
                kind=item.kind.value,
                status_code=item.status_code,
                attempts=self.stats.attempts,
            )
            return await self._finish(item)

        self.stats.record_first_chunk()
        self.stats.record_usage(item.usage)
        if self._on_complete is not None:
            self._delivered.append(item)
        if item.is_final:
            self._saw_final = True
            await self._finish(item)
            if self._on_complete is not None:
                self._on_complete(self._delivered)
        return item

    async def _finish(self, item: StreamItem | None) -> Any:
        """Release the body, end the iteration and return the last item."""
        self._done = True
        await self._release()
        self.stats.record_end()
        logger.debug("Stream finished", **self.stats.to_dict())
        return item

    async def _release(self) -> None:
        body, self._body = self._body, None
        response, self._response = self._response, None
        self._decoder = None
        self._pending.clear()
        aclose = getattr(body, "aclose", None)
        if aclose is not None and not getattr(body, "ag_running", False):
            await aclose()
        if response is not None:
            await response.aclose()

    async def aclose(self) -> None:
        """Close the stream and its transport body. Later pulls end the iteration."""
        if self._closed:
            return
        self._closed = True
        self._done = True
        await self._release()

    async def cancel(self) -> None:
        await self.aclose()

    async def chunks(self) -> AsyncIterator[GenerationChunk]:
        """Iterate chunks only, raising the terminal error instead of yielding it.

        Raises:
            GenerationError: The stream's terminal error
        """
        async for item in self:
            if isinstance(item, GenerationError):
                raise item
            yield item

    async def collect(self) -> GenerationChunk:
        """Drain the stream into one aggregated chunk.

        Raises:
            GenerationError: The stream's terminal error
        """
        return aggregate_chunks([chunk async for chunk in self.chunks()])

    async def __aenter__(self) -> ResponseStream:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()


async def _read(body: AsyncIterator[bytes]) -> bytes | None:
    """Next piece of the body, or None at its end."""
    try:
        return await body.__anext__()
    except StopAsyncIteration:
        return None


def aggregate_chunks(chunks: Iterable[GenerationChunk]) -> GenerationChunk:
    """Merge streamed chunks into a single chunk.

    Parts are concatenated in order; finish reason, usage and model
    version come from the last chunk reporting them.
    """
    parts: list[Any] = []
    finish_reason = FinishReason.NONE_YET
    usage = None
    model_version = None
    safety_ratings: tuple[Any, ...] = ()
    for chunk in chunks:
        parts.extend(chunk.parts)
        if chunk.finish_reason != FinishReason.NONE_YET:
            finish_reason = chunk.finish_reason
        usage = chunk.usage or usage
        model_version = chunk.model_version or model_version
        safety_ratings = chunk.safety_ratings or safety_ratings
    return GenerationChunk(
        parts=tuple(parts),
        finish_reason=finish_reason,
        usage=usage,
        model_version=model_version,
        role=Role.MODEL,
        safety_ratings=safety_ratings,
    )
