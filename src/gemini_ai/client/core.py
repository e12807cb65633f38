"""核心客户端实现：Gemini 生成模型的统一调用入口。

Core GenerativeModel implementation.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from gemini_ai.cache.manager import CachedContentManager, CacheHandle
from gemini_ai.client.response import CallStats
from gemini_ai.client.stream import ResponseStream
from gemini_ai.config import ClientConfig
from gemini_ai.errors import DecodeFailure, ValidationError
from gemini_ai.files.manager import FileManager
from gemini_ai.pipeline.decode import FramingMode
from gemini_ai.pipeline.event_map import GeminiEventMapper
from gemini_ai.resilience.retry import RetryExecutor, RetryPolicy
from gemini_ai.telemetry import get_logger, log_context
from gemini_ai.transport.base import TransportRequest
from gemini_ai.transport.http import HttpTransport
from gemini_ai.types.content import Content, Role, TextPart
from gemini_ai.types.request import GenerateContentRequest
from gemini_ai.types.response import ModelInfo

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from gemini_ai.client.builder import GenerativeModelBuilder
    from gemini_ai.client.cancel import CancelToken
    from gemini_ai.client.chat import ChatSession
    from gemini_ai.transport.base import Transport, TransportResponse
    from gemini_ai.types.request import GenerationConfig, Tool, ToolConfig
    from gemini_ai.types.response import GenerationChunk
    from gemini_ai.types.safety import SafetySetting

logger = get_logger(__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-004"


def model_resource_name(model: str) -> str:
    """``gemini-1.5-flash`` → ``models/gemini-1.5-flash``; qualified names pass through."""
    if not model or not model.strip():
        raise ValidationError("Model name must not be empty", field="model")
    model = model.strip()
    return model if "/" in model else f"models/{model}"


class GenerativeModel:
    """Client for one Gemini model.

    Example:
        >>> model = GenerativeModel("gemini-1.5-flash")
        >>> chunk = await model.generate_content("Write a haiku about retries")
        >>> print(chunk.text)

        >>> # Streaming
        >>> async with model.stream_generate_content("Tell me a story") as stream:
        ...     async for chunk in stream.chunks():
        ...         print(chunk.text, end="")
    """

    def __init__(
        self,
        model: str | None = None,
        transport: Transport | None = None,
        *,
        config: ClientConfig | None = None,
        policy: RetryPolicy | None = None,
        generation_config: GenerationConfig | None = None,
        safety_settings: list[SafetySetting] | None = None,
        system_instruction: Content | str | None = None,
        tools: list[Tool] | None = None,
        tool_config: ToolConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        """Initialize the model client.

        Args:
            model: Model name (``config.model`` if None)
            transport: Transport (an HttpTransport over ``config`` if None)
            config: Client configuration (read from the environment if None)
            policy: Retry policy (``config.retry`` if None)
            generation_config: Default generation config
            safety_settings: Default safety settings
            system_instruction: Default system instruction
            tools: Default tools
            tool_config: Default tool config
            sleep: Backoff sleep override
        """
        if config is None:
            if isinstance(transport, HttpTransport):
                config = transport.config
            else:
                config = ClientConfig.from_env()
        self._config = config
        self._transport: Transport = transport or HttpTransport(config)
        self._owns_transport = transport is None
        self._model = model_resource_name(model or config.model)
        self._policy = policy or config.retry
        self._sleep = sleep
        self._mapper = GeminiEventMapper()

        if isinstance(system_instruction, str):
            system_instruction = Content.text(system_instruction)
        self._generation_config = generation_config
        self._safety_settings = list(safety_settings or [])
        self._system_instruction = system_instruction
        self._tools = list(tools or [])
        self._tool_config = tool_config
        self._last_stats: CallStats | None = None

    @classmethod
    def from_config(cls, config: ClientConfig, **kwargs: Any) -> GenerativeModel:
        """Create a model client from a config."""
        return cls(kwargs.pop("model", None), config=config, **kwargs)

    @classmethod
    def builder(cls) -> GenerativeModelBuilder:
        """Create a builder for fluent configuration."""
        from gemini_ai.client.builder import GenerativeModelBuilder

        return GenerativeModelBuilder()

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def last_stats(self) -> CallStats | None:
        """Stats of the last completed non-streaming call."""
        return self._last_stats

    @property
    def caches(self) -> CachedContentManager:
        """Cached-content manager sharing this model's transport."""
        return CachedContentManager(
            self._transport,
            policy=self._policy,
            api_version=self._config.api_version,
            sleep=self._sleep,
        )

    @property
    def files(self) -> FileManager:
        """File manager sharing this model's transport."""
        return FileManager(
            self._transport,
            policy=self._policy,
            api_version=self._config.api_version,
            sleep=self._sleep,
        )

    def build_request(
        self,
        request: GenerateContentRequest | Content | str | Sequence[Content],
        *,
        cached_content: CacheHandle | str | None = None,
    ) -> GenerateContentRequest:
        """Normalize input into a request and apply the model defaults.

        Raises:
            ValidationError: On empty input or an expired cache handle
        """
        if isinstance(request, GenerateContentRequest):
            base = request
        elif isinstance(request, str):
            if not request:
                raise ValidationError("Prompt must not be empty", field="contents")
            base = GenerateContentRequest(
                contents=[Content(role=Role.USER, parts=(TextPart(text=request),))]
            )
        elif isinstance(request, Content):
            base = GenerateContentRequest(contents=[request])
        elif isinstance(request, Sequence):
            base = GenerateContentRequest(contents=list(request))
        else:
            raise ValidationError(
                "Unsupported request type", field="contents", actual=type(request).__name__
            )
        if not base.contents:
            raise ValidationError("Request contents must not be empty", field="contents")

        updates: dict[str, Any] = {}
        if base.generation_config is None and self._generation_config is not None:
            updates["generation_config"] = self._generation_config
        if not base.safety_settings and self._safety_settings:
            updates["safety_settings"] = self._safety_settings
        if base.system_instruction is None and self._system_instruction is not None:
            updates["system_instruction"] = self._system_instruction
        if not base.tools and self._tools:
            updates["tools"] = self._tools
        if base.tool_config is None and self._tool_config is not None:
            updates["tool_config"] = self._tool_config
        if cached_content is not None:
            updates["cached_content"] = self._cache_reference(cached_content)
        return base.model_copy(update=updates) if updates else base

    @staticmethod
    def _cache_reference(cached_content: CacheHandle | str) -> str:
        if isinstance(cached_content, CacheHandle):
            if cached_content.is_clearly_expired():
                raise ValidationError(
                    f"Cached content {cached_content.name} has expired",
                    field="cached_content",
                    actual=cached_content.expire_time.isoformat()
                    if cached_content.expire_time
                    else None,
                ).with_hint("Extend it with update_ttl or create a new cache")
            return cached_content.name
        if not cached_content.strip():
            raise ValidationError("Cached content name must not be empty", field="cached_content")
        return cached_content

    def _method_path(self, method: str, model: str | None = None) -> str:
        return self._config.api_path(f"{model or self._model}:{method}")

    async def _post_json(
        self,
        path: str,
        payload: dict[str, Any],
        *,
        cancel_token: CancelToken | None = None,
        stats: CallStats | None = None,
        parse: Callable[[Any], Any] | None = None,
    ) -> Any:
        request = TransportRequest("POST", path, json=payload)

        async def attempt() -> Any:
            response = await self._transport.send(request)
            body = response.json()
            return parse(body) if parse is not None else body

        executor = RetryExecutor(self._policy, sleep=self._sleep)
        result = await executor.execute(attempt, cancel_token=cancel_token)
        if stats is not None:
            stats.attempts = result.attempts
        return result.unwrap()

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        request = TransportRequest("GET", path, params=params)

        async def attempt() -> Any:
            response = await self._transport.send(request)
            return response.json()

        executor = RetryExecutor(self._policy, sleep=self._sleep)
        return (await executor.execute(attempt)).unwrap()

    async def generate_content(
        self,
        request: GenerateContentRequest | Content | str | Sequence[Content],
        *,
        cached_content: CacheHandle | str | None = None,
        cancel_token: CancelToken | None = None,
    ) -> GenerationChunk:
        """Generate a complete response.

        Args:
            request: Request, single content, content list or prompt text
            cached_content: Cache handle or name to reuse
            cancel_token: Token cancelling the call and its backoff waits

        Returns:
            A single final chunk

        Raises:
            ValidationError: On invalid input or an expired cache handle
            GenerationError: When the call fails after retries
        """
        payload = self.build_request(request, cached_content=cached_content).to_payload()
        stats = CallStats(model=self._model, operation="generateContent")
        with log_context(
            request_id=stats.client_request_id, model=self._model, operation="generateContent"
        ):
            try:
                chunk = await self._post_json(
                    self._method_path("generateContent"),
                    payload,
                    cancel_token=cancel_token,
                    stats=stats,
                    parse=self._mapper.map_response,
                )
            finally:
                stats.record_end()
                self._last_stats = stats

            stats.record_usage(chunk.usage)
            logger.debug("generateContent finished", **stats.to_dict())
        return chunk

    def stream_generate_content(
        self,
        request: GenerateContentRequest | Content | str | Sequence[Content],
        *,
        cached_content: CacheHandle | str | None = None,
        cancel_token: CancelToken | None = None,
        framing: FramingMode = FramingMode.SSE,
        on_complete: Callable[[list[GenerationChunk]], Any] | None = None,
    ) -> ResponseStream:
        """Start a streaming generation.

        Nothing is sent until the returned stream is first pulled.

        Args:
            request: Request, single content, content list or prompt text
            cached_content: Cache handle or name to reuse
            cancel_token: Token cancelling the stream
            framing: SSE (``alt=sse``) or a JSON array body
            on_complete: Called with all chunks after a clean finish

        Returns:
            ResponseStream of chunks and at most one terminal error

        Raises:
            ValidationError: On invalid input or an expired cache handle
        """
        payload = self.build_request(request, cached_content=cached_content).to_payload()
        framing = FramingMode(framing)
        transport_request = TransportRequest(
            "POST",
            self._method_path("streamGenerateContent"),
            json=payload,
            params={"alt": "sse"} if framing == FramingMode.SSE else None,
            headers={"Accept": "text/event-stream"} if framing == FramingMode.SSE else None,
            stream=True,
        )

        def open_fn() -> Awaitable[TransportResponse]:
            return self._transport.send(transport_request)

        return ResponseStream(
            open_fn,
            policy=self._policy,
            framing=framing,
            mapper=self._mapper,
            cancel_token=cancel_token,
            sleep=self._sleep,
            stats=CallStats(model=self._model, operation="streamGenerateContent"),
            on_complete=on_complete,
        )

    async def count_tokens(
        self,
        request: GenerateContentRequest | Content | str | Sequence[Content],
    ) -> int:
        """Count the tokens a request would consume.

        Returns:
            Total token count
        """
        full = self.build_request(request)
        payload = full.to_payload()
        if set(payload) == {"contents"}:
            body: dict[str, Any] = payload
        else:
            body = {"generateContentRequest": {"model": self._model, **payload}}
        data = await self._post_json(self._method_path("countTokens"), body)
        total = data.get("totalTokens") if isinstance(data, dict) else None
        if not isinstance(total, int):
            raise DecodeFailure("countTokens response has no totalTokens", fragment=str(data))
        return total

    async def embed_content(
        self,
        text: str | Content,
        *,
        task_type: str | None = None,
        title: str | None = None,
        model: str = DEFAULT_EMBEDDING_MODEL,
    ) -> list[float]:
        """Embed text with an embedding model.

        Args:
            text: Text or content to embed
            task_type: e.g. ``RETRIEVAL_DOCUMENT``, ``SEMANTIC_SIMILARITY``
            title: Document title (retrieval documents only)
            model: Embedding model

        Returns:
            Embedding vector
        """
        content = Content.text(text) if isinstance(text, str) else text
        if not content.parts:
            raise ValidationError("Content to embed must not be empty", field="content")
        payload: dict[str, Any] = {"content": content.to_wire()}
        if task_type:
            payload["taskType"] = task_type
        if title:
            payload["title"] = title
        data = await self._post_json(
            self._method_path("embedContent", model_resource_name(model)), payload
        )
        values = data.get("embedding", {}).get("values") if isinstance(data, dict) else None
        if not isinstance(values, list):
            raise DecodeFailure("embedContent response has no values", fragment=str(data))
        return [float(v) for v in values]

    async def list_models(self, *, page_size: int | None = None) -> list[ModelInfo]:
        """List the models available to this API key."""
        models: list[ModelInfo] = []
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {}
            if page_size:
                params["pageSize"] = page_size
            if page_token:
                params["pageToken"] = page_token
            data = await self._get_json(self._config.api_path("models"), params or None)
            models.extend(ModelInfo.from_wire(m) for m in data.get("models", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                return models

    async def get_model(self, name: str | None = None) -> ModelInfo:
        """Fetch metadata of a model (this model if name is None)."""
        resource = model_resource_name(name) if name else self._model
        data = await self._get_json(self._config.api_path(resource))
        return ModelInfo.from_wire(data)

    def start_chat(self, history: list[Content] | None = None) -> ChatSession:
        """Start a multi-turn chat session."""
        from gemini_ai.client.chat import ChatSession

        return ChatSession(self, history=history)

    async def aclose(self) -> None:
        """Close the transport if this client created it."""
        if self._owns_transport:
            await self._transport.aclose()

    async def __aenter__(self) -> GenerativeModel:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()
