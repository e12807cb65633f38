"""Tests for GenerativeModel."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from gemini_ai.cache import CacheHandle
from gemini_ai.client import GenerativeModel, model_resource_name
from gemini_ai.config import ClientConfig
from gemini_ai.errors import (
    DecodeFailure,
    HttpStatusFailure,
    SafetyBlocked,
    TransportFailure,
    ValidationError,
)
from gemini_ai.pipeline import FramingMode
from gemini_ai.resilience import RetryPolicy
from gemini_ai.types import (
    Content,
    FinishReason,
    GenerateContentRequest,
    GenerationConfig,
    HarmBlockThreshold,
    HarmCategory,
    SafetySetting,
)

CONFIG = ClientConfig(api_key="test-key")


@pytest.fixture
def make_model(scripted_transport, recording_sleep):
    """Factory for a model over a scripted transport."""

    def build(*script, **kwargs):
        transport = scripted_transport(*script)
        kwargs.setdefault("policy", RetryPolicy(max_attempts=3, jitter_fraction=0.0))
        model = GenerativeModel(
            "gemini-1.5-flash", transport, config=CONFIG, sleep=recording_sleep, **kwargs
        )
        return model, transport

    return build


class TestModelResourceName:
    """Tests for model_resource_name."""

    def test_bare_name(self) -> None:
        assert model_resource_name("gemini-1.5-flash") == "models/gemini-1.5-flash"

    def test_qualified_name(self) -> None:
        assert model_resource_name("tunedModels/my-tune") == "tunedModels/my-tune"

    def test_empty_name(self) -> None:
        with pytest.raises(ValidationError):
            model_resource_name("  ")


class TestBuildRequest:
    """Tests for request normalization."""

    def test_prompt(self, make_model) -> None:
        """Test a prompt becomes one user turn."""
        model, _ = make_model()
        request = model.build_request("Hello")
        assert request.to_payload() == {
            "contents": [{"role": "user", "parts": [{"text": "Hello"}]}]
        }

    def test_defaults_applied(self, make_model) -> None:
        """Test model defaults fill unset request fields."""
        setting = SafetySetting(
            category=HarmCategory.HATE_SPEECH, threshold=HarmBlockThreshold.BLOCK_NONE
        )
        model, _ = make_model(
            generation_config=GenerationConfig(temperature=0.3),
            safety_settings=[setting],
            system_instruction="Be brief.",
        )

        payload = model.build_request([Content.user("hi")]).to_payload()

        assert payload["generationConfig"] == {"temperature": 0.3}
        assert payload["safetySettings"][0]["threshold"] == "BLOCK_NONE"
        assert payload["systemInstruction"] == {"parts": [{"text": "Be brief."}]}

    def test_request_overrides_defaults(self, make_model) -> None:
        """Test explicit request fields win over model defaults."""
        model, _ = make_model(generation_config=GenerationConfig(temperature=0.3))
        request = GenerateContentRequest.from_prompt(
            "hi", generation_config=GenerationConfig(temperature=0.9)
        )
        assert model.build_request(request).generation_config.temperature == 0.9

    def test_empty_prompt(self, make_model) -> None:
        model, _ = make_model()
        with pytest.raises(ValidationError):
            model.build_request("")
        with pytest.raises(ValidationError):
            model.build_request([])

    def test_cache_reference(self, make_model) -> None:
        """Test a live cache handle is referenced by name."""
        model, _ = make_model()
        handle = CacheHandle(
            name="cachedContents/abc",
            expire_time=datetime.now(timezone.utc) + timedelta(minutes=5),
        )
        request = model.build_request("Summarize", cached_content=handle)
        assert request.to_payload()["cachedContent"] == "cachedContents/abc"

    @pytest.mark.asyncio
    async def test_expired_cache_rejected(self, make_model) -> None:
        """Test an expired handle fails before any request is sent."""
        model, transport = make_model()
        handle = CacheHandle(
            name="cachedContents/old",
            expire_time=datetime.now(timezone.utc) - timedelta(minutes=1),
        )

        with pytest.raises(ValidationError, match="expired"):
            await model.generate_content("Summarize", cached_content=handle)
        with pytest.raises(ValidationError):
            model.stream_generate_content("Summarize", cached_content=handle)

        assert transport.requests == []


class TestGenerateContent:
    """Tests for non-streaming generation."""

    @pytest.mark.asyncio
    async def test_generate(self, make_model, candidate_frame) -> None:
        """Test a complete response becomes one final chunk."""
        usage = {"promptTokenCount": 3, "candidatesTokenCount": 5, "totalTokenCount": 8}
        model, transport = make_model(candidate_frame("Hello there", "STOP", usage))

        chunk = await model.generate_content("Hi")

        assert chunk.text == "Hello there"
        assert chunk.finish_reason == FinishReason.STOP
        (request,) = transport.requests
        assert request.method == "POST"
        assert request.path == "/v1beta/models/gemini-1.5-flash:generateContent"
        assert model.last_stats.attempts == 1
        assert model.last_stats.total_tokens == 8

    @pytest.mark.asyncio
    async def test_retry_then_success(self, make_model, candidate_frame, recording_sleep) -> None:
        """Test transient failures are retried with backoff."""
        model, transport = make_model(
            HttpStatusFailure("unavailable", status_code=503),
            TransportFailure("reset"),
            candidate_frame("ok", "STOP"),
        )

        chunk = await model.generate_content("Hi")

        assert chunk.text == "ok"
        assert len(transport.requests) == 3
        assert recording_sleep.delays == [1.0, 2.0]
        assert model.last_stats.retry_count == 2

    @pytest.mark.asyncio
    async def test_in_band_error_is_retried(
        self, make_model, candidate_frame, recording_sleep
    ) -> None:
        """Test an error envelope in a successful response goes through the retry policy."""
        model, transport = make_model(
            {"error": {"code": 503, "message": "overloaded", "status": "UNAVAILABLE"}},
            candidate_frame("ok", "STOP"),
        )

        chunk = await model.generate_content("Hi")

        assert chunk.text == "ok"
        assert len(transport.requests) == 2
        assert recording_sleep.delays == [1.0]
        assert model.last_stats.attempts == 2

    @pytest.mark.asyncio
    async def test_blocked_prompt_not_retried(self, make_model) -> None:
        """Test a blocked prompt is mapped once and never resent."""
        model, transport = make_model({"promptFeedback": {"blockReason": "SAFETY"}})
        with pytest.raises(SafetyBlocked):
            await model.generate_content("Hi")
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_non_retryable(self, make_model) -> None:
        """Test client errors are raised without retrying."""
        model, transport = make_model(HttpStatusFailure("bad request", status_code=400))

        with pytest.raises(HttpStatusFailure):
            await model.generate_content("Hi")
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_blocked_prompt(self, make_model) -> None:
        """Test a blocked prompt raises SafetyBlocked."""
        model, _ = make_model({"promptFeedback": {"blockReason": "SAFETY"}})
        with pytest.raises(SafetyBlocked):
            await model.generate_content("Hi")

    @pytest.mark.asyncio
    async def test_missing_finish_reason(self, make_model, candidate_frame) -> None:
        """Test a complete response without a finish reason ends as OTHER."""
        model, _ = make_model(candidate_frame("partial"))
        chunk = await model.generate_content("Hi")
        assert chunk.finish_reason == FinishReason.OTHER


class TestStreamGenerateContent:
    """Tests for streaming generation."""

    @pytest.mark.asyncio
    async def test_sse_request(self, make_model, candidate_frame, sse_body) -> None:
        """Test SSE streaming sends alt=sse and yields chunks."""
        model, transport = make_model(
            (sse_body(candidate_frame("Hel"), candidate_frame("lo", "STOP")),)
        )

        stream = model.stream_generate_content("Hi")
        assert transport.requests == []
        chunks = [chunk async for chunk in stream.chunks()]

        assert [c.text for c in chunks] == ["Hel", "lo"]
        (request,) = transport.requests
        assert request.path == "/v1beta/models/gemini-1.5-flash:streamGenerateContent"
        assert request.params == {"alt": "sse"}
        assert request.headers == {"Accept": "text/event-stream"}
        assert request.stream

    @pytest.mark.asyncio
    async def test_json_array_framing(self, make_model, candidate_frame) -> None:
        """Test the JSON array framing omits alt=sse."""
        body = json.dumps([candidate_frame("a"), candidate_frame("b", "STOP")]).encode()
        model, transport = make_model((body,))

        chunk = await model.stream_generate_content("Hi", framing=FramingMode.JSON).collect()

        assert chunk.text == "ab"
        assert transport.requests[0].params is None

    @pytest.mark.asyncio
    async def test_stream_with_cache(self, make_model, candidate_frame, sse_body) -> None:
        """Test a cache name is sent with the stream request."""
        model, transport = make_model((sse_body(candidate_frame("x", "STOP")),))

        await model.stream_generate_content("Hi", cached_content="cachedContents/abc").collect()

        assert transport.requests[0].json["cachedContent"] == "cachedContents/abc"


class TestAuxiliaryCalls:
    """Tests for countTokens, embedContent and model metadata."""

    @pytest.mark.asyncio
    async def test_count_tokens(self, make_model) -> None:
        """Test a plain request is counted from its contents."""
        model, transport = make_model({"totalTokens": 7})

        assert await model.count_tokens("How many tokens?") == 7
        (request,) = transport.requests
        assert request.path == "/v1beta/models/gemini-1.5-flash:countTokens"
        assert set(request.json) == {"contents"}

    @pytest.mark.asyncio
    async def test_count_tokens_full_request(self, make_model) -> None:
        """Test requests with extra fields are wrapped in generateContentRequest."""
        model, transport = make_model({"totalTokens": 12}, system_instruction="Be brief.")

        assert await model.count_tokens("Hi") == 12
        wrapped = transport.requests[0].json["generateContentRequest"]
        assert wrapped["model"] == "models/gemini-1.5-flash"
        assert "systemInstruction" in wrapped

    @pytest.mark.asyncio
    async def test_count_tokens_malformed(self, make_model) -> None:
        model, _ = make_model({})
        with pytest.raises(DecodeFailure):
            await model.count_tokens("Hi")

    @pytest.mark.asyncio
    async def test_embed_content(self, make_model) -> None:
        """Test embedding uses the embedding model."""
        model, transport = make_model({"embedding": {"values": [0.1, 0.2, 0.3]}})

        values = await model.embed_content("retry budgets", task_type="RETRIEVAL_DOCUMENT")

        assert values == [0.1, 0.2, 0.3]
        request = transport.requests[0]
        assert request.path == "/v1beta/models/text-embedding-004:embedContent"
        assert request.json["taskType"] == "RETRIEVAL_DOCUMENT"

    @pytest.mark.asyncio
    async def test_list_models_pages(self, make_model) -> None:
        """Test listing follows page tokens."""
        model, transport = make_model(
            {"models": [{"name": "models/a"}], "nextPageToken": "p2"},
            {"models": [{"name": "models/b"}]},
        )

        models = await model.list_models(page_size=1)

        assert [m.name for m in models] == ["models/a", "models/b"]
        assert transport.requests[1].params == {"pageSize": 1, "pageToken": "p2"}

    @pytest.mark.asyncio
    async def test_get_model(self, make_model) -> None:
        model, transport = make_model({"name": "models/gemini-1.5-pro", "inputTokenLimit": 2})
        info = await model.get_model("gemini-1.5-pro")
        assert info.input_token_limit == 2
        assert transport.requests[0].path == "/v1beta/models/gemini-1.5-pro"


class TestLifecycle:
    """Tests for ownership of the transport."""

    @pytest.mark.asyncio
    async def test_borrowed_transport_not_closed(self, make_model) -> None:
        """Test a caller-supplied transport is left open."""
        model, transport = make_model()
        async with model:
            pass
        assert not transport.closed

    def test_managers_share_transport(self, make_model) -> None:
        model, transport = make_model()
        assert model.caches._transport is transport
        assert model.files._transport is transport
