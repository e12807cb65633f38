"""Tests for ChatSession."""

import pytest

from gemini_ai.client import GenerativeModel
from gemini_ai.config import ClientConfig
from gemini_ai.errors import HttpStatusFailure
from gemini_ai.resilience import RetryPolicy
from gemini_ai.types import Content, Role, TextPart


@pytest.fixture
def make_chat(scripted_transport, recording_sleep):
    """Factory for a chat session over a scripted transport."""

    def build(*script, history=None):
        transport = scripted_transport(*script)
        model = GenerativeModel(
            "gemini-1.5-flash",
            transport,
            config=ClientConfig(api_key="test-key"),
            policy=RetryPolicy.no_retry(),
            sleep=recording_sleep,
        )
        return model.start_chat(history=history), transport

    return build


class TestChatSession:
    """Tests for multi-turn chat."""

    @pytest.mark.asyncio
    async def test_history_grows(self, make_chat, candidate_frame) -> None:
        """Test each successful turn appends the user and model turns."""
        chat, transport = make_chat(
            candidate_frame("Hi! Where to?", "STOP"),
            candidate_frame("Pack light.", "STOP"),
        )

        await chat.send_message("I'm planning a trip")
        reply = await chat.send_message("What should I pack?")

        assert reply.text == "Pack light."
        assert [c.role for c in chat.history] == [Role.USER, Role.MODEL, Role.USER, Role.MODEL]
        second = transport.requests[1].json["contents"]
        assert len(second) == 3
        assert second[1] == {"role": "model", "parts": [{"text": "Hi! Where to?"}]}

    @pytest.mark.asyncio
    async def test_failure_leaves_history(self, make_chat) -> None:
        """Test a failed turn does not change the history."""
        chat, _ = make_chat(HttpStatusFailure("bad request", status_code=400))

        with pytest.raises(HttpStatusFailure):
            await chat.send_message("Hello")
        assert chat.history == []

    @pytest.mark.asyncio
    async def test_stream_records_on_finish(self, make_chat, candidate_frame, sse_body) -> None:
        """Test a streamed reply is recorded once the stream finishes."""
        chat, _ = make_chat((sse_body(candidate_frame("Pa"), candidate_frame("ris", "STOP")),))

        stream = chat.send_message_stream("Capital of France?")
        assert chat.history == []
        chunk = await stream.collect()

        assert chunk.text == "Paris"
        user, model = chat.history
        assert user.parts == (TextPart(text="Capital of France?"),)
        assert "".join(p.text for p in model.parts) == "Paris"

    @pytest.mark.asyncio
    async def test_failed_stream_not_recorded(self, make_chat, sse_body) -> None:
        """Test an errored stream leaves the history unchanged."""
        error_frame = {"error": {"code": 400, "message": "bad", "status": "INVALID_ARGUMENT"}}
        chat, _ = make_chat((sse_body(error_frame),))

        with pytest.raises(HttpStatusFailure):
            await chat.send_message_stream("Hello").collect()
        assert chat.history == []

    def test_user_turn_shapes(self, make_chat) -> None:
        """Test messages of every shape become user turns."""
        chat, _ = make_chat()
        assert chat._user_turn("hi").role == Role.USER
        assert chat._user_turn(Content.text("hi")).role == Role.USER
        assert chat._user_turn(Content.model("x")).role == Role.MODEL
        assert len(chat._user_turn(["a", TextPart(text="b")]).parts) == 2
        assert chat._user_turn(["a", TextPart(text="b")]) == Content.user("a", TextPart(text="b"))

    def test_initial_history_copied(self, make_chat) -> None:
        """Test the session owns its history."""
        history = [Content.user("hi"), Content.model("hello")]
        chat, _ = make_chat(history=history)
        chat.history.append(Content.user("ignored"))
        assert len(chat.history) == 2
        chat.clear_history()
        assert chat.history == []
        assert len(history) == 2
