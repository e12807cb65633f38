"""
Multi-turn chat on top of GenerativeModel.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from gemini_ai.client.stream import aggregate_chunks
from gemini_ai.types.content import Content, Role

if TYPE_CHECKING:
    from gemini_ai.client.cancel import CancelToken
    from gemini_ai.client.core import GenerativeModel
    from gemini_ai.client.stream import ResponseStream
    from gemini_ai.types.content import Part
    from gemini_ai.types.response import GenerationChunk


class ChatSession:
    """Conversation history plus the model that continues it.

    History only grows on success: a failed turn leaves it unchanged.

    Example:
        >>> chat = model.start_chat()
        >>> reply = await chat.send_message("Hi, I'm planning a trip")
        >>> reply = await chat.send_message("What should I pack?")
        >>> len(chat.history)
        4
    """

    def __init__(self, model: GenerativeModel, history: list[Content] | None = None) -> None:
        self._model = model
        self._history: list[Content] = list(history or [])

    @property
    def model(self) -> GenerativeModel:
        return self._model

    @property
    def history(self) -> list[Content]:
        """A copy of the conversation so far."""
        return list(self._history)

    def clear_history(self) -> None:
        self._history.clear()

    @staticmethod
    def _user_turn(message: str | Content | Part | list[Any]) -> Content:
        if isinstance(message, Content):
            return message if message.role is not None else message.model_copy(
                update={"role": Role.USER}
            )
        items = message if isinstance(message, list) else [message]
        return Content.user(*items)

    async def send_message(
        self,
        message: str | Content | Part | list[Any],
        *,
        cancel_token: CancelToken | None = None,
    ) -> GenerationChunk:
        """Send a user turn and return the model's reply.

        Raises:
            GenerationError: If the call fails; history is left unchanged
        """
        user = self._user_turn(message)
        reply = await self._model.generate_content(
            [*self._history, user], cancel_token=cancel_token
        )
        self._history.extend([user, reply.to_content()])
        return reply

    def send_message_stream(
        self,
        message: str | Content | Part | list[Any],
        *,
        cancel_token: CancelToken | None = None,
    ) -> ResponseStream:
        """Send a user turn and stream the reply.

        The aggregated reply is appended to the history once the stream
        finishes cleanly.
        """
        user = self._user_turn(message)

        def record(chunks: list[GenerationChunk]) -> None:
            reply = aggregate_chunks(chunks)
            self._history.extend([user, reply.to_content()])

        return self._model.stream_generate_content(
            [*self._history, user], cancel_token=cancel_token, on_complete=record
        )
