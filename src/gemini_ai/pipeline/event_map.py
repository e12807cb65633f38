"""事件映射：将 Gemini 响应帧转换为 GenerationChunk 或生成错误。

Event mapper for Gemini response frames.

Every frame is classified into exactly one FrameKind and mapped by a
closed dispatch; the result is a GenerationChunk or a GenerationError
value. Unknown finish reasons and unknown part kinds never fail.
"""

from __future__ import annotations

import base64
import binascii
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as SchemaError

from gemini_ai.errors import DecodeFailure, GenerationError, SafetyBlocked
from gemini_ai.errors.classification import error_from_payload
from gemini_ai.pipeline.base import EventMapper
from gemini_ai.telemetry import get_logger
from gemini_ai.types.content import (
    FileDataPart,
    FunctionCallPart,
    FunctionResponsePart,
    InlineDataPart,
    OtherPart,
    Part,
    Role,
    TextPart,
)
from gemini_ai.types.response import FinishReason, GenerationChunk, UsageMetadata
from gemini_ai.types.safety import SafetyRating

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = get_logger(__name__)

# Gemini finishReason → FinishReason
_FINISH_MAP: dict[str, FinishReason] = {
    "FINISH_REASON_UNSPECIFIED": FinishReason.NONE_YET,
    "STOP": FinishReason.STOP,
    "MAX_TOKENS": FinishReason.MAX_TOKENS,
    "SAFETY": FinishReason.SAFETY,
    "RECITATION": FinishReason.SAFETY,
    "BLOCKLIST": FinishReason.SAFETY,
    "PROHIBITED_CONTENT": FinishReason.SAFETY,
    "SPII": FinishReason.SAFETY,
    "IMAGE_SAFETY": FinishReason.SAFETY,
}


class FrameKind(str, Enum):
    """Shape of a decoded response frame."""

    ERROR = "error"
    BLOCKED = "blocked"
    CANDIDATE = "candidate"
    USAGE_ONLY = "usage_only"
    EMPTY = "empty"


def classify_frame(frame: dict[str, Any]) -> FrameKind:
    """Determine which variant a frame is.

    Precedence: error envelope, then candidates, then a prompt block,
    then bare usage metadata.
    """
    if isinstance(frame.get("error"), dict):
        return FrameKind.ERROR
    candidates = frame.get("candidates")
    if isinstance(candidates, list) and candidates:
        return FrameKind.CANDIDATE
    feedback = frame.get("promptFeedback")
    if isinstance(feedback, dict) and feedback.get("blockReason"):
        return FrameKind.BLOCKED
    if isinstance(frame.get("usageMetadata"), dict):
        return FrameKind.USAGE_ONLY
    return FrameKind.EMPTY


def map_finish_reason(raw: Any) -> FinishReason:
    """Map a wire finishReason. Missing means the candidate is still going."""
    if raw is None or raw == "":
        return FinishReason.NONE_YET
    if not isinstance(raw, str):
        return FinishReason.OTHER
    return _FINISH_MAP.get(raw, FinishReason.OTHER)


def _int_or_none(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _map_usage(raw: Any) -> UsageMetadata | None:
    if not isinstance(raw, dict):
        return None
    return UsageMetadata(
        prompt_token_count=_int_or_none(raw.get("promptTokenCount")),
        candidates_token_count=_int_or_none(raw.get("candidatesTokenCount")),
        total_token_count=_int_or_none(raw.get("totalTokenCount")),
        cached_content_token_count=_int_or_none(raw.get("cachedContentTokenCount")),
    )


def _map_part(raw: dict[str, Any]) -> Part:
    """Map one wire part.

    Raises:
        DecodeFailure: If inline data is not valid base64
    """
    text = raw.get("text")
    if isinstance(text, str) and not raw.get("thought"):
        return TextPart(text=text)

    inline = raw.get("inlineData")
    if isinstance(inline, dict):
        encoded = inline.get("data", "")
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, TypeError, ValueError) as e:
            raise DecodeFailure(
                "Inline data is not valid base64",
                fragment=str(encoded)[:64],
                cause=e,
            ) from e
        return InlineDataPart(
            mime_type=_str_or_none(inline.get("mimeType")) or "application/octet-stream",
            data=data,
        )

    file_data = raw.get("fileData")
    if isinstance(file_data, dict) and isinstance(file_data.get("fileUri"), str):
        return FileDataPart(
            mime_type=_str_or_none(file_data.get("mimeType")) or "application/octet-stream",
            file_uri=file_data["fileUri"],
        )

    call = raw.get("functionCall")
    if isinstance(call, dict) and isinstance(call.get("name"), str):
        args = call.get("args")
        return FunctionCallPart(name=call["name"], args=args if isinstance(args, dict) else {})

    response = raw.get("functionResponse")
    if isinstance(response, dict) and isinstance(response.get("name"), str):
        payload = response.get("response")
        return FunctionResponsePart(
            name=response["name"],
            response=payload if isinstance(payload, dict) else {},
        )

    return OtherPart(raw=raw)


def _map_safety_ratings(raw: Any) -> tuple[SafetyRating, ...]:
    if not isinstance(raw, list):
        return ()
    return tuple(
        SafetyRating(
            category=str(r.get("category", "")),
            probability=str(r.get("probability", "")),
            blocked=bool(r.get("blocked", False)),
        )
        for r in raw
        if isinstance(r, dict)
    )


def _map_role(raw: Any) -> Role | None:
    try:
        return Role(raw)
    except ValueError:
        return None


class GeminiEventMapper(EventMapper):
    """Maps Gemini ``GenerateContentResponse`` frames to chunks.

    Only the first candidate is mapped.

    Example:
        >>> mapper = GeminiEventMapper()
        >>> chunk = mapper.map_frame(
        ...     {"candidates": [{"content": {"parts": [{"text": "Hi"}]}}]}
        ... )
        >>> chunk.text
        'Hi'
    """

    def map_frame(self, frame: dict[str, Any]) -> GenerationChunk | GenerationError:
        """Map one decoded frame.

        Args:
            frame: Parsed JSON object

        Returns:
            A chunk, or the error the frame represents
        """
        kind = classify_frame(frame)
        try:
            if kind == FrameKind.ERROR:
                return error_from_payload(frame["error"], body=frame)
            if kind == FrameKind.BLOCKED:
                return self._map_blocked(frame)
            if kind == FrameKind.CANDIDATE:
                return self._map_candidate(frame)
            return GenerationChunk(
                usage=_map_usage(frame.get("usageMetadata")),
                model_version=_str_or_none(frame.get("modelVersion")),
            )
        except DecodeFailure as e:
            return e
        except SchemaError as e:
            return DecodeFailure(
                "Frame does not match the response schema", fragment=str(frame)[:64], cause=e
            )

    def _map_blocked(self, frame: dict[str, Any]) -> SafetyBlocked:
        reason = str(frame["promptFeedback"]["blockReason"])
        logger.info("Prompt blocked by safety filters", block_reason=reason)
        return SafetyBlocked(f"Prompt blocked: {reason}", block_reason=reason, body=frame)

    def _map_candidate(self, frame: dict[str, Any]) -> GenerationChunk:
        candidate = frame["candidates"][0]
        if not isinstance(candidate, dict):
            raise DecodeFailure("Candidate is not a JSON object", fragment=str(candidate))

        content = candidate.get("content")
        content = content if isinstance(content, dict) else {}
        raw_parts = content.get("parts")
        raw_parts = raw_parts if isinstance(raw_parts, list) else []

        finish_reason = map_finish_reason(candidate.get("finishReason"))
        if finish_reason == FinishReason.OTHER:
            logger.debug("Unrecognised finish reason", raw=candidate.get("finishReason"))

        return GenerationChunk(
            parts=tuple(_map_part(p) for p in raw_parts if isinstance(p, dict)),
            finish_reason=finish_reason,
            usage=_map_usage(frame.get("usageMetadata")),
            model_version=_str_or_none(frame.get("modelVersion")),
            role=_map_role(content.get("role")),
            safety_ratings=_map_safety_ratings(candidate.get("safetyRatings")),
        )

    async def map_events(
        self, frames: AsyncIterator[dict[str, Any]]
    ) -> AsyncIterator[GenerationChunk | GenerationError]:
        """Map a frame stream to chunks.

        Frames that carry nothing are skipped. The first error, whether
        in-band or raised while decoding, is yielded and ends the sequence.

        Args:
            frames: Async iterator of decoded frames

        Yields:
            Chunks, then at most one terminal error
        """
        try:
            async for frame in frames:
                if classify_frame(frame) == FrameKind.EMPTY:
                    continue
                result = self.map_frame(frame)
                yield result
                if isinstance(result, GenerationError):
                    return
        except GenerationError as e:
            yield e

    def map_response(self, body: Any) -> GenerationChunk:
        """Map a complete non-streaming response body.

        Args:
            body: Parsed ``generateContent`` response

        Returns:
            A single final chunk

        Raises:
            GenerationError: If the body is an error, a block, or malformed
        """
        if not isinstance(body, dict):
            raise DecodeFailure(
                f"Expected a JSON object response, got {type(body).__name__}",
                fragment=str(body),
            )
        result = self.map_frame(body)
        if isinstance(result, GenerationError):
            raise result
        if result.finish_reason == FinishReason.NONE_YET:
            result = result.model_copy(update={"finish_reason": FinishReason.OTHER})
        return result
