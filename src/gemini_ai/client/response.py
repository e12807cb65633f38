"""
Per-call statistics.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from gemini_ai.types.response import UsageMetadata


@dataclass
class CallStats:
    """Statistics for a single logical call.

    Attributes:
        client_request_id: Client-generated request ID for tracking
        model: Model used for the call
        operation: API method, e.g. ``streamGenerateContent``
        attempts: Number of transport attempts made
        latency_ms: Total latency in milliseconds
        time_to_first_chunk_ms: Time to first chunk (streaming only)
        usage: Last usage metadata reported by the service
    """

    client_request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    model: str | None = None
    operation: str | None = None
    attempts: int = 0
    latency_ms: float = 0.0
    time_to_first_chunk_ms: float | None = None
    usage: UsageMetadata | None = None

    _start_time: float = field(default_factory=time.monotonic, repr=False)
    _first_chunk_time: float | None = field(default=None, repr=False)

    def record_start(self) -> None:
        self._start_time = time.monotonic()

    def record_first_chunk(self) -> None:
        if self._first_chunk_time is None:
            self._first_chunk_time = time.monotonic()
            self.time_to_first_chunk_ms = (self._first_chunk_time - self._start_time) * 1000

    def record_end(self) -> None:
        self.latency_ms = (time.monotonic() - self._start_time) * 1000

    def record_usage(self, usage: UsageMetadata | None) -> None:
        if usage is not None:
            self.usage = usage

    @property
    def retry_count(self) -> int:
        return max(0, self.attempts - 1)

    @property
    def total_tokens(self) -> int | None:
        return self.usage.total_token_count if self.usage else None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict for logging."""
        return {
            "client_request_id": self.client_request_id,
            "model": self.model,
            "operation": self.operation,
            "attempts": self.attempts,
            "latency_ms": round(self.latency_ms, 2),
            "time_to_first_chunk_ms": (
                round(self.time_to_first_chunk_ms, 2)
                if self.time_to_first_chunk_ms is not None
                else None
            ),
            "total_tokens": self.total_tokens,
        }
