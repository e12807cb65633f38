"""Base error classes for gemini-ai-python.

Provides a layered error hierarchy:
- GeminiError: Base class for all library errors
- ValidationError: Local precondition failures (never sent to the service)
- GenerationError: Closed taxonomy for failed generation calls
  - TransportFailure: Connection/DNS/TLS level failures
  - HttpStatusFailure: Non-success HTTP status with code and body
  - DecodeFailure: Malformed stream frame or response body
  - RateLimitExceeded: Throttled by the service (optional retry-after hint)
  - SafetyBlocked: Prompt or response blocked by safety filters
  - Cancelled: Caller-initiated cancellation
- FileProcessingError: An uploaded file did not become active
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass
class ErrorContext:
    """Structured error context for diagnostics.

    Provides actionable information for debugging and error handling.
    """

    field_path: str | None = None
    """Path to the problematic field (e.g., 'contents[0].parts')"""

    details: dict[str, Any] = field(default_factory=dict)
    """Additional details about the error"""

    source: str | None = None
    """Error source (e.g., 'transport', 'pipeline', 'cache')"""

    hint: str | None = None
    """Actionable hint for resolving the error"""

    def __str__(self) -> str:
        parts = []
        if self.source:
            parts.append(f"[{self.source}]")
        if self.field_path:
            parts.append(f"at '{self.field_path}'")
        if self.hint:
            parts.append(f"(hint: {self.hint})")
        return " ".join(parts)


class GeminiError(Exception):
    """Base class for all gemini-ai-python errors.

    Attributes:
        message: Human-readable error message
        context: Structured error context
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
    ) -> None:
        self.message = message
        self.context = context or ErrorContext()
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message."""
        ctx_str = str(self.context)
        if ctx_str:
            return f"{self.message} {ctx_str}"
        return self.message

    def with_hint(self, hint: str) -> GeminiError:
        """Add a hint to this error."""
        self.context.hint = hint
        return self


class ValidationError(GeminiError):
    """A request was rejected locally before reaching the transport.

    Raised when:
    - A cache TTL is zero or negative
    - Cached content is empty
    - A resource name is empty
    - A retry policy violates its invariants
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        field: str | None = None,
        expected: Any = None,
        actual: Any = None,
    ) -> None:
        ctx = context or ErrorContext(source="validation")
        if field:
            ctx.field_path = field
        if expected is not None:
            ctx.details["expected"] = expected
        if actual is not None:
            ctx.details["actual"] = actual
        super().__init__(message, ctx)
        self.field = field
        self.expected = expected
        self.actual = actual


class ErrorKind(str, Enum):
    """Tag of a GenerationError."""

    TRANSPORT = "transport"
    HTTP_STATUS = "http_status"
    DECODE = "decode"
    RATE_LIMITED = "rate_limited"
    SAFETY_BLOCKED = "safety_blocked"
    CANCELLED = "cancelled"


class GenerationError(GeminiError):
    """Base of the closed taxonomy surfaced by generation calls.

    Subclasses set ``kind``. Callers can either catch the concrete
    subclass or switch on ``error.kind``.

    Attributes:
        kind: Error tag
        status_code: HTTP status code, when one was involved
        body: Parsed error body, when one was received
    """

    kind: ErrorKind

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        status_code: int | None = None,
        body: Any = None,
    ) -> None:
        ctx = context or ErrorContext(source=self.kind.value)
        ctx.details["kind"] = self.kind.value
        if status_code is not None:
            ctx.details["status_code"] = status_code
        super().__init__(message, ctx)
        self.status_code = status_code
        self.body = body

    @property
    def retryable(self) -> bool:
        """Whether this error is retryable under the default policy."""
        return False


class TransportFailure(GenerationError):
    """Connection, DNS, TLS or timeout failure below the HTTP layer."""

    kind = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        ctx = ErrorContext(source="transport")
        if url:
            ctx.details["url"] = url
        super().__init__(message, ctx)
        self.url = url
        self.__cause__ = cause

    @property
    def retryable(self) -> bool:
        return True


class HttpStatusFailure(GenerationError):
    """The service answered with a non-success HTTP status.

    Only 5xx statuses are retryable; 429 is surfaced as RateLimitExceeded.
    """

    kind = ErrorKind.HTTP_STATUS

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        body: Any = None,
        status: str | None = None,
    ) -> None:
        ctx = ErrorContext(source="remote")
        if status:
            ctx.details["status"] = status
        super().__init__(message, ctx, status_code=status_code, body=body)
        self.status = status

    @property
    def retryable(self) -> bool:
        return self.status_code == 429 or 500 <= (self.status_code or 0) < 600


class DecodeFailure(GenerationError):
    """A frame or response body could not be decoded.

    Not retryable: replaying the same malformed bytes cannot help.
    """

    kind = ErrorKind.DECODE

    def __init__(
        self,
        message: str,
        *,
        fragment: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        ctx = ErrorContext(source="pipeline")
        if fragment is not None:
            ctx.details["fragment"] = fragment[:200]
        super().__init__(message, ctx)
        self.fragment = fragment
        self.__cause__ = cause


class RateLimitExceeded(GenerationError):
    """The service throttled the request (HTTP 429 / RESOURCE_EXHAUSTED).

    Attributes:
        retry_after: Server-suggested delay in seconds, if any
    """

    kind = ErrorKind.RATE_LIMITED

    def __init__(
        self,
        message: str,
        *,
        retry_after: float | None = None,
        status_code: int = 429,
        body: Any = None,
    ) -> None:
        ctx = ErrorContext(source="remote")
        if retry_after is not None:
            ctx.details["retry_after"] = retry_after
        super().__init__(message, ctx, status_code=status_code, body=body)
        self.retry_after = retry_after

    @property
    def retryable(self) -> bool:
        return True


class SafetyBlocked(GenerationError):
    """The prompt was blocked by the service's safety filters.

    Terminal: the identical prompt gets the identical verdict.
    """

    kind = ErrorKind.SAFETY_BLOCKED

    def __init__(
        self,
        message: str,
        *,
        block_reason: str | None = None,
        body: Any = None,
    ) -> None:
        ctx = ErrorContext(source="safety")
        if block_reason:
            ctx.details["block_reason"] = block_reason
        super().__init__(message, ctx, body=body)
        self.block_reason = block_reason


class Cancelled(GenerationError):
    """The caller cancelled the call. Never retried."""

    kind = ErrorKind.CANCELLED

    def __init__(self, message: str = "Cancelled", *, reason: str | None = None) -> None:
        ctx = ErrorContext(source="cancel")
        if reason:
            ctx.details["reason"] = reason
        super().__init__(message, ctx)
        self.reason = reason


class FileProcessingError(GeminiError):
    """An uploaded file failed server-side processing or never became active.

    Attributes:
        name: File resource name
        state: Last observed file state
    """

    def __init__(self, message: str, *, name: str, state: str | None = None) -> None:
        ctx = ErrorContext(source="files", details={"name": name})
        if state:
            ctx.details["state"] = state
        super().__init__(message, ctx)
        self.name = name
        self.state = state
