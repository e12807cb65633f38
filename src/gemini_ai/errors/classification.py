"""错误分类模块：将 HTTP 状态码和 Google RPC 错误体映射到生成错误类别。

Error classification for Gemini API responses.

Maps HTTP status codes, in-band ``{"error": {...}}`` envelopes and
``Retry-After`` hints onto the GenerationError taxonomy.
"""

from __future__ import annotations

import contextlib
import math
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING, Any

from gemini_ai.errors.base import (
    ErrorKind,
    GenerationError,
    HttpStatusFailure,
    RateLimitExceeded,
)

if TYPE_CHECKING:
    from collections.abc import Mapping


# google.rpc.Code names → HTTP status, for envelopes that omit "code"
_RPC_STATUS_TO_HTTP: dict[str, int] = {
    "INVALID_ARGUMENT": 400,
    "FAILED_PRECONDITION": 400,
    "OUT_OF_RANGE": 400,
    "UNAUTHENTICATED": 401,
    "PERMISSION_DENIED": 403,
    "NOT_FOUND": 404,
    "ABORTED": 409,
    "ALREADY_EXISTS": 409,
    "RESOURCE_EXHAUSTED": 429,
    "CANCELLED": 499,
    "UNKNOWN": 500,
    "INTERNAL": 500,
    "DATA_LOSS": 500,
    "UNIMPLEMENTED": 501,
    "UNAVAILABLE": 503,
    "DEADLINE_EXCEEDED": 504,
}

_RETRY_INFO_TYPE = "type.googleapis.com/google.rpc.RetryInfo"

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)s\s*$")


def classify_status(status_code: int) -> ErrorKind:
    """Classify an HTTP status code.

    Args:
        status_code: HTTP status code (>= 400)

    Returns:
        RATE_LIMITED for 429, HTTP_STATUS otherwise
    """
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    return ErrorKind.HTTP_STATUS


def parse_retry_after(value: Any) -> float | None:
    """Parse a retry hint into seconds.

    Accepts a number, a numeric string (``Retry-After: 2``), a protobuf
    duration (``"2s"``, ``"1.5s"``) or an HTTP date.

    Args:
        value: Raw hint

    Returns:
        Seconds to wait (>= 0), or None if the hint is unusable
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _finite_seconds(float(value))
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    if match := _DURATION_RE.match(text):
        return _finite_seconds(float(match.group(1)))

    with contextlib.suppress(ValueError):
        return _finite_seconds(float(text))

    try:
        when = parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def _finite_seconds(seconds: float) -> float | None:
    if not math.isfinite(seconds):
        return None
    return max(0.0, seconds)


def _retry_delay_from_details(details: Any) -> float | None:
    """Find a google.rpc.RetryInfo delay in an error's details list."""
    if not isinstance(details, list):
        return None
    for detail in details:
        if isinstance(detail, dict) and detail.get("@type") == _RETRY_INFO_TYPE:
            return parse_retry_after(detail.get("retryDelay"))
    return None


def extract_error_message(body: Any) -> str | None:
    """Extract an error message from a response body.

    Supports:
    - Google style: {"error": {"message": "...", "status": "..."}}
    - A list wrapping the Google envelope (streaming JSON arrays)
    - Simple: {"message": "..."}

    Args:
        body: Response body (parsed JSON)

    Returns:
        Error message if found, None otherwise
    """
    if isinstance(body, list) and body:
        body = body[0]
    if not isinstance(body, dict):
        return None

    error = body.get("error")
    if isinstance(error, dict):
        msg = error.get("message")
        if isinstance(msg, str):
            return msg
    elif isinstance(error, str):
        return error

    msg = body.get("message")
    if isinstance(msg, str):
        return msg

    return None


def error_from_payload(
    error: Mapping[str, Any],
    *,
    status_code: int | None = None,
    retry_after: float | None = None,
    body: Any = None,
) -> GenerationError:
    """Build a GenerationError from a Google RPC error object.

    Used both for in-band stream frames (``{"error": {...}}``) and for
    error bodies of failed HTTP responses.

    Args:
        error: The ``error`` object (code, message, status, details)
        status_code: HTTP status, if the envelope came with one
        retry_after: Retry hint from headers, if any
        body: Full body to attach as payload

    Returns:
        RateLimitExceeded for 429, HttpStatusFailure otherwise
    """
    code = error.get("code")
    status = error.get("status")
    if not isinstance(code, int) or isinstance(code, bool):
        code = status_code
    if code is None and isinstance(status, str):
        code = _RPC_STATUS_TO_HTTP.get(status)
    if code is None:
        code = 500

    message = error.get("message")
    if not isinstance(message, str) or not message:
        message = f"HTTP {code}"

    payload = body if body is not None else {"error": dict(error)}

    if classify_status(code) == ErrorKind.RATE_LIMITED:
        hint = _retry_delay_from_details(error.get("details"))
        if retry_after is not None:
            hint = retry_after if hint is None else max(hint, retry_after)
        return RateLimitExceeded(message, retry_after=hint, status_code=code, body=payload)

    return HttpStatusFailure(
        message,
        status_code=code,
        body=payload,
        status=status if isinstance(status, str) else None,
    )


def error_from_response(
    status_code: int,
    body: Any = None,
    headers: Mapping[str, str] | None = None,
) -> GenerationError:
    """Create a GenerationError from a failed HTTP response.

    Args:
        status_code: HTTP status code
        body: Response body (parsed JSON, raw text, or None)
        headers: Response headers

    Returns:
        Classified GenerationError
    """
    retry_after = None
    if headers:
        lowered = {k.lower(): v for k, v in headers.items()}
        retry_after = parse_retry_after(lowered.get("retry-after"))

    envelope = body[0] if isinstance(body, list) and body else body
    error = envelope.get("error") if isinstance(envelope, dict) else None
    if isinstance(error, dict):
        return error_from_payload(
            error, status_code=status_code, retry_after=retry_after, body=body
        )

    message = extract_error_message(body) or f"HTTP {status_code}"
    if classify_status(status_code) == ErrorKind.RATE_LIMITED:
        return RateLimitExceeded(message, retry_after=retry_after, body=body)
    return HttpStatusFailure(message, status_code=status_code, body=body)
