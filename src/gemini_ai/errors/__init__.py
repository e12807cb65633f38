"""错误体系：提供生成调用的封闭错误分类。

Error hierarchy for gemini-ai-python.

Every failure surfaced by a generation call belongs to the closed
GenerationError taxonomy; local precondition failures raise ValidationError.
"""

from gemini_ai.errors.base import (
    Cancelled,
    DecodeFailure,
    ErrorContext,
    ErrorKind,
    FileProcessingError,
    GeminiError,
    GenerationError,
    HttpStatusFailure,
    RateLimitExceeded,
    SafetyBlocked,
    TransportFailure,
    ValidationError,
)
from gemini_ai.errors.classification import (
    classify_status,
    error_from_payload,
    error_from_response,
    extract_error_message,
    parse_retry_after,
)

__all__ = [
    "Cancelled",
    "DecodeFailure",
    "ErrorContext",
    "ErrorKind",
    "FileProcessingError",
    "GeminiError",
    "GenerationError",
    "HttpStatusFailure",
    "RateLimitExceeded",
    "SafetyBlocked",
    "TransportFailure",
    "ValidationError",
    "classify_status",
    "error_from_payload",
    "error_from_response",
    "extract_error_message",
    "parse_retry_after",
]
