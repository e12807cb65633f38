"""Gemini 异步 Python 客户端：流式解码、重试、缓存句柄与上传进度。

gemini-ai-python: resilient async client for the Gemini API.

Streaming responses are decoded incrementally into generation chunks,
failures before the first chunk are retried under an explicit policy,
and every call is cancellable.
"""
from __future__ import annotations

from gemini_ai._version import __version__
from gemini_ai.cache import CachedContentManager, CacheHandle
from gemini_ai.client import (
    CallStats,
    CancelReason,
    CancelToken,
    ChatSession,
    GenerativeModel,
    GenerativeModelBuilder,
    ResponseStream,
    create_cancel_pair,
)
from gemini_ai.config import ClientConfig
from gemini_ai.errors import (
    Cancelled,
    DecodeFailure,
    ErrorKind,
    GeminiError,
    GenerationError,
    HttpStatusFailure,
    RateLimitExceeded,
    SafetyBlocked,
    TransportFailure,
    ValidationError,
)
from gemini_ai.files import FileInfo, FileManager, ProgressTrackingBody, UploadProgress
from gemini_ai.pipeline import FrameDecoder, FramingMode, GeminiEventMapper
from gemini_ai.resilience import RetryExecutor, RetryPolicy, with_retry
from gemini_ai.types import (
    Content,
    FinishReason,
    GenerateContentRequest,
    GenerationChunk,
    GenerationConfig,
    Role,
    UsageMetadata,
)

__all__ = [
    "__version__",
    # Client
    "CallStats",
    "ChatSession",
    "ClientConfig",
    "GenerativeModel",
    "GenerativeModelBuilder",
    "ResponseStream",
    # Cancellation
    "CancelReason",
    "CancelToken",
    "create_cancel_pair",
    # Cache and files
    "CacheHandle",
    "CachedContentManager",
    "FileInfo",
    "FileManager",
    "ProgressTrackingBody",
    "UploadProgress",
    # Pipeline
    "FrameDecoder",
    "FramingMode",
    "GeminiEventMapper",
    # Resilience
    "RetryExecutor",
    "RetryPolicy",
    "with_retry",
    # Types
    "Content",
    "FinishReason",
    "GenerateContentRequest",
    "GenerationChunk",
    "GenerationConfig",
    "Role",
    "UsageMetadata",
    # Errors
    "Cancelled",
    "DecodeFailure",
    "ErrorKind",
    "GeminiError",
    "GenerationError",
    "HttpStatusFailure",
    "RateLimitExceeded",
    "SafetyBlocked",
    "TransportFailure",
    "ValidationError",
]
