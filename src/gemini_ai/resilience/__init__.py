"""
Resilience layer: bounded retry with exponential backoff.
"""

from gemini_ai.resilience.retry import (
    DEFAULT_RETRYABLE_KINDS,
    DEFAULT_RETRYABLE_STATUS,
    RetryExecutor,
    RetryPolicy,
    RetryResult,
    with_retry,
)

__all__ = [
    "DEFAULT_RETRYABLE_KINDS",
    "DEFAULT_RETRYABLE_STATUS",
    "RetryExecutor",
    "RetryPolicy",
    "RetryResult",
    "with_retry",
]
