"""
Cached-content handles for reusing large prompt prefixes.
"""

from gemini_ai.cache.manager import (
    CachedContentManager,
    CacheHandle,
    format_duration,
    parse_duration,
    parse_timestamp,
    ttl_seconds,
)

__all__ = [
    "CacheHandle",
    "CachedContentManager",
    "format_duration",
    "parse_duration",
    "parse_timestamp",
    "ttl_seconds",
]
