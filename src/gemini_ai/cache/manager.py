"""
Cached-content handle manager.

A thin, stateless facade over the ``cachedContents`` resource. The
server is the source of truth for every handle; nothing is stored
locally. Preconditions are checked before any request is sent.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from gemini_ai.config import DEFAULT_API_VERSION
from gemini_ai.errors import DecodeFailure, ValidationError
from gemini_ai.resilience.retry import RetryExecutor, RetryPolicy
from gemini_ai.telemetry import get_logger
from gemini_ai.transport.base import TransportRequest
from gemini_ai.types.content import Content, InlineDataPart, Role

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from gemini_ai.transport.base import Transport

logger = get_logger(__name__)

_FRACTION_RE = re.compile(r"\.(\d+)")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an RFC 3339 timestamp such as ``2024-05-01T12:00:00.123456789Z``.

    Python's parser accepts at most microseconds, so longer fractions
    are truncated.
    """
    if not isinstance(value, str) or not value:
        return None
    text = value.strip().replace("Z", "+00:00").replace("z", "+00:00")
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise DecodeFailure(f"Invalid timestamp: {value}", fragment=value, cause=e) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_duration(value: Any) -> float | None:
    """Parse a protobuf duration string (``"300s"``, ``"1.5s"``) into seconds."""
    if not isinstance(value, str) or not value.endswith("s"):
        return None
    try:
        return float(value[:-1])
    except ValueError:
        return None


def ttl_seconds(ttl: float | int | timedelta) -> float:
    """Normalize and validate a TTL.

    Raises:
        ValidationError: If the TTL is not strictly positive
    """
    seconds = ttl.total_seconds() if isinstance(ttl, timedelta) else ttl
    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
        raise ValidationError(
            "ttl must be a number of seconds or a timedelta",
            field="ttl", expected="number | timedelta", actual=type(ttl).__name__,
        )
    if seconds <= 0:
        raise ValidationError(
            "ttl must be positive", field="ttl", expected="> 0", actual=seconds
        )
    return float(seconds)


def format_duration(seconds: float) -> str:
    """Format seconds as a protobuf duration string."""
    if float(seconds).is_integer():
        return f"{int(seconds)}s"
    return f"{seconds:.9f}".rstrip("0") + "s"


def _resource_name(handle_or_name: CacheHandle | str) -> str:
    name = handle_or_name.name if isinstance(handle_or_name, CacheHandle) else handle_or_name
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Cache name must not be empty", field="name", actual=name)
    name = name.strip()
    return name if name.startswith("cachedContents/") else f"cachedContents/{name}"


def _model_name(model: str) -> str:
    if not model or not model.strip():
        raise ValidationError("Model name must not be empty", field="model")
    return model if "/" in model else f"models/{model}"


@dataclass(frozen=True)
class CacheHandle:
    """Server-side cached content, identified by its resource name.

    Attributes:
        name: Resource name, e.g. ``cachedContents/abc123``
        model: Model the content was cached for
        create_time: Creation time
        update_time: Last update time
        expire_time: Expiry time
        ttl: TTL in seconds, when the server echoed one
        display_name: Optional display name
        total_token_count: Number of cached tokens
    """

    name: str
    model: str | None = None
    create_time: datetime | None = None
    update_time: datetime | None = None
    expire_time: datetime | None = None
    ttl: float | None = None
    display_name: str | None = None
    total_token_count: int | None = None

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> CacheHandle:
        """Build a handle from a ``CachedContent`` resource.

        Raises:
            DecodeFailure: If the resource has no name
        """
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise DecodeFailure("Cached content resource has no name", fragment=str(data))
        usage = data.get("usageMetadata")
        tokens = usage.get("totalTokenCount") if isinstance(usage, dict) else None
        return cls(
            name=name,
            model=data.get("model"),
            create_time=parse_timestamp(data.get("createTime")),
            update_time=parse_timestamp(data.get("updateTime")),
            expire_time=parse_timestamp(data.get("expireTime")),
            ttl=parse_duration(data.get("ttl")),
            display_name=data.get("displayName"),
            total_token_count=tokens if isinstance(tokens, int) else None,
        )

    def is_clearly_expired(self, now: datetime | None = None) -> bool:
        """Whether the expiry time has passed.

        Without a known expiry the handle is not considered expired.
        """
        if self.expire_time is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.expire_time


class CachedContentManager:
    """Create, inspect, extend and delete cached-content handles.

    Example:
        >>> caches = CachedContentManager(transport)
        >>> handle = await caches.create(
        ...     "gemini-1.5-flash-001", [Content.user(long_document)], ttl=300
        ... )
        >>> await model.generate_content("Summarize", cached_content=handle)
        >>> await caches.delete(handle)
    """

    def __init__(
        self,
        transport: Transport,
        *,
        policy: RetryPolicy | None = None,
        api_version: str = DEFAULT_API_VERSION,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            transport: Transport used for every request
            policy: Retry policy (a single attempt if None)
            api_version: API version path segment
            sleep: Backoff sleep override
        """
        self._transport = transport
        self._executor = RetryExecutor(policy or RetryPolicy.no_retry(), sleep=sleep)
        self._api_version = api_version

    def _path(self, suffix: str) -> str:
        return f"/{self._api_version}/{suffix}"

    async def _call(self, request: TransportRequest) -> Any:
        async def attempt() -> Any:
            response = await self._transport.send(request)
            return response.json()

        result = await self._executor.execute(attempt)
        return result.unwrap()

    async def create(
        self,
        model: str,
        contents: Sequence[Content],
        ttl: float | int | timedelta,
        *,
        system_instruction: Content | str | None = None,
        display_name: str | None = None,
    ) -> CacheHandle:
        """Create a cached content.

        Args:
            model: Model the content will be used with
            contents: Content to cache (non-empty)
            ttl: Lifetime in seconds or as a timedelta (positive)
            system_instruction: Optional system instruction to cache
            display_name: Optional display name

        Returns:
            Handle of the created resource

        Raises:
            ValidationError: On a non-positive TTL or empty contents
        """
        seconds = ttl_seconds(ttl)
        contents = list(contents)
        if not contents or all(not c.parts for c in contents):
            raise ValidationError("Cached contents must not be empty", field="contents")

        payload: dict[str, Any] = {
            "model": _model_name(model),
            "contents": [c.to_wire() for c in contents],
            "ttl": format_duration(seconds),
        }
        if system_instruction is not None:
            if isinstance(system_instruction, str):
                system_instruction = Content.text(system_instruction)
            payload["systemInstruction"] = system_instruction.to_wire()
        if display_name:
            payload["displayName"] = display_name

        data = await self._call(
            TransportRequest("POST", self._path("cachedContents"), json=payload)
        )
        handle = CacheHandle.from_wire(data)
        logger.info("Created cached content", name=handle.name, ttl=seconds)
        return handle

    async def create_from_file(
        self,
        model: str,
        path: str | Path,
        ttl: float | int | timedelta,
        *,
        mime_type: str | None = None,
        system_instruction: Content | str | None = None,
        display_name: str | None = None,
    ) -> CacheHandle:
        """Cache the bytes of a local file as inline data."""
        ttl_seconds(ttl)
        part = InlineDataPart.from_path(path, mime_type)
        return await self.create(
            model,
            [Content(role=Role.USER, parts=(part,))],
            ttl,
            system_instruction=system_instruction,
            display_name=display_name,
        )

    async def get(self, name: CacheHandle | str) -> CacheHandle:
        """Fetch the current server-side state of a handle."""
        resource = _resource_name(name)
        data = await self._call(TransportRequest("GET", self._path(resource)))
        return CacheHandle.from_wire(data)

    async def list(self, *, page_size: int | None = None) -> list[CacheHandle]:
        """List all cached contents, following pagination."""
        handles: list[CacheHandle] = []
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {}
            if page_size:
                params["pageSize"] = page_size
            if page_token:
                params["pageToken"] = page_token
            data = await self._call(
                TransportRequest("GET", self._path("cachedContents"), params=params or None)
            )
            handles.extend(CacheHandle.from_wire(item) for item in data.get("cachedContents", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                return handles

    async def update_ttl(
        self, name: CacheHandle | str, ttl: float | int | timedelta
    ) -> CacheHandle:
        """Replace the TTL of a handle, counting from now.

        Raises:
            ValidationError: On a non-positive TTL or empty name
        """
        seconds = ttl_seconds(ttl)
        resource = _resource_name(name)
        data = await self._call(
            TransportRequest(
                "PATCH",
                self._path(resource),
                json={"ttl": format_duration(seconds)},
                params={"updateMask": "ttl"},
            )
        )
        handle = CacheHandle.from_wire(data)
        logger.info("Updated cached content TTL", name=handle.name, ttl=seconds)
        return handle

    async def delete(self, name: CacheHandle | str) -> None:
        """Delete a handle. Later requests referencing it will fail remotely."""
        resource = _resource_name(name)
        await self._call(TransportRequest("DELETE", self._path(resource)))
        logger.info("Deleted cached content", name=resource)
