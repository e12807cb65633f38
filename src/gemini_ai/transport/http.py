"""HTTP 传输层：基于 httpx 的异步 HTTP 客户端，支持流式传输和代理。

HTTP transport using httpx for async requests.

Provides:
- Async streaming support
- Configurable timeouts
- Proxy support
- API key header management
- Error classification for non-success statuses
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import httpx

from gemini_ai._version import __version__
from gemini_ai.config import ClientConfig
from gemini_ai.errors import TransportFailure
from gemini_ai.errors.classification import error_from_response
from gemini_ai.telemetry import get_logger
from gemini_ai.transport.base import TransportRequest, TransportResponse

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = get_logger(__name__)

API_KEY_HEADER = "x-goog-api-key"


def _parse_error_body(raw: bytes) -> Any:
    text = raw.decode("utf-8", errors="replace")
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


class HttpTransport:
    """HTTP transport for the Gemini REST API.

    Example:
        >>> transport = HttpTransport(ClientConfig.from_env())
        >>> response = await transport.send(
        ...     TransportRequest("GET", "/v1beta/models")
        ... )
        >>> response.json()["models"][0]["name"]
        'models/gemini-1.5-flash'
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize HTTP transport.

        Args:
            config: Client configuration (read from the environment if None)
            client: Pre-built httpx client, used as-is
        """
        self._config = config or ClientConfig.from_env()
        self._client = client
        self._owns_client = client is None

    @property
    def config(self) -> ClientConfig:
        return self._config

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            timeout = httpx.Timeout(
                self._config.timeout,
                connect=self._config.connect_timeout,
            )
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url,
                timeout=timeout,
                proxy=self._config.proxy,
                trust_env=self._config.trust_env,
            )
        return self._client

    def _build_headers(self, extra_headers: dict[str, str] | None = None) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": f"gemini-ai-python/{__version__}",
        }
        if self._config.api_key:
            headers[API_KEY_HEADER] = self._config.api_key
        headers.update(self._config.headers)
        if extra_headers:
            headers.update(extra_headers)
        return headers

    async def send(self, request: TransportRequest) -> TransportResponse:
        """Send a request.

        Args:
            request: Request description

        Returns:
            Response; unread when ``request.stream`` is set, fully read otherwise

        Raises:
            TransportFailure: On network/connection errors
            GenerationError: Classified error for statuses >= 400
        """
        client = self._get_client()
        http_request = client.build_request(
            request.method,
            request.path,
            json=request.json,
            params=request.params,
            headers=self._build_headers(request.headers),
            content=request.content,
        )
        url = str(http_request.url.copy_remove_param("key"))
        logger.debug("HTTP request", method=request.method, url=url, stream=request.stream)

        try:
            response = await client.send(http_request, stream=True)
        except httpx.TimeoutException as e:
            raise TransportFailure(f"Request timed out: {e}", url=url, cause=e) from e
        except httpx.HTTPError as e:
            raise TransportFailure(f"Connection failed: {e}", url=url, cause=e) from e

        if response.status_code >= 400:
            try:
                raw = await response.aread()
            except httpx.HTTPError as e:
                raise TransportFailure(f"Failed reading error body: {e}", url=url, cause=e) from e
            finally:
                await response.aclose()
            error = error_from_response(
                response.status_code, _parse_error_body(raw), dict(response.headers)
            )
            logger.debug(
                "HTTP error response",
                url=url,
                status_code=response.status_code,
                kind=error.kind.value,
            )
            raise error

        if request.stream:
            return TransportResponse(
                response.status_code,
                response.headers,
                stream=self._iter_body(response, url),
                on_close=response.aclose,
            )

        try:
            content = await response.aread()
        except httpx.HTTPError as e:
            raise TransportFailure(f"Failed reading response: {e}", url=url, cause=e) from e
        finally:
            await response.aclose()
        return TransportResponse(response.status_code, response.headers, content=content)

    async def _iter_body(self, response: httpx.Response, url: str) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as e:
            raise TransportFailure(f"Stream interrupted: {e}", url=url, cause=e) from e

    async def aclose(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()
