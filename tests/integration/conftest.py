"""
Integration test fixtures.

Tests drive the real httpx transport; pytest-httpx answers in place of
the service.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

import pytest
import pytest_asyncio

from gemini_ai.client import GenerativeModel
from gemini_ai.config import DEFAULT_BASE_URL, ClientConfig
from gemini_ai.resilience import RetryPolicy

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

API_KEY = "AIzaSyTest-integration-key-0000000000"


@pytest.fixture
def api_url() -> Any:
    """Absolute URL for a versioned API path."""

    def build(path: str) -> str:
        return f"{DEFAULT_BASE_URL}/v1beta/{path.lstrip('/')}"

    return build


@pytest.fixture
def api_pattern() -> Any:
    """URL pattern matching a versioned API path with any query string."""

    def build(path: str) -> re.Pattern[str]:
        base = re.escape(f"{DEFAULT_BASE_URL}/v1beta/{path.lstrip('/')}")
        return re.compile(rf"{base}(\?.*)?$")

    return build


@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(
        api_key=API_KEY,
        retry=RetryPolicy(max_attempts=3, jitter_fraction=0.0),
    )


@pytest_asyncio.fixture
async def model(config, recording_sleep) -> AsyncIterator[GenerativeModel]:
    """Model over an httpx transport it owns."""
    client = GenerativeModel("gemini-1.5-flash", config=config, sleep=recording_sleep)
    yield client
    await client.aclose()
