"""
Client configuration.

Resolution order for every setting:
1. Explicit value
2. Config file (``ClientConfig.from_file``)
3. Environment variables
4. Built-in defaults

Environment variables:
- ``GEMINI_API_KEY`` / ``GOOGLE_API_KEY``: API key
- ``GEMINI_BASE_URL`` / ``GOOGLE_BASE_URL``: service root URL
- ``GEMINI_HTTP_TIMEOUT_SECS``: request timeout in seconds
- ``GEMINI_HTTP_TRUST_ENV``: set to ``1`` to honour proxy settings
- ``GEMINI_PROXY_URL``: proxy URL (only with ``GEMINI_HTTP_TRUST_ENV=1``)
- ``GEMINI_MODEL``: default model name
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from gemini_ai.errors import ValidationError
from gemini_ai.resilience.retry import RetryPolicy

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"
DEFAULT_API_VERSION = "v1beta"
DEFAULT_MODEL = "gemini-1.5-flash"
DEFAULT_TIMEOUT = 60.0
DEFAULT_CONNECT_TIMEOUT = 10.0

_API_KEY_ENV = ("GEMINI_API_KEY", "GOOGLE_API_KEY")
_BASE_URL_ENV = ("GEMINI_BASE_URL", "GOOGLE_BASE_URL")


def _first_env(names: tuple[str, ...]) -> str | None:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


def trust_env_enabled() -> bool:
    """Use env proxy settings only when explicitly enabled."""
    return os.getenv("GEMINI_HTTP_TRUST_ENV", "0") == "1"


def resolve_api_key(explicit_key: str | None = None) -> str | None:
    """Resolve the API key from an explicit value or the environment.

    Args:
        explicit_key: Explicitly provided API key

    Returns:
        Resolved API key or None if not found
    """
    if explicit_key:
        return explicit_key
    return _first_env(_API_KEY_ENV)


@dataclass
class ClientConfig:
    """Settings shared by every client built on one transport.

    Attributes:
        api_key: Google AI API key
        base_url: Service root URL (without version)
        api_version: API version path segment
        model: Default model name
        timeout: Read/write timeout in seconds
        connect_timeout: Connect timeout in seconds
        proxy: Proxy URL
        trust_env: Let httpx read proxy/CA settings from the environment
        retry: Retry policy for calls made with this config
        headers: Extra headers sent with every request
    """

    api_key: str | None = None
    base_url: str = DEFAULT_BASE_URL
    api_version: str = DEFAULT_API_VERSION
    model: str = DEFAULT_MODEL
    timeout: float = DEFAULT_TIMEOUT
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    proxy: str | None = None
    trust_env: bool = False
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValidationError(
                "timeout must be positive", field="timeout", expected="> 0", actual=self.timeout
            )
        if self.connect_timeout <= 0:
            raise ValidationError(
                "connect_timeout must be positive",
                field="connect_timeout", expected="> 0", actual=self.connect_timeout,
            )
        self.base_url = self.base_url.rstrip("/")
        if isinstance(self.retry, dict):
            self.retry = RetryPolicy.from_dict(self.retry)

    @classmethod
    def from_env(cls, **overrides: Any) -> ClientConfig:
        """Build a config from environment variables.

        Args:
            **overrides: Explicit values taking precedence over the environment

        Returns:
            ClientConfig instance
        """
        values: dict[str, Any] = {}
        if key := resolve_api_key():
            values["api_key"] = key
        if base_url := _first_env(_BASE_URL_ENV):
            values["base_url"] = base_url
        if model := os.getenv("GEMINI_MODEL"):
            values["model"] = model
        if timeout := os.getenv("GEMINI_HTTP_TIMEOUT_SECS"):
            try:
                values["timeout"] = float(timeout)
            except ValueError as e:
                raise ValidationError(
                    "GEMINI_HTTP_TIMEOUT_SECS must be a number",
                    field="GEMINI_HTTP_TIMEOUT_SECS", actual=timeout,
                ) from e
        if trust_env_enabled():
            values["trust_env"] = True
            if proxy := os.getenv("GEMINI_PROXY_URL"):
                values["proxy"] = proxy

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @classmethod
    def from_file(cls, path: str | Path, **overrides: Any) -> ClientConfig:
        """Load a YAML config file.

        Example file::

            model: gemini-1.5-pro
            timeout: 120
            retry:
              max_attempts: 5
              base_delay: 0.5

        Settings missing from the file fall back to the environment.

        Args:
            path: YAML file path
            **overrides: Explicit values taking precedence over the file

        Returns:
            ClientConfig instance

        Raises:
            ValidationError: On unreadable YAML or unknown keys
        """
        path = Path(path)
        try:
            with path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValidationError(f"Invalid YAML in {path}: {e}", field=str(path)) from e

        if not isinstance(data, dict):
            raise ValidationError(
                "Config file must contain a mapping", field=str(path),
                expected="mapping", actual=type(data).__name__,
            )

        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValidationError(
                f"Unknown config keys: {', '.join(unknown)}",
                field=str(path), expected=sorted(known), actual=unknown,
            )

        if "retry" in data:
            data["retry"] = RetryPolicy.from_dict(data["retry"])
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_env(**data)

    def replace(self, **changes: Any) -> ClientConfig:
        """Return a copy with the given fields replaced."""
        return dataclasses.replace(self, **changes)

    def api_path(self, path: str) -> str:
        """Versioned request path, e.g. ``/v1beta/models/gemini-1.5-flash``."""
        return f"/{self.api_version}/{path.lstrip('/')}"

    def upload_path(self, path: str) -> str:
        """Versioned media upload path, e.g. ``/upload/v1beta/files``."""
        return f"/upload/{self.api_version}/{path.lstrip('/')}"
