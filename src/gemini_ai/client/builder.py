"""
Builder for fluent GenerativeModel construction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from gemini_ai.config import ClientConfig
from gemini_ai.resilience.retry import RetryPolicy

if TYPE_CHECKING:
    from gemini_ai.client.core import GenerativeModel
    from gemini_ai.transport.base import Transport
    from gemini_ai.types.content import Content
    from gemini_ai.types.request import GenerationConfig, Tool, ToolConfig
    from gemini_ai.types.safety import SafetySetting


class GenerativeModelBuilder:
    """Builder for creating GenerativeModel instances with custom configuration.

    Unset settings fall back to the environment (see ClientConfig.from_env).

    Example:
        >>> model = (
        ...     GenerativeModel.builder()
        ...     .model("gemini-1.5-pro")
        ...     .timeout(120)
        ...     .retry(RetryPolicy(max_attempts=5))
        ...     .system_instruction("Answer in one sentence.")
        ...     .build()
        ... )
    """

    def __init__(self) -> None:
        self._config: dict[str, Any] = {}
        self._base_config: ClientConfig | None = None
        self._transport: Transport | None = None
        self._model_kwargs: dict[str, Any] = {}

    def config(self, config: ClientConfig) -> GenerativeModelBuilder:
        """Start from an existing config; later builder calls override it."""
        self._base_config = config
        return self

    def model(self, model: str) -> GenerativeModelBuilder:
        """Set the model to use.

        Args:
            model: Model name (e.g., "gemini-1.5-flash")

        Returns:
            Self for chaining
        """
        self._config["model"] = model
        return self

    def api_key(self, key: str) -> GenerativeModelBuilder:
        self._config["api_key"] = key
        return self

    def base_url(self, url: str) -> GenerativeModelBuilder:
        self._config["base_url"] = url
        return self

    def api_version(self, version: str) -> GenerativeModelBuilder:
        self._config["api_version"] = version
        return self

    def timeout(self, seconds: float, *, connect: float | None = None) -> GenerativeModelBuilder:
        """Set request timeouts.

        Args:
            seconds: Read/write timeout in seconds
            connect: Connect timeout in seconds

        Returns:
            Self for chaining
        """
        self._config["timeout"] = seconds
        if connect is not None:
            self._config["connect_timeout"] = connect
        return self

    def proxy(self, url: str) -> GenerativeModelBuilder:
        self._config["proxy"] = url
        return self

    def header(self, name: str, value: str) -> GenerativeModelBuilder:
        self._config.setdefault("headers", {})[name] = value
        return self

    def retry(self, policy: RetryPolicy) -> GenerativeModelBuilder:
        self._config["retry"] = policy
        return self

    def no_retry(self) -> GenerativeModelBuilder:
        return self.retry(RetryPolicy.no_retry())

    def transport(self, transport: Transport) -> GenerativeModelBuilder:
        """Use a custom transport instead of the default httpx one."""
        self._transport = transport
        return self

    def generation_config(self, config: GenerationConfig) -> GenerativeModelBuilder:
        self._model_kwargs["generation_config"] = config
        return self

    def safety_settings(self, settings: list[SafetySetting]) -> GenerativeModelBuilder:
        self._model_kwargs["safety_settings"] = settings
        return self

    def system_instruction(self, instruction: Content | str) -> GenerativeModelBuilder:
        self._model_kwargs["system_instruction"] = instruction
        return self

    def tools(self, tools: list[Tool], config: ToolConfig | None = None) -> GenerativeModelBuilder:
        self._model_kwargs["tools"] = tools
        if config is not None:
            self._model_kwargs["tool_config"] = config
        return self

    def build_config(self) -> ClientConfig:
        """Resolve the ClientConfig this builder describes."""
        if self._base_config is not None:
            return self._base_config.replace(**self._config)
        return ClientConfig.from_env(**self._config)

    def build(self) -> GenerativeModel:
        """Build the GenerativeModel instance.

        Returns:
            Configured GenerativeModel
        """
        from gemini_ai.client.core import GenerativeModel

        config = self.build_config()
        return GenerativeModel(
            config.model,
            self._transport,
            config=config,
            **self._model_kwargs,
        )
