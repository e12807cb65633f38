"""Tests for client configuration and the model builder."""

import pytest

from gemini_ai.client import GenerativeModel
from gemini_ai.config import (
    DEFAULT_BASE_URL,
    DEFAULT_MODEL,
    ClientConfig,
    resolve_api_key,
)
from gemini_ai.errors import ValidationError
from gemini_ai.resilience import RetryPolicy
from gemini_ai.types import GenerationConfig

_ENV_VARS = (
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "GEMINI_BASE_URL",
    "GOOGLE_BASE_URL",
    "GEMINI_MODEL",
    "GEMINI_HTTP_TIMEOUT_SECS",
    "GEMINI_HTTP_TRUST_ENV",
    "GEMINI_PROXY_URL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Isolate every test from the caller's environment."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestClientConfig:
    """Tests for ClientConfig."""

    def test_defaults(self) -> None:
        """Test built-in defaults."""
        config = ClientConfig()
        assert config.base_url == DEFAULT_BASE_URL
        assert config.api_version == "v1beta"
        assert config.model == DEFAULT_MODEL
        assert config.api_key is None
        assert config.retry == RetryPolicy()

    def test_invalid_timeout(self) -> None:
        """Test non-positive timeouts are rejected."""
        with pytest.raises(ValidationError):
            ClientConfig(timeout=0)
        with pytest.raises(ValidationError):
            ClientConfig(connect_timeout=-1)

    def test_base_url_trailing_slash(self) -> None:
        """Test the base URL is normalized."""
        assert ClientConfig(base_url="https://proxy.test/").base_url == "https://proxy.test"

    def test_retry_from_mapping(self) -> None:
        """Test a retry mapping becomes a policy."""
        config = ClientConfig(retry={"max_attempts": 5})
        assert config.retry.max_attempts == 5

    def test_paths(self) -> None:
        """Test versioned request paths."""
        config = ClientConfig(api_version="v1")
        assert config.api_path("models/gemini-1.5-flash") == "/v1/models/gemini-1.5-flash"
        assert config.upload_path("/files") == "/upload/v1/files"

    def test_from_env(self, monkeypatch) -> None:
        """Test environment variables are read."""
        monkeypatch.setenv("GOOGLE_API_KEY", "google-key")
        monkeypatch.setenv("GEMINI_BASE_URL", "https://gateway.test")
        monkeypatch.setenv("GEMINI_MODEL", "gemini-1.5-pro")
        monkeypatch.setenv("GEMINI_HTTP_TIMEOUT_SECS", "12.5")

        config = ClientConfig.from_env()

        assert config.api_key == "google-key"
        assert config.base_url == "https://gateway.test"
        assert config.model == "gemini-1.5-pro"
        assert config.timeout == 12.5
        assert config.proxy is None
        assert config.trust_env is False

    def test_gemini_key_wins(self, monkeypatch) -> None:
        """Test GEMINI_API_KEY takes precedence over GOOGLE_API_KEY."""
        monkeypatch.setenv("GEMINI_API_KEY", "gemini-key")
        monkeypatch.setenv("GOOGLE_API_KEY", "google-key")
        assert resolve_api_key() == "gemini-key"
        assert resolve_api_key("explicit") == "explicit"

    def test_proxy_requires_trust_env(self, monkeypatch) -> None:
        """Test the proxy is only honoured with GEMINI_HTTP_TRUST_ENV=1."""
        monkeypatch.setenv("GEMINI_PROXY_URL", "http://proxy.test:3128")
        assert ClientConfig.from_env().proxy is None

        monkeypatch.setenv("GEMINI_HTTP_TRUST_ENV", "1")
        config = ClientConfig.from_env()
        assert config.proxy == "http://proxy.test:3128"
        assert config.trust_env is True

    def test_invalid_env_timeout(self, monkeypatch) -> None:
        """Test a malformed timeout variable is rejected."""
        monkeypatch.setenv("GEMINI_HTTP_TIMEOUT_SECS", "soon")
        with pytest.raises(ValidationError):
            ClientConfig.from_env()

    def test_overrides_win(self, monkeypatch) -> None:
        """Test explicit values override the environment."""
        monkeypatch.setenv("GEMINI_MODEL", "gemini-1.5-pro")
        assert ClientConfig.from_env(model="gemini-1.5-flash-8b").model == "gemini-1.5-flash-8b"

    def test_from_file(self, tmp_path, monkeypatch) -> None:
        """Test loading a YAML config file."""
        monkeypatch.setenv("GEMINI_API_KEY", "env-key")
        path = tmp_path / "gemini.yaml"
        path.write_text(
            "model: gemini-1.5-pro\n"
            "timeout: 120\n"
            "retry:\n"
            "  max_attempts: 5\n"
            "  base_delay: 0.5\n"
            "  retryable_status: [500, 503]\n"
        )

        config = ClientConfig.from_file(path)

        assert config.model == "gemini-1.5-pro"
        assert config.timeout == 120
        assert config.api_key == "env-key"
        assert config.retry.max_attempts == 5
        assert config.retry.retryable_status == frozenset({500, 503})

    def test_from_file_unknown_key(self, tmp_path) -> None:
        """Test unknown keys in the file are rejected."""
        path = tmp_path / "gemini.yaml"
        path.write_text("modle: gemini-1.5-pro\n")
        with pytest.raises(ValidationError, match="modle"):
            ClientConfig.from_file(path)

    def test_from_file_invalid_yaml(self, tmp_path) -> None:
        """Test unparsable YAML is rejected."""
        path = tmp_path / "gemini.yaml"
        path.write_text("model: [unclosed\n")
        with pytest.raises(ValidationError):
            ClientConfig.from_file(path)

    def test_from_file_not_mapping(self, tmp_path) -> None:
        """Test a YAML list is rejected."""
        path = tmp_path / "gemini.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValidationError, match="mapping"):
            ClientConfig.from_file(path)


class TestGenerativeModelBuilder:
    """Tests for the fluent builder."""

    def test_build(self) -> None:
        """Test builder settings reach the model and its config."""
        model = (
            GenerativeModel.builder()
            .api_key("test-key")
            .model("gemini-1.5-pro")
            .timeout(90, connect=5)
            .header("x-client", "tests")
            .retry(RetryPolicy(max_attempts=5))
            .generation_config(GenerationConfig(temperature=0.1))
            .system_instruction("Be brief.")
            .build()
        )

        assert model.model_name == "models/gemini-1.5-pro"
        assert model.config.api_key == "test-key"
        assert model.config.timeout == 90
        assert model.config.connect_timeout == 5
        assert model.config.headers == {"x-client": "tests"}
        assert model.policy.max_attempts == 5
        request = model.build_request("hi")
        assert request.generation_config.temperature == 0.1
        assert request.system_instruction.parts[0].text == "Be brief."

    def test_build_from_config(self, scripted_transport) -> None:
        """Test starting from an existing config and a custom transport."""
        transport = scripted_transport()
        base = ClientConfig(api_key="k", model="gemini-1.5-flash")
        model = GenerativeModel.builder().config(base).no_retry().transport(transport).build()

        assert model.transport is transport
        assert model.policy.max_attempts == 1
        assert model.config.api_key == "k"
