"""ProviderConfig 单元测试

验证环境变量加载、默认值与非法超时回退。
"""

import pytest
from llmgate.config import DEFAULT_TIMEOUT_S, ProviderConfig, load_provider_config

_ENV_VARS = (
    "LLMGATE_PROVIDER",
    "LLMGATE_API_KEY",
    "LLMGATE_BASE_URL",
    "LLMGATE_API_VERSION",
    "LLMGATE_LLM_MODE",
    "LLMGATE_TIMEOUT_S",
    "LLMGATE_CATALOG_PATH",
    "LLMGATE_MODEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestProviderConfig:
    """ProviderConfig 默认值测试"""

    def test_defaults(self):
        config = load_provider_config()
        assert config.provider == "openai"
        assert config.api_key.get_secret_value() == ""
        assert config.base_url is None
        assert config.llm_mode == "litellm"
        assert config.timeout_s == DEFAULT_TIMEOUT_S
        assert config.model == "gpt-4o-mini"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("LLMGATE_PROVIDER", "azure")
        monkeypatch.setenv("LLMGATE_API_KEY", "secret-key")
        monkeypatch.setenv("LLMGATE_BASE_URL", "https://example.openai.azure.com/")
        monkeypatch.setenv("LLMGATE_API_VERSION", "2024-06-01")
        monkeypatch.setenv("LLMGATE_LLM_MODE", "echo")
        monkeypatch.setenv("LLMGATE_TIMEOUT_S", "15")
        monkeypatch.setenv("LLMGATE_CATALOG_PATH", "/tmp/catalog.json")
        monkeypatch.setenv("LLMGATE_MODEL", "my-deployment")

        config = load_provider_config()

        assert config.provider == "azure"
        assert config.api_key.get_secret_value() == "secret-key"
        assert config.base_url == "https://example.openai.azure.com/"
        assert config.api_version == "2024-06-01"
        assert config.llm_mode == "echo"
        assert config.timeout_s == 15
        assert config.catalog_path == "/tmp/catalog.json"
        assert config.model == "my-deployment"

    def test_api_key_masked(self, monkeypatch):
        monkeypatch.setenv("LLMGATE_API_KEY", "secret-key")
        config = load_provider_config()
        assert "secret-key" not in repr(config)
        assert "secret-key" not in str(config.model_dump())

    @pytest.mark.parametrize("value", ["abc", "0", "-5"])
    def test_invalid_timeout_falls_back(self, monkeypatch, value):
        monkeypatch.setenv("LLMGATE_TIMEOUT_S", value)
        assert load_provider_config().timeout_s == DEFAULT_TIMEOUT_S

    def test_invalid_llm_mode(self, monkeypatch):
        from pydantic import ValidationError

        monkeypatch.setenv("LLMGATE_LLM_MODE", "mock")
        with pytest.raises(ValidationError):
            load_provider_config()

    def test_direct_construction(self):
        config = ProviderConfig(provider="claude", api_key="k")
        assert config.api_key.get_secret_value() == "k"
