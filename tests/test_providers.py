"""ProviderSpec 预设表测试"""

import pytest
from llmgate.exceptions import ConfigurationError
from llmgate.providers import (
    CAPABILITY_CONVERSATION,
    CAPABILITY_EMBEDDINGS,
    CAPABILITY_IMAGE_GENERATION,
    PROVIDER_SPECS,
    get_provider_spec,
)


class TestProviderSpecs:
    """预设表测试"""

    def test_all_providers_present(self):
        assert set(PROVIDER_SPECS) == {"openai", "claude", "gemini", "deepseek", "azure", "openrouter"}

    def test_lookup_is_case_insensitive(self):
        assert get_provider_spec(" OpenAI ").name == "openai"

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError) as exc_info:
            get_provider_spec("mistral")
        assert "unknown provider 'mistral'" in str(exc_info.value)

    @pytest.mark.parametrize(
        ("name", "embeddings", "images"),
        [
            ("openai", True, True),
            ("azure", True, True),
            ("claude", False, False),
            ("gemini", False, False),
            ("deepseek", False, False),
            ("openrouter", False, False),
        ],
    )
    def test_capabilities(self, name, embeddings, images):
        spec = get_provider_spec(name)
        assert spec.supports(CAPABILITY_EMBEDDINGS) is embeddings
        assert spec.supports(CAPABILITY_IMAGE_GENERATION) is images
        # Responses API 与 embeddings 同样只有 OpenAI 系 provider 提供
        assert spec.supports(CAPABILITY_CONVERSATION) is embeddings

    def test_openrouter_uses_remote_catalog(self):
        spec = get_provider_spec("openrouter")
        assert spec.catalog is None
        assert spec.remote_catalog_path == "models"

    def test_specs_frozen(self):
        with pytest.raises(Exception):
            get_provider_spec("openai").base_url = "http://elsewhere/"
