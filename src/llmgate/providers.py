"""ProviderSpec -- Provider 预设表

所有 provider 都走同一个 OpenAI 兼容后端，差异仅在于 base URL、
默认请求头、模型目录与能力集合，因此用配置值而非子类表达。
"""

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ConfigurationError

CAPABILITY_EMBEDDINGS = "embeddings"
CAPABILITY_IMAGE_GENERATION = "image generation"
CAPABILITY_CONVERSATION = "conversation"


class ProviderSpec(BaseModel):
    """单个 provider 的静态描述"""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="provider 标识（openai / claude / ...）")
    display_name: str = Field(description="错误信息中展示的名称")
    base_url: str | None = Field(
        default=None,
        description="默认 API 基础 URL，None 表示使用 SDK 默认值",
    )
    extra_headers: dict[str, str] = Field(
        default_factory=dict,
        description="每个请求附带的默认请求头",
    )
    wire_prefix: str = Field(
        default="openai",
        description="litellm 模型路由前缀（openai/ 表示 OpenAI 兼容端点）",
    )
    catalog: str | None = Field(
        default=None,
        description="包内静态目录文件名（不含 .json）",
    )
    remote_catalog_path: str | None = Field(
        default=None,
        description="远程模型列表路径（相对 base_url），构造时拉取一次",
    )
    capabilities: frozenset[str] = Field(
        default_factory=frozenset,
        description="completion 之外支持的能力",
    )
    requires_api_key: bool = True
    requires_base_url: bool = False
    requires_api_version: bool = False

    def supports(self, capability: str) -> bool:
        return capability in self.capabilities


PROVIDER_SPECS: dict[str, ProviderSpec] = {
    spec.name: spec
    for spec in (
        ProviderSpec(
            name="openai",
            display_name="OpenAI",
            catalog="openai",
            capabilities=frozenset(
                {CAPABILITY_EMBEDDINGS, CAPABILITY_IMAGE_GENERATION, CAPABILITY_CONVERSATION}
            ),
        ),
        ProviderSpec(
            name="claude",
            display_name="Claude",
            base_url="https://api.anthropic.com/v1/",
            extra_headers={"anthropic-version": "2023-06-01"},
            catalog="claude",
        ),
        ProviderSpec(
            name="gemini",
            display_name="Gemini",
            base_url="https://generativelanguage.googleapis.com/v1beta/openai/",
            catalog="gemini",
        ),
        ProviderSpec(
            name="deepseek",
            display_name="DeepSeek",
            base_url="https://api.deepseek.com/",
            catalog="deepseek",
        ),
        ProviderSpec(
            name="azure",
            display_name="Azure OpenAI",
            wire_prefix="azure",
            catalog="azure",
            capabilities=frozenset(
                {CAPABILITY_EMBEDDINGS, CAPABILITY_IMAGE_GENERATION, CAPABILITY_CONVERSATION}
            ),
            requires_base_url=True,
            requires_api_version=True,
        ),
        ProviderSpec(
            name="openrouter",
            display_name="OpenRouter",
            base_url="https://openrouter.ai/api/v1/",
            remote_catalog_path="models",
        ),
    )
}


def get_provider_spec(name: str) -> ProviderSpec:
    """按名称查询预设

    Raises:
        ConfigurationError: 未知 provider
    """
    spec = PROVIDER_SPECS.get(name.strip().lower())
    if spec is None:
        known = ", ".join(sorted(PROVIDER_SPECS))
        raise ConfigurationError(f"unknown provider '{name}' (known: {known})")
    return spec
