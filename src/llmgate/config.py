"""ProviderConfig -- Provider 配置加载

从环境变量加载配置，不硬编码 provider/模型名。
"""

import os
from typing import Literal

import structlog
from pydantic import BaseModel, Field, SecretStr

log = structlog.get_logger()

DEFAULT_TIMEOUT_S = 60
DEFAULT_MODEL = "gpt-4o-mini"


class ProviderConfig(BaseModel):
    """llmgate 配置 -- 从环境变量加载

    环境变量:
        LLMGATE_PROVIDER: provider 名称（默认 openai）
        LLMGATE_API_KEY: provider API key
        LLMGATE_BASE_URL: 覆盖预设的 API 基础 URL
        LLMGATE_API_VERSION: API 版本（azure 必填）
        LLMGATE_LLM_MODE: 运行模式（litellm/echo）
        LLMGATE_TIMEOUT_S: 调用超时（秒，默认 60）
        LLMGATE_CATALOG_PATH: 覆盖预设目录的 JSON 文件路径
        LLMGATE_MODEL: CLI 默认模型（默认 gpt-4o-mini）
    """

    provider: str = Field(
        default="openai",
        description="provider 名称：openai / claude / gemini / deepseek / azure / openrouter",
    )
    api_key: SecretStr = Field(
        default=SecretStr(""),
        description="provider API key",
    )
    base_url: str | None = Field(
        default=None,
        description="API 基础 URL，None 时使用预设默认值",
    )
    api_version: str | None = Field(
        default=None,
        description="API 版本（azure 必填）",
    )
    llm_mode: Literal["litellm", "echo"] = Field(
        default="litellm",
        description="运行模式：litellm / echo",
    )
    timeout_s: int = Field(
        default=DEFAULT_TIMEOUT_S,
        ge=1,
        description="单次调用超时（秒）",
    )
    catalog_path: str | None = Field(
        default=None,
        description="自定义模型目录 JSON 路径",
    )
    model: str = Field(
        default=DEFAULT_MODEL,
        description="CLI 默认模型 id",
    )


def load_provider_config() -> ProviderConfig:
    """从环境变量加载配置

    未设置的变量使用默认值；超时值非法时记录 warning 并回退默认值。

    Returns:
        ProviderConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("LLMGATE_PROVIDER"):
        kwargs["provider"] = val

    if val := os.environ.get("LLMGATE_API_KEY"):
        kwargs["api_key"] = SecretStr(val)

    if val := os.environ.get("LLMGATE_BASE_URL"):
        kwargs["base_url"] = val

    if val := os.environ.get("LLMGATE_API_VERSION"):
        kwargs["api_version"] = val

    if val := os.environ.get("LLMGATE_LLM_MODE"):
        kwargs["llm_mode"] = val

    if val := os.environ.get("LLMGATE_TIMEOUT_S"):
        try:
            timeout_s = int(val)
        except ValueError:
            timeout_s = 0
        if timeout_s >= 1:
            kwargs["timeout_s"] = timeout_s
        else:
            log.warning(
                "invalid_timeout_config",
                env_var="LLMGATE_TIMEOUT_S",
                value=val,
                fallback=DEFAULT_TIMEOUT_S,
            )

    if val := os.environ.get("LLMGATE_CATALOG_PATH"):
        kwargs["catalog_path"] = val

    if val := os.environ.get("LLMGATE_MODEL"):
        kwargs["model"] = val

    return ProviderConfig(**kwargs)
