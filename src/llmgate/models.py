"""数据模型 -- 模型目录、消息、请求/响应、Token 统计

所有 provider 共享的规范化数据结构。目录类模型（ModelInfo/ModelPricing）
加载后只读；请求类模型由调用方构造，在单次调用内使用。
"""

import json
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from .exceptions import ValidationError


class MessageRole(StrEnum):
    """规范消息角色"""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ReasoningEffort(StrEnum):
    """推理强度"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ReasoningSummary(StrEnum):
    """conversation 推理摘要详细程度"""

    AUTO = "auto"
    CONCISE = "concise"
    DETAILED = "detailed"


class ResponseFormat(StrEnum):
    """结构化输出模式"""

    JSON = "json"
    JSON_SCHEMA = "json_schema"


VALID_ROLES: frozenset[str] = frozenset(MessageRole)


def _alias(*names: str) -> AliasChoices:
    """目录字段同时接受 snake_case 与 camelCase"""
    return AliasChoices(*names)


# ============================================================
# 模型目录
# ============================================================


class ModelPricing(BaseModel):
    """模型价格表

    token 类价格单位为「每百万 token」，image/request/web_search 为单次价格。
    保留目录原始编码（字符串或数值），由 CostCalculator 负责解析；
    未设置或为 0 表示该维度不计费。
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    prompt: str | float | None = None
    completion: str | float | None = None
    internal_reasoning: str | float | None = Field(
        default=None,
        validation_alias=_alias("internal_reasoning", "internalReasoning"),
    )
    input_cache_read: str | float | None = Field(
        default=None,
        validation_alias=_alias("input_cache_read", "inputCacheRead"),
    )
    input_cache_write: str | float | None = Field(
        default=None,
        validation_alias=_alias("input_cache_write", "inputCacheWrite"),
    )
    image: str | float | None = None
    request: str | float | None = None
    web_search: str | float | None = Field(
        default=None,
        validation_alias=_alias("web_search", "webSearch"),
    )


class ModelCapabilities(BaseModel):
    """模型能力标记"""

    model_config = ConfigDict(frozen=True)

    reasoning: bool = False
    embedding: bool = False
    input: tuple[str, ...] = ("text",)
    output: tuple[str, ...] = ("text",)


class ModelInfo(BaseModel):
    """单个模型的目录条目，加载后不可变"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str = ""
    pricing: ModelPricing = Field(default_factory=ModelPricing)
    context_window: int = Field(
        default=0,
        ge=0,
        validation_alias=_alias("context_window", "contextWindow", "context_length"),
    )
    max_output_tokens: int = Field(
        default=0,
        ge=0,
        validation_alias=_alias("max_output_tokens", "maxOutputTokens"),
    )
    capabilities: ModelCapabilities = Field(default_factory=ModelCapabilities)
    updated_at: datetime | None = Field(
        default=None,
        validation_alias=_alias("updated_at", "updatedAt"),
    )


# ============================================================
# Token 统计
# ============================================================


class TokenUsage(BaseModel):
    """Token 使用统计

    所有计数器可加，append() 原地累加，merge() 返回新对象。
    """

    input_tokens: int = Field(default=0, ge=0, description="输入 token 数")
    output_tokens: int = Field(default=0, ge=0, description="输出 token 数")
    reasoning_tokens: int = Field(default=0, ge=0, description="内部推理 token 数")
    cache_read_tokens: int = Field(default=0, ge=0, description="命中缓存的输入 token 数")
    cache_write_tokens: int = Field(default=0, ge=0, description="写入缓存的输入 token 数")
    images: int = Field(default=0, ge=0, description="生成图片数")
    web_searches: int = Field(default=0, ge=0, description="联网搜索次数")
    requests: int = Field(default=0, ge=0, description="请求次数")

    def append(self, other: "TokenUsage") -> "TokenUsage":
        """将 other 的计数累加到自身，返回 self 便于链式调用"""
        for field_name in type(self).model_fields:
            setattr(
                self,
                field_name,
                getattr(self, field_name) + getattr(other, field_name),
            )
        return self

    @classmethod
    def merge(cls, *usages: "TokenUsage") -> "TokenUsage":
        """合并多次调用的统计，不修改入参"""
        total = cls()
        for usage in usages:
            total.append(usage)
        return total


# ============================================================
# 消息
# ============================================================


class ToolCall(BaseModel):
    """工具调用

    assistant 消息中表示发出的调用；tool 消息中表示回填的调用结果。
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    name: str
    input: Any = None
    output: Any = None
    error_message: str | None = Field(
        default=None,
        validation_alias=_alias("error_message", "errorMessage"),
    )

    def to_wire_json(self) -> str:
        """序列化为内联在文本消息中的 JSON"""
        return json.dumps(
            {
                "id": self.id,
                "name": self.name,
                "input": self.input,
                "output": self.output,
                "errorMessage": self.error_message,
            },
            ensure_ascii=False,
            default=str,
        )


class MessageArtifact(BaseModel):
    """消息附件（图片、文本文件等）"""

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    name: str
    content_type: str = Field(validation_alias=_alias("content_type", "contentType"))
    description: str = ""
    content: bytes = b""
    metadata: dict[str, str] = Field(default_factory=dict)


class ModelMessage(BaseModel):
    """规范消息

    role 保持为原始字符串，非法角色由校验与转换阶段按消息下标报告。
    content、tool_call、artifacts 至少要有一项。
    """

    role: str
    content: str = ""
    tool_call: ToolCall | None = None
    artifacts: list[MessageArtifact] = Field(default_factory=list)

    @model_validator(mode="after")
    def _require_payload(self) -> "ModelMessage":
        if not self.content and self.tool_call is None and not self.artifacts:
            raise ValidationError(
                "message",
                "must have either content, tool call, or artifacts",
            )
        return self

    @classmethod
    def user(cls, content: str, artifacts: list[MessageArtifact] | None = None) -> "ModelMessage":
        return cls(role=MessageRole.USER, content=content, artifacts=artifacts or [])

    @classmethod
    def assistant(cls, content: str, tool_call: ToolCall | None = None) -> "ModelMessage":
        return cls(role=MessageRole.ASSISTANT, content=content, tool_call=tool_call)

    @classmethod
    def tool(cls, tool_call: ToolCall) -> "ModelMessage":
        return cls(role=MessageRole.TOOL, tool_call=tool_call)


# ============================================================
# 补全请求 / 响应
# ============================================================


class CompletionOptions(BaseModel):
    """补全选项

    数值字段为 None 表示不发送，由 provider 使用自身默认值；
    显式设置的 0（如 temperature=0.0）会原样发送。
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    seed: int | None = None
    reasoning_effort: str | None = None
    stop: list[str] = Field(default_factory=list)
    response_format: str | None = None
    json_schema: dict[str, Any] | type[BaseModel] | None = None
    with_usage: bool = False
    with_cost: bool = False


class CompletionRequest(BaseModel):
    """规范补全请求"""

    model: str
    instructions: str = ""
    messages: list[ModelMessage] = Field(default_factory=list)
    options: CompletionOptions = Field(default_factory=CompletionOptions)


class CompletionResponse(BaseModel):
    """非流式补全结果"""

    output: str
    usage: TokenUsage | None = None
    cost: float | None = None


# ============================================================
# Embedding / Image
# ============================================================


class EmbeddingRequest(BaseModel):
    """Embedding 请求"""

    model: str
    contents: list[str]
    dimensions: int | None = Field(default=None, ge=1)
    encoding_format: str | None = None


class Embedding(BaseModel):
    """单条 embedding；encoding_format=base64 时为 base64 字符串"""

    index: int
    embedding: list[float] | str
    object: str = "embedding"


class EmbeddingResponse(BaseModel):
    """Embedding 结果"""

    embeddings: list[Embedding]
    usage: TokenUsage | None = None
    cost: float | None = None


class ImageRequest(BaseModel):
    """图片生成请求，instructions 作为 prompt"""

    model: str
    instructions: str
    size: str | None = None
    quality: str | None = None
    style: str | None = None


class ImageResponse(BaseModel):
    """图片生成结果，output 为解码后的图片字节"""

    output: bytes
    usage: TokenUsage | None = None
    cost: float | None = None


# ============================================================
# Conversation（Responses API）
# ============================================================


class ConversationOptions(CompletionOptions):
    """conversation 选项

    在补全选项之上增加服务端会话相关字段。max_tokens 以 max_output_tokens 发送；
    seed / penalty / stop 不被 Responses API 接受，不发送。
    """

    reasoning_summary: str | None = None
    store: bool | None = None
    previous_response_id: str | None = None


class ConversationRequest(BaseModel):
    """单轮 conversation 请求；多轮上下文由 previous_response_id 在服务端串联"""

    model: str
    input: str
    instructions: str = ""
    options: ConversationOptions = Field(default_factory=ConversationOptions)


class ConversationResponse(BaseModel):
    """非流式 conversation 结果，response_id 可作为下一轮的 previous_response_id"""

    output: str
    response_id: str = ""
    usage: TokenUsage | None = None
    cost: float | None = None
