"""流式 chunk 类型

StreamChunk 是封闭的标签联合，消费方按 kind 分派：
- text: 增量输出文本
- reasoning: 增量推理轨迹
- usage: 终止前的 token 统计与成本（每个流至多一个，且一定是最后一个）
- error: 流中错误或取消通知（携带结构化 StreamError）
"""

import json
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import StreamError
from .models import TokenUsage


class TextChunk(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str

    def __str__(self) -> str:
        return self.text


class ReasoningChunk(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["reasoning"] = "reasoning"
    text: str

    def __str__(self) -> str:
        return self.text


class UsageChunk(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["usage"] = "usage"
    usage: TokenUsage
    cost: float | None = None

    def __str__(self) -> str:
        return f"usage: {json.dumps(self.usage.model_dump())}"


class ErrorChunk(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal["error"] = "error"
    error: StreamError

    def __str__(self) -> str:
        return str(self.error)


StreamChunk = Annotated[
    TextChunk | ReasoningChunk | UsageChunk | ErrorChunk,
    Field(discriminator="kind"),
]
