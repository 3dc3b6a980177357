"""RequestTranslator -- 规范请求 -> provider wire 请求

纯函数，无 I/O、无共享状态。wire 请求是 OpenAI chat-completions 形状的 dict，
由 LiteLLMClient 直接作为 litellm 调用参数发送。
"""

import base64
from typing import Any

from .exceptions import ValidationError
from .models import (
    CompletionOptions,
    ConversationOptions,
    MessageArtifact,
    MessageRole,
    ModelMessage,
    ReasoningEffort,
    ReasoningSummary,
    ResponseFormat,
)

# 结构化输出 schema 的固定名称
RESPONSE_SCHEMA_NAME = "response_schema"

TOOL_CALL_PREFIX = "call tool: "
TOOL_RESULT_PREFIX = "call tool results: "

# 数值采样参数：(选项字段, wire 字段)
_SAMPLING_FIELDS = (
    ("temperature", "temperature"),
    ("top_p", "top_p"),
    ("max_tokens", "max_tokens"),
    ("presence_penalty", "presence_penalty"),
    ("frequency_penalty", "frequency_penalty"),
    ("seed", "seed"),
)


# Responses API 接受的采样参数：(选项字段, wire 字段)
_CONVERSATION_SAMPLING_FIELDS = (
    ("temperature", "temperature"),
    ("top_p", "top_p"),
    ("max_tokens", "max_output_tokens"),
)

def _fenced(prefix: str, payload: str) -> str:
    return f"{prefix}```{payload}```"


def _artifact_part(artifact: MessageArtifact, field: str) -> dict[str, Any]:
    """附件 -> content part：图片转 data URL，文本内联，其余类型拒绝"""
    content_type = artifact.content_type.lower()
    if content_type.startswith("image/"):
        encoded = base64.b64encode(artifact.content).decode("ascii")
        return {
            "type": "image_url",
            "image_url": {"url": f"data:{artifact.content_type};base64,{encoded}"},
        }
    if content_type.startswith("text/"):
        text = artifact.content.decode("utf-8", errors="replace")
        return {"type": "text", "text": f"{artifact.name}:\n{text}"}
    raise ValidationError(
        f"{field}.contentType",
        "unsupported artifact content type",
        artifact.content_type,
    )


def to_wire_message(message: ModelMessage, index: int) -> dict[str, Any]:
    """单条规范消息 -> wire 消息

    Raises:
        ValidationError: 角色非法，或在非 user 消息上携带附件
    """
    field = f"messages[{index}]"
    role = message.role

    if role == MessageRole.USER:
        if not message.artifacts:
            return {"role": "user", "content": message.content}
        parts: list[dict[str, Any]] = []
        if message.content:
            parts.append({"type": "text", "text": message.content})
        for artifact_index, artifact in enumerate(message.artifacts):
            parts.append(_artifact_part(artifact, f"{field}.artifacts[{artifact_index}]"))
        return {"role": "user", "content": parts}

    if role not in (MessageRole.ASSISTANT, MessageRole.TOOL):
        raise ValidationError(
            f"{field}.role",
            "must be one of: user, assistant, tool",
            role,
        )

    if message.artifacts:
        raise ValidationError(
            f"{field}.artifacts",
            "artifacts are only supported on user messages",
        )

    if role == MessageRole.ASSISTANT:
        if message.tool_call is None:
            return {"role": "assistant", "content": message.content}
        return {
            "role": "assistant",
            "content": _fenced(TOOL_CALL_PREFIX, message.tool_call.to_wire_json()),
        }

    # tool 结果以 user 轮次回填
    payload = message.tool_call.to_wire_json() if message.tool_call else message.content
    return {"role": "user", "content": _fenced(TOOL_RESULT_PREFIX, payload)}


def _reasoning_effort(options: CompletionOptions) -> str:
    if options.reasoning_effort not in set(ReasoningEffort):
        raise ValidationError(
            "reasoningEffort",
            "must be one of: low, medium, high",
            options.reasoning_effort,
        )
    return str(options.reasoning_effort)


def _response_format(options: CompletionOptions) -> dict[str, Any] | None:
    if not options.response_format:
        return None
    if options.response_format == ResponseFormat.JSON:
        return {"type": "json_object"}
    if options.response_format == ResponseFormat.JSON_SCHEMA:
        if options.json_schema is None:
            raise ValidationError(
                "jsonSchema",
                "must be provided when responseFormat is json_schema",
            )
        if not isinstance(options.json_schema, dict):
            raise ValidationError(
                "jsonSchema",
                "must be resolved to a JSON object before translation",
                type(options.json_schema).__name__,
            )
        return {
            "type": "json_schema",
            "json_schema": {
                "name": RESPONSE_SCHEMA_NAME,
                "schema": options.json_schema,
            },
        }
    raise ValidationError(
        "responseFormat",
        "must be one of: json, json_schema",
        options.response_format,
    )


def to_wire_request(
    model: str,
    instructions: str,
    messages: list[ModelMessage],
    options: CompletionOptions | None = None,
) -> dict[str, Any]:
    """规范请求 -> wire 请求

    规则:
        1. instructions 非空时在最前面插入一条 system 消息
        2. 消息逐条按角色映射，保持顺序，不丢弃
        3. 数值选项仅在显式设置（非 None）时发送，0.0 也会发送
        4. stop 仅在非空时发送；reasoning_effort 未设置时不发送

    Args:
        model: 模型 id（不含 provider 路由前缀）
        instructions: 系统提示
        messages: 规范消息列表
        options: 补全选项，None 等同于全部未设置

    Returns:
        wire 请求 dict（model / messages / 采样参数 / response_format）

    Raises:
        ValidationError: 角色非法、附件类型不支持、json_schema 缺失或 reasoning_effort 非法
    """
    options = options or CompletionOptions()

    wire_messages: list[dict[str, Any]] = []
    if instructions:
        wire_messages.append({"role": "system", "content": instructions})
    for index, message in enumerate(messages):
        wire_messages.append(to_wire_message(message, index))

    wire: dict[str, Any] = {"model": model, "messages": wire_messages}

    for option_field, wire_field in _SAMPLING_FIELDS:
        value = getattr(options, option_field)
        if value is not None:
            wire[wire_field] = value

    if options.stop:
        wire["stop"] = list(options.stop)

    if options.reasoning_effort:
        wire["reasoning_effort"] = _reasoning_effort(options)

    response_format = _response_format(options)
    if response_format is not None:
        wire["response_format"] = response_format

    return wire


def to_wire_conversation_request(
    model: str,
    input: str,
    instructions: str = "",
    options: ConversationOptions | None = None,
) -> dict[str, Any]:
    """conversation 请求 -> Responses API wire 请求

    与 chat 请求的差异:
        1. 输入为单个字符串 input，系统提示走 instructions 字段
        2. max_tokens 以 max_output_tokens 发送；seed / penalty / stop 不发送
        3. reasoning_effort 与 reasoning_summary 合并为 reasoning 对象
        4. 结构化输出放在 text.format 中
        5. store / previous_response_id 仅在显式设置时发送

    Raises:
        ValidationError: reasoning_effort / reasoning_summary / response_format 非法
    """
    options = options or ConversationOptions()
    wire: dict[str, Any] = {"model": model, "input": input}
    if instructions:
        wire["instructions"] = instructions

    for option_field, wire_field in _CONVERSATION_SAMPLING_FIELDS:
        value = getattr(options, option_field)
        if value is not None:
            wire[wire_field] = value

    reasoning: dict[str, str] = {}
    if options.reasoning_effort:
        reasoning["effort"] = _reasoning_effort(options)
    if options.reasoning_summary:
        if options.reasoning_summary not in set(ReasoningSummary):
            raise ValidationError(
                "reasoningSummary",
                "must be one of: auto, concise, detailed",
                options.reasoning_summary,
            )
        reasoning["summary"] = str(options.reasoning_summary)
    if reasoning:
        wire["reasoning"] = reasoning

    response_format = _response_format(options)
    if response_format is not None:
        if response_format["type"] == "json_schema":
            # Responses API 的 json_schema 格式是扁平的
            response_format = {"type": "json_schema", **response_format["json_schema"]}
        wire["text"] = {"format": response_format}

    if options.store is not None:
        wire["store"] = options.store
    if options.previous_response_id:
        wire["previous_response_id"] = options.previous_response_id
    return wire
