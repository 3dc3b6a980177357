"""请求校验

在任何网络调用、任何流状态创建之前执行；首个违规即抛出 ValidationError。
"""

from .exceptions import ValidationError
from .models import (
    VALID_ROLES,
    CompletionOptions,
    CompletionRequest,
    ConversationRequest,
    EmbeddingRequest,
    ImageRequest,
    MessageArtifact,
    ModelMessage,
    ReasoningEffort,
    ReasoningSummary,
    ResponseFormat,
)

MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0
MIN_TOP_P = 0.0
MAX_TOP_P = 1.0
MIN_PENALTY = -2.0
MAX_PENALTY = 2.0
MIN_MAX_TOKENS = 1
MAX_MAX_TOKENS = 1_000_000

VALID_ENCODING_FORMATS = frozenset({"float", "base64"})
VALID_IMAGE_SIZES = frozenset({"1024x1024", "1792x1024", "1024x1792"})
VALID_IMAGE_QUALITIES = frozenset({"standard", "hd"})
VALID_IMAGE_STYLES = frozenset({"vivid", "natural"})


def validate_completion_request(request: CompletionRequest) -> None:
    """校验补全请求

    Raises:
        ValidationError: 模型为空、无消息、消息/附件非法或选项越界
    """
    if not request.model:
        raise ValidationError("model", "cannot be empty", "")
    if not request.messages:
        raise ValidationError("messages", "must contain at least one message")
    for index, message in enumerate(request.messages):
        validate_message(message, index)
    validate_options(request.options)


def validate_message(message: ModelMessage, index: int) -> None:
    field = f"messages[{index}]"
    if not message.role:
        raise ValidationError(f"{field}.role", "cannot be empty", "")
    if message.role not in VALID_ROLES:
        raise ValidationError(
            f"{field}.role",
            "must be one of: user, assistant, tool",
            message.role,
        )
    if not message.content and message.tool_call is None and not message.artifacts:
        raise ValidationError(field, "must have either content, tool call, or artifacts")
    for artifact_index, artifact in enumerate(message.artifacts):
        _validate_artifact(artifact, f"{field}.artifacts[{artifact_index}]")


def _validate_artifact(artifact: MessageArtifact, field: str) -> None:
    if not artifact.name:
        raise ValidationError(f"{field}.name", "cannot be empty", "")
    if not artifact.content_type:
        raise ValidationError(f"{field}.contentType", "cannot be empty", "")


def _check_range(field: str, value: float | None, low: float, high: float) -> None:
    if value is not None and not low <= value <= high:
        raise ValidationError(field, f"must be between {low:.1f} and {high:.1f}", value)


def validate_options(options: CompletionOptions) -> None:
    """校验补全选项；None 字段表示未设置，跳过"""
    _check_range("temperature", options.temperature, MIN_TEMPERATURE, MAX_TEMPERATURE)
    _check_range("topP", options.top_p, MIN_TOP_P, MAX_TOP_P)
    _check_range("presencePenalty", options.presence_penalty, MIN_PENALTY, MAX_PENALTY)
    _check_range("frequencyPenalty", options.frequency_penalty, MIN_PENALTY, MAX_PENALTY)

    if options.max_tokens is not None and not (
        MIN_MAX_TOKENS <= options.max_tokens <= MAX_MAX_TOKENS
    ):
        raise ValidationError(
            "maxTokens",
            f"must be between {MIN_MAX_TOKENS} and {MAX_MAX_TOKENS}",
            options.max_tokens,
        )

    if options.reasoning_effort and options.reasoning_effort not in set(ReasoningEffort):
        raise ValidationError(
            "reasoningEffort",
            "must be one of: low, medium, high",
            options.reasoning_effort,
        )

    if options.response_format:
        if options.response_format not in set(ResponseFormat):
            raise ValidationError(
                "responseFormat",
                "must be one of: json, json_schema",
                options.response_format,
            )
        if options.response_format == ResponseFormat.JSON_SCHEMA and options.json_schema is None:
            raise ValidationError(
                "jsonSchema",
                "must be provided when responseFormat is json_schema",
            )


def validate_conversation_request(request: ConversationRequest) -> None:
    """校验 conversation 请求

    Raises:
        ValidationError: 模型或输入为空、选项越界、reasoning_summary 非法
    """
    if not request.model:
        raise ValidationError("model", "cannot be empty", "")
    if not request.input.strip():
        raise ValidationError("input", "cannot be empty or whitespace only", request.input)
    options = request.options
    validate_options(options)
    if options.reasoning_summary and options.reasoning_summary not in set(ReasoningSummary):
        raise ValidationError(
            "reasoningSummary",
            "must be one of: auto, concise, detailed",
            options.reasoning_summary,
        )
    if options.previous_response_id is not None and not options.previous_response_id.strip():
        raise ValidationError("previousResponseId", "cannot be empty", options.previous_response_id)


def validate_embedding_request(request: EmbeddingRequest) -> None:
    if not request.model:
        raise ValidationError("model", "cannot be empty", "")
    if not request.contents:
        raise ValidationError("contents", "must contain at least one item")
    for index, content in enumerate(request.contents):
        if not content.strip():
            raise ValidationError(
                f"contents[{index}]",
                "cannot be empty or whitespace only",
                content,
            )
    if request.encoding_format and request.encoding_format not in VALID_ENCODING_FORMATS:
        raise ValidationError(
            "encodingFormat",
            "must be one of: float, base64",
            request.encoding_format,
        )


def validate_image_request(request: ImageRequest) -> None:
    if not request.model:
        raise ValidationError("model", "cannot be empty", "")
    if not request.instructions.strip():
        raise ValidationError(
            "instructions",
            "cannot be empty or whitespace only",
            request.instructions,
        )
    if request.size and request.size not in VALID_IMAGE_SIZES:
        raise ValidationError("size", "must be one of: 1024x1024, 1792x1024, 1024x1792", request.size)
    if request.quality and request.quality not in VALID_IMAGE_QUALITIES:
        raise ValidationError("quality", "must be one of: standard, hd", request.quality)
    if request.style and request.style not in VALID_IMAGE_STYLES:
        raise ValidationError("style", "must be one of: vivid, natural", request.style)
