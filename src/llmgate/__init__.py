"""llmgate -- 多 provider LLM 统一调用层

公开接口导出。
"""

from .caches import PromptTemplateCache, SchemaCache

# 数据模型
from .chunks import ErrorChunk, ReasoningChunk, StreamChunk, TextChunk, UsageChunk

# 核心组件
from .client import LiteLLMClient

# 配置
from .config import ProviderConfig, load_provider_config
from .cost import CostCalculator
from .echo_backend import EchoBackend

# 异常
from .exceptions import (
    CatalogLoadError,
    ConfigurationError,
    ProviderError,
    RequestError,
    ResponseError,
    StreamError,
    UnsupportedCapabilityError,
    ValidationError,
)
from .models import (
    CompletionOptions,
    CompletionRequest,
    CompletionResponse,
    ConversationOptions,
    ConversationRequest,
    ConversationResponse,
    EmbeddingRequest,
    EmbeddingResponse,
    ImageRequest,
    ImageResponse,
    MessageArtifact,
    MessageRole,
    ModelInfo,
    ModelMessage,
    ModelPricing,
    ReasoningEffort,
    ReasoningSummary,
    ResponseFormat,
    TokenUsage,
    ToolCall,
)
from .providers import PROVIDER_SPECS, ProviderSpec, get_provider_spec
from .registry import ModelRegistry
from .service import CompletionService, create_service
from .stream import ChunkStream, StreamAdapter, StreamState
from .translator import to_wire_conversation_request, to_wire_request

__all__ = [
    "CompletionOptions",
    "CompletionRequest",
    "CompletionResponse",
    "ConversationOptions",
    "ConversationRequest",
    "ConversationResponse",
    "EmbeddingRequest",
    "EmbeddingResponse",
    "ImageRequest",
    "ImageResponse",
    "MessageArtifact",
    "MessageRole",
    "ModelInfo",
    "ModelMessage",
    "ModelPricing",
    "ReasoningEffort",
    "ReasoningSummary",
    "ResponseFormat",
    "TokenUsage",
    "ToolCall",
    "StreamChunk",
    "TextChunk",
    "ReasoningChunk",
    "UsageChunk",
    "ErrorChunk",
    "CompletionService",
    "create_service",
    "StreamAdapter",
    "ChunkStream",
    "StreamState",
    "CostCalculator",
    "ModelRegistry",
    "to_wire_request",
    "to_wire_conversation_request",
    "LiteLLMClient",
    "EchoBackend",
    "ProviderSpec",
    "PROVIDER_SPECS",
    "get_provider_spec",
    "PromptTemplateCache",
    "SchemaCache",
    "ProviderConfig",
    "load_provider_config",
    "ProviderError",
    "ConfigurationError",
    "CatalogLoadError",
    "ValidationError",
    "RequestError",
    "ResponseError",
    "UnsupportedCapabilityError",
    "StreamError",
]
