"""CompletionService -- 组合根

串联 校验 -> RequestTranslator -> 后端调用 -> (StreamAdapter | 直接映射) -> CostCalculator，
是调用方唯一直接接触的组件。
"""

import asyncio
import base64
import binascii
import time
from typing import Any

import structlog

from .caches import PromptTemplateCache, SchemaCache
from .client import LiteLLMClient
from .config import ProviderConfig, load_provider_config
from .cost import CostCalculator
from .echo_backend import EchoBackend
from .exceptions import ResponseError, UnsupportedCapabilityError
from .models import (
    CompletionOptions,
    CompletionRequest,
    CompletionResponse,
    ConversationRequest,
    ConversationResponse,
    Embedding,
    EmbeddingRequest,
    EmbeddingResponse,
    ImageRequest,
    ImageResponse,
    ModelInfo,
    TokenUsage,
)
from .providers import (
    CAPABILITY_CONVERSATION,
    CAPABILITY_EMBEDDINGS,
    CAPABILITY_IMAGE_GENERATION,
    get_provider_spec,
)
from .registry import ModelRegistry
from .stream import ChunkStream, StreamAdapter
from .translator import to_wire_conversation_request, to_wire_request
from .validation import (
    validate_completion_request,
    validate_conversation_request,
    validate_embedding_request,
    validate_image_request,
)
from .wire import first_choice, read_field, response_output_text

log = structlog.get_logger()


class CompletionService:
    """统一补全服务

    Args:
        backend: LiteLLMClient 或 EchoBackend
        registry: 模型目录，None 时为空目录（成本不可用）
        template_cache: prompt 模板缓存，None 时新建
        schema_cache: JSON schema 缓存，None 时新建
    """

    def __init__(
        self,
        backend: Any,
        registry: ModelRegistry | None = None,
        template_cache: PromptTemplateCache | None = None,
        schema_cache: SchemaCache | None = None,
    ) -> None:
        self._backend = backend
        self._registry = registry if registry is not None else ModelRegistry()
        self._templates = template_cache if template_cache is not None else PromptTemplateCache()
        self._schemas = schema_cache if schema_cache is not None else SchemaCache()

    @classmethod
    async def from_config(cls, config: ProviderConfig | None = None) -> "CompletionService":
        """按配置构造服务

        远程目录（openrouter）在此拉取一次，失败即构造失败。

        Raises:
            ConfigurationError: provider 未知或缺少必填配置
            CatalogLoadError: 模型目录加载失败
        """
        config = config or load_provider_config()

        if config.llm_mode == "echo":
            backend: Any = EchoBackend()
            spec = backend.spec
        else:
            spec = get_provider_spec(config.provider)
            backend = LiteLLMClient(
                spec,
                api_key=config.api_key.get_secret_value(),
                base_url=config.base_url,
                api_version=config.api_version,
                timeout_s=config.timeout_s,
            )

        if config.catalog_path:
            registry = ModelRegistry.from_catalog_file(config.catalog_path)
        elif spec.remote_catalog_path and isinstance(backend, LiteLLMClient):
            url = f"{(backend.base_url or '').rstrip('/')}/{spec.remote_catalog_path}"
            registry = await ModelRegistry.from_remote(
                url,
                api_key=config.api_key.get_secret_value(),
                timeout_s=config.timeout_s,
            )
        elif spec.catalog:
            registry = ModelRegistry.from_package_catalog(spec.catalog)
        else:
            registry = ModelRegistry()

        log.info(
            "service_created",
            provider=spec.name,
            llm_mode=config.llm_mode,
            model_count=len(registry),
        )
        return cls(backend, registry)

    @property
    def provider_name(self) -> str:
        return self._backend.provider_name

    @property
    def registry(self) -> ModelRegistry:
        return self._registry

    def get_model_info(self, model_id: str) -> ModelInfo | None:
        return self._registry.get_model_info(model_id)

    def _resolve_options(self, options: CompletionOptions) -> CompletionOptions:
        """pydantic 模型类形式的 json_schema 经 SchemaCache 转换为 dict"""
        if options.json_schema is None or isinstance(options.json_schema, dict):
            return options
        return options.model_copy(update={"json_schema": self._schemas.resolve(options.json_schema)})

    def _require(self, capability: str) -> None:
        if not self._backend.spec.supports(capability):
            raise UnsupportedCapabilityError(self.provider_name, capability)

    def _cost(self, model: str, usage: TokenUsage) -> float | None:
        cost = CostCalculator.calculate_cost(self._registry.get_model_info(model), usage)
        if cost is None:
            log.info("cost_unavailable", provider=self.provider_name, model=model)
        return cost

    # ============================================================
    # Completion
    # ============================================================

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """非流式补全

        Raises:
            ValidationError: 请求非法（在任何网络调用之前）
            RequestError: 传输/HTTP 层失败
            ResponseError: 响应无法解析（如 choices 为空）
        """
        validate_completion_request(request)
        options = self._resolve_options(request.options)
        wire = to_wire_request(request.model, request.instructions, request.messages, options)

        start_time = time.monotonic()
        log.info(
            "completion_started",
            provider=self.provider_name,
            model=request.model,
            message_count=len(request.messages),
        )
        response = await self._backend.create(wire)

        choice = first_choice(response)
        if choice is None:
            raise ResponseError(self.provider_name, "no choices returned")
        content = read_field(read_field(choice, "message"), "content")
        if content is None:
            content = ""
        elif not isinstance(content, str):
            raise ResponseError(
                self.provider_name,
                f"unexpected message content type {type(content).__name__}",
            )

        usage: TokenUsage | None = None
        cost: float | None = None
        if options.with_usage or options.with_cost:
            token_usage = CostCalculator.parse_usage(read_field(response, "usage"))
            if options.with_usage:
                usage = token_usage
            if options.with_cost:
                cost = self._cost(request.model, token_usage)

        log.info(
            "completion_finished",
            provider=self.provider_name,
            model=request.model,
            duration_ms=int((time.monotonic() - start_time) * 1000),
            cost=cost,
        )
        return CompletionResponse(output=content, usage=usage, cost=cost)

    async def stream_complete(
        self,
        request: CompletionRequest,
        cancel_event: asyncio.Event | None = None,
    ) -> ChunkStream:
        """流式补全

        校验与流建立失败同步抛出；之后的失败以 ErrorChunk 投递。

        Args:
            request: 补全请求
            cancel_event: 调用方取消信号，set() 后流尽快关闭

        Returns:
            ChunkStream（async for 迭代，async with 管理生命周期）
        """
        validate_completion_request(request)
        options = self._resolve_options(request.options)
        wire = to_wire_request(request.model, request.instructions, request.messages, options)

        model_info = self._registry.get_model_info(request.model) if options.with_cost else None
        adapter = StreamAdapter(
            self._backend,
            options=options,
            model_info=model_info,
            cancel_event=cancel_event,
        )
        log.info(
            "stream_started",
            provider=self.provider_name,
            model=request.model,
            message_count=len(request.messages),
        )
        return await adapter.open_stream(wire)

    # ============================================================
    # Conversation（Responses API）
    # ============================================================

    def _conversation_wire(
        self, request: ConversationRequest
    ) -> tuple[CompletionOptions, dict[str, Any]]:
        self._require(CAPABILITY_CONVERSATION)
        validate_conversation_request(request)
        options = self._resolve_options(request.options)
        wire = to_wire_conversation_request(
            request.model, request.input, request.instructions, options
        )
        return options, wire

    async def respond(self, request: ConversationRequest) -> ConversationResponse:
        """非流式 conversation

        Raises:
            UnsupportedCapabilityError: provider 不支持 Responses API
            ValidationError: 请求非法
            RequestError: 传输/HTTP 层失败
            ResponseError: 输出为空
        """
        options, wire = self._conversation_wire(request)
        start_time = time.monotonic()
        log.info("conversation_started", provider=self.provider_name, model=request.model)

        response = await self._backend.create_response(wire)
        output = response_output_text(response)
        if not output:
            raise ResponseError(self.provider_name, "empty content")

        usage: TokenUsage | None = None
        cost: float | None = None
        if options.with_usage or options.with_cost:
            token_usage = CostCalculator.parse_usage(read_field(response, "usage"))
            if options.with_usage:
                usage = token_usage
            if options.with_cost:
                cost = self._cost(request.model, token_usage)

        response_id = read_field(response, "id")
        log.info(
            "conversation_finished",
            provider=self.provider_name,
            model=request.model,
            response_id=response_id,
            duration_ms=int((time.monotonic() - start_time) * 1000),
            cost=cost,
        )
        return ConversationResponse(
            output=output,
            response_id=response_id if isinstance(response_id, str) else "",
            usage=usage,
            cost=cost,
        )

    async def stream_respond(
        self,
        request: ConversationRequest,
        cancel_event: asyncio.Event | None = None,
    ) -> ChunkStream:
        """流式 conversation，chunk 语义与 stream_complete 相同"""
        options, wire = self._conversation_wire(request)
        model_info = self._registry.get_model_info(request.model) if options.with_cost else None
        adapter = StreamAdapter(
            self._backend,
            options=options,
            model_info=model_info,
            cancel_event=cancel_event,
        )
        log.info("conversation_stream_started", provider=self.provider_name, model=request.model)
        return await adapter.open_stream(wire, conversation=True)

    # ============================================================
    # Embeddings / Images
    # ============================================================

    async def embed(self, request: EmbeddingRequest) -> EmbeddingResponse:
        """生成 embeddings，成本按 prompt 单价计算

        Raises:
            UnsupportedCapabilityError: provider 不支持 embeddings
            ValidationError: 请求非法
        """
        self._require(CAPABILITY_EMBEDDINGS)
        validate_embedding_request(request)

        response = await self._backend.embed(
            request.model,
            request.contents,
            dimensions=request.dimensions,
            encoding_format=request.encoding_format,
        )
        data = read_field(response, "data")
        if not isinstance(data, list) or not data:
            raise ResponseError(self.provider_name, "no embeddings returned")
        embeddings = [
            Embedding(
                index=read_field(item, "index") or 0,
                embedding=read_field(item, "embedding"),
            )
            for item in data
        ]
        usage = CostCalculator.parse_usage(read_field(response, "usage"))
        return EmbeddingResponse(
            embeddings=embeddings,
            usage=usage,
            cost=self._cost(request.model, usage),
        )

    async def generate_image(self, request: ImageRequest) -> ImageResponse:
        """生成单张图片，成本按张计费

        Raises:
            UnsupportedCapabilityError: provider 不支持图片生成
            ValidationError: 请求非法
            ResponseError: 无图片数据或 base64 解码失败
        """
        self._require(CAPABILITY_IMAGE_GENERATION)
        validate_image_request(request)

        response = await self._backend.generate_image(
            request.model,
            request.instructions,
            size=request.size,
            quality=request.quality,
            style=request.style,
        )
        data = read_field(response, "data")
        if not isinstance(data, list) or not data:
            raise ResponseError(self.provider_name, "no image data returned")
        encoded = read_field(data[0], "b64_json")
        if not isinstance(encoded, str):
            raise ResponseError(self.provider_name, "image data is not base64 encoded")
        try:
            image_bytes = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ResponseError(self.provider_name, "failed to decode image data", cause=e) from e

        cost = CostCalculator.calculate_image_cost(self._registry.get_model_info(request.model), 1)
        return ImageResponse(
            output=image_bytes,
            usage=TokenUsage(images=1, requests=1),
            cost=cost,
        )

    # ============================================================
    # Prompt 模板
    # ============================================================

    def render_prompt(self, template: str, params: dict[str, Any] | None = None) -> str:
        """用 $name / ${name} 占位符渲染 prompt，解析结果按模板缓存"""
        return self._templates.render(template, params)


async def create_service(config: ProviderConfig | None = None) -> CompletionService:
    """按环境变量（或显式配置）构造 CompletionService"""
    return await CompletionService.from_config(config)
