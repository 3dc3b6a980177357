"""LiteLLMClient -- provider 调用封装

所有 provider 共用一个 OpenAI 兼容后端：通过 litellm 的 acompletion / aresponses /
aembedding / aimage_generation 调用，差异由 ProviderSpec 描述。
传输层异常统一转换为 RequestError。
"""

import time
from collections.abc import AsyncIterator
from typing import Any

import httpx
import structlog
from litellm import acompletion, aembedding, aimage_generation, aresponses

from .exceptions import ConfigurationError, ProviderError, RequestError
from .providers import ProviderSpec

log = structlog.get_logger()

# 连接类异常类型集合（status_code=0，可重试）
_CONNECTION_ERROR_TYPES = (
    ConnectionError,
    OSError,
    TimeoutError,
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.TimeoutException,
)


def _is_connection_error(e: Exception) -> bool:
    """判断异常是否为连接类错误（未拿到 HTTP 响应）"""
    if isinstance(e, _CONNECTION_ERROR_TYPES):
        return True
    # LiteLLM / OpenAI SDK 的连接与超时异常
    error_name = type(e).__name__
    return error_name in ("APIConnectionError", "APITimeoutError", "Timeout")


def _status_code(e: Exception) -> int:
    """从 provider 异常中提取 HTTP 状态码，取不到时返回 0"""
    for attr in ("status_code", "status"):
        value = getattr(e, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(e, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return 0


class LiteLLMClient:
    """OpenAI 兼容后端客户端

    实现 create / create_stream / create_response / create_response_stream /
    embed / generate_image 窄接口，入参为 RequestTranslator 产出的 wire 请求。
    """

    def __init__(
        self,
        spec: ProviderSpec,
        api_key: str = "",
        base_url: str | None = None,
        api_version: str | None = None,
        timeout_s: int = 60,
    ) -> None:
        """初始化客户端

        Args:
            spec: provider 预设
            api_key: provider API key
            base_url: 覆盖预设的基础 URL
            api_version: API 版本（azure 必填）
            timeout_s: 单次请求超时（秒）

        Raises:
            ConfigurationError: 缺少 provider 要求的 API key / base URL / api version
        """
        if spec.requires_api_key and not api_key:
            raise ConfigurationError(f"{spec.display_name} API key cannot be empty")
        resolved_base_url = base_url or spec.base_url
        if spec.requires_base_url and not resolved_base_url:
            raise ConfigurationError(f"{spec.display_name} base URL cannot be empty")
        if spec.requires_api_version and not api_version:
            raise ConfigurationError(f"{spec.display_name} API version cannot be empty")

        self._spec = spec
        self._api_key = api_key
        self._base_url = resolved_base_url
        self._api_version = api_version
        self._timeout_s = timeout_s

    @property
    def spec(self) -> ProviderSpec:
        return self._spec

    @property
    def provider_name(self) -> str:
        return self._spec.display_name

    @property
    def base_url(self) -> str | None:
        return self._base_url

    def _route(self, model: str) -> str:
        return f"{self._spec.wire_prefix}/{model}"

    def _common_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "api_key": self._api_key or "no-key",
            "timeout": self._timeout_s,
        }
        if self._base_url:
            kwargs["api_base"] = self._base_url
        if self._api_version:
            kwargs["api_version"] = self._api_version
        if self._spec.extra_headers:
            kwargs["extra_headers"] = dict(self._spec.extra_headers)
        return kwargs

    def _call_kwargs(self, wire_request: dict[str, Any]) -> dict[str, Any]:
        kwargs = {**wire_request, **self._common_kwargs()}
        kwargs["model"] = self._route(wire_request["model"])
        return kwargs

    def _wrap_error(self, e: Exception, operation: str, model: str) -> ProviderError:
        """provider 异常 -> RequestError（已是 ProviderError 的原样返回）"""
        if isinstance(e, ProviderError):
            return e
        if _is_connection_error(e):
            status_code = 0
            message = "connection failed"
        else:
            status_code = _status_code(e)
            message = f"{operation} failed"
        log.error(
            "provider_call_failed",
            provider=self._spec.name,
            operation=operation,
            model=model,
            status_code=status_code,
            error=str(e),
            error_type=type(e).__name__,
        )
        return RequestError(self.provider_name, status_code, message, cause=e)

    async def create(self, wire_request: dict[str, Any]) -> Any:
        """一次性 chat completion

        Returns:
            litellm ModelResponse（choices[0].message.content + usage）

        Raises:
            RequestError: 传输/HTTP 层失败
        """
        start_time = time.monotonic()
        model = wire_request["model"]
        log.debug(
            "provider_call_start",
            provider=self._spec.name,
            model=model,
            message_count=len(wire_request.get("messages", [])),
        )
        try:
            response = await acompletion(**self._call_kwargs(wire_request))
        except Exception as e:
            raise self._wrap_error(e, "completion", model) from e

        log.debug(
            "provider_call_completed",
            provider=self._spec.name,
            model=model,
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )
        return response

    async def create_stream(self, wire_request: dict[str, Any]) -> AsyncIterator[Any]:
        """发起流式 chat completion，返回增量游标

        请求 provider 在流末尾附带 usage 块。

        Raises:
            RequestError: 流建立失败
        """
        model = wire_request["model"]
        kwargs = self._call_kwargs(wire_request)
        kwargs["stream"] = True
        kwargs["stream_options"] = {"include_usage": True}
        try:
            return await acompletion(**kwargs)
        except Exception as e:
            raise self._wrap_error(e, "stream", model) from e

    async def create_response(self, wire_request: dict[str, Any]) -> Any:
        """一次性 Responses API 调用

        Returns:
            litellm ResponsesAPIResponse（output / usage.input_tokens / usage.output_tokens）

        Raises:
            RequestError: 传输/HTTP 层失败
        """
        start_time = time.monotonic()
        model = wire_request["model"]
        log.debug("provider_call_start", provider=self._spec.name, model=model, api="responses")
        try:
            response = await aresponses(**self._call_kwargs(wire_request))
        except Exception as e:
            raise self._wrap_error(e, "conversation", model) from e

        log.debug(
            "provider_call_completed",
            provider=self._spec.name,
            model=model,
            api="responses",
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )
        return response

    async def create_response_stream(self, wire_request: dict[str, Any]) -> AsyncIterator[Any]:
        """发起流式 Responses API 调用，返回事件游标

        usage 在 response.completed 事件中返回，无需额外选项。

        Raises:
            RequestError: 流建立失败
        """
        model = wire_request["model"]
        kwargs = self._call_kwargs(wire_request)
        kwargs["stream"] = True
        try:
            return await aresponses(**kwargs)
        except Exception as e:
            raise self._wrap_error(e, "conversation stream", model) from e

    async def embed(
        self,
        model: str,
        contents: list[str],
        dimensions: int | None = None,
        encoding_format: str | None = None,
    ) -> Any:
        """生成 embeddings

        Raises:
            RequestError: 传输/HTTP 层失败
        """
        kwargs = self._common_kwargs()
        kwargs["model"] = self._route(model)
        kwargs["input"] = contents
        if dimensions is not None:
            kwargs["dimensions"] = dimensions
        if encoding_format:
            kwargs["encoding_format"] = encoding_format
        try:
            return await aembedding(**kwargs)
        except Exception as e:
            raise self._wrap_error(e, "embedding", model) from e

    async def generate_image(
        self,
        model: str,
        prompt: str,
        size: str | None = None,
        quality: str | None = None,
        style: str | None = None,
    ) -> Any:
        """生成单张图片（base64 返回）

        Raises:
            RequestError: 传输/HTTP 层失败
        """
        kwargs = self._common_kwargs()
        kwargs.update(
            model=self._route(model),
            prompt=prompt,
            n=1,
            response_format="b64_json",
        )
        for key, value in (("size", size), ("quality", quality), ("style", style)):
            if value:
                kwargs[key] = value
        try:
            return await aimage_generation(**kwargs)
        except Exception as e:
            raise self._wrap_error(e, "image generation", model) from e
