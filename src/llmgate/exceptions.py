"""llmgate 异常体系

所有对外抛出的异常均继承 ProviderError，调用方可统一捕获。
原始异常同时保存在 ``cause`` 属性和 ``__cause__`` 链上。
"""

from typing import Any


class ProviderError(Exception):
    """llmgate 基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试或调整请求恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class ConfigurationError(ProviderError):
    """Provider 配置无效（缺少 API key、base URL 等）

    构造阶段即失败，不会进入调用流程。
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, recoverable=False)


class CatalogLoadError(ProviderError):
    """模型目录加载失败（静态 JSON 或远程拉取）"""

    def __init__(self, source: str, cause: Exception | None = None) -> None:
        message = f"failed to load model catalog from {source}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message, recoverable=False)
        self.source = source
        self.cause = cause


class ValidationError(ProviderError):
    """调用方数据不满足前置条件

    在任何网络调用之前抛出，不做内部重试。
    """

    def __init__(self, field: str, message: str, value: Any = None) -> None:
        """
        Args:
            field: 出错字段（如 messages[2].role）
            message: 错误描述
            value: 违规值，None 表示无可展示的值
        """
        if value is not None:
            text = f"validation failed for field '{field}': {message} (value: {value})"
        else:
            text = f"validation failed for field '{field}': {message}"
        super().__init__(text, recoverable=False)
        self.field = field
        self.message = message
        self.value = value


class RequestError(ProviderError):
    """请求在传输/HTTP 层失败

    status_code 为 0 表示连接类错误（未拿到 HTTP 响应）。
    """

    def __init__(
        self,
        provider: str,
        status_code: int,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        text = f"{provider} API error (status {status_code}): {message}"
        if cause is not None:
            text = f"{text}: {cause}"
        super().__init__(
            text,
            recoverable=status_code in (0, 408, 429) or status_code >= 500,
        )
        self.provider = provider
        self.status_code = status_code
        self.message = message
        self.cause = cause


class ResponseError(ProviderError):
    """传输成功但响应内容无法解析（如 choices 为空）"""

    def __init__(
        self,
        provider: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        text = f"{provider} response error: {message}"
        if cause is not None:
            text = f"{text}: {cause}"
        super().__init__(text, recoverable=False)
        self.provider = provider
        self.message = message
        self.cause = cause


class UnsupportedCapabilityError(ProviderError):
    """所选 provider 不支持请求的能力（embeddings、image generation、conversation）"""

    def __init__(self, provider: str, capability: str) -> None:
        verb = "are" if capability.endswith("s") else "is"
        text = f"{capability} {verb} not supported by {provider} models"
        super().__init__(text, recoverable=False)
        self.provider = provider
        self.capability = capability


class StreamError(ProviderError):
    """流式过程中的错误

    与 RequestError 区分：发生时消费方可能已经收到了部分 chunk。
    canceled=True 表示调用方主动取消，而非 provider 故障。
    """

    def __init__(
        self,
        provider: str,
        message: str,
        cause: Exception | None = None,
        canceled: bool = False,
    ) -> None:
        text = f"{provider} stream error: {message}"
        if cause is not None:
            text = f"{text}: {cause}"
        super().__init__(text, recoverable=not canceled)
        self.provider = provider
        self.message = message
        self.cause = cause
        self.canceled = canceled
        if cause is not None:
            self.__cause__ = cause
