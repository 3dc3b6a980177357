"""llmgate 测试 fixtures"""

import asyncio
from types import SimpleNamespace

import pytest
from llmgate.models import ModelInfo, ModelPricing
from llmgate.providers import (
    CAPABILITY_CONVERSATION,
    CAPABILITY_EMBEDDINGS,
    CAPABILITY_IMAGE_GENERATION,
    ProviderSpec,
)
from llmgate.registry import ModelRegistry

FAKE_SPEC = ProviderSpec(
    name="fake",
    display_name="Fake",
    capabilities=frozenset(
        {CAPABILITY_EMBEDDINGS, CAPABILITY_IMAGE_GENERATION, CAPABILITY_CONVERSATION}
    ),
    requires_api_key=False,
)


class ScriptedBackend:
    """按脚本回放增量的测试后端

    Args:
        units: 依次产出的流增量
        fail_at: 产出第 N 个增量前抛出 error
        error: fail_at 处抛出的异常
        hang: 增量耗尽后永久挂起（模拟 provider 停滞）
        delay_s: 每个增量之间的延迟
        response: create() / create_response() 的返回值
    """

    def __init__(
        self,
        units=(),
        fail_at: int | None = None,
        error: Exception | None = None,
        hang: bool = False,
        delay_s: float = 0.0,
        response=None,
        spec: ProviderSpec = FAKE_SPEC,
    ) -> None:
        self.units = list(units)
        self.fail_at = fail_at
        self.error = error or ConnectionResetError("connection reset by peer")
        self.hang = hang
        self.delay_s = delay_s
        self.response = response
        self.spec = spec
        self.requests: list[dict] = []
        self.yielded = 0
        self.cursor_closed = False

    @property
    def provider_name(self) -> str:
        return self.spec.display_name

    async def create(self, wire_request: dict):
        self.requests.append(wire_request)
        return self.response

    async def create_stream(self, wire_request: dict):
        self.requests.append(wire_request)
        return self._iterate()

    async def create_response(self, wire_request: dict):
        self.requests.append(wire_request)
        return self.response

    async def create_response_stream(self, wire_request: dict):
        self.requests.append(wire_request)
        return self._iterate()

    async def _iterate(self):
        try:
            for index, unit in enumerate(self.units):
                if index == self.fail_at:
                    raise self.error
                await asyncio.sleep(self.delay_s)
                self.yielded += 1
                yield unit
            if self.fail_at is not None and self.fail_at >= len(self.units):
                raise self.error
            if self.hang:
                await asyncio.Event().wait()
        finally:
            self.cursor_closed = True


@pytest.fixture
def make_backend():
    """ScriptedBackend 工厂"""
    return ScriptedBackend


@pytest.fixture
def m1_info() -> ModelInfo:
    """prompt=1.0 / completion=2.0（每百万 token）的测试模型"""
    return ModelInfo(
        id="m1",
        name="Model One",
        pricing=ModelPricing(prompt="1.0", completion="2.0"),
    )


@pytest.fixture
def registry(m1_info: ModelInfo) -> ModelRegistry:
    return ModelRegistry([m1_info])


@pytest.fixture
def sample_catalog() -> list[dict]:
    """目录 JSON 测试数据（字符串与数值混合编码的价格）"""
    return [
        {
            "id": "alpha-1",
            "name": "Alpha One",
            "contextWindow": 8192,
            "pricing": {"prompt": "0.5", "completion": "1.5", "inputCacheRead": "0.05"},
        },
        {
            "id": "beta-2",
            "name": "Beta Two",
            "pricing": {"prompt": 3, "completion": 6.0, "image": "0.04"},
            "capabilities": {"reasoning": True},
        },
    ]


def text_unit(text: str) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


def reasoning_unit(text: str) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(delta=SimpleNamespace(content=None, reasoning_content=text))]
    )


def usage_unit(prompt_tokens: int, completion_tokens: int, **extra) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[],
        usage=SimpleNamespace(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            **extra,
        ),
    )


@pytest.fixture
def units():
    """流增量构造函数集合"""
    return SimpleNamespace(text=text_unit, reasoning=reasoning_unit, usage=usage_unit)


def text_event(text: str) -> SimpleNamespace:
    return SimpleNamespace(type="response.output_text.delta", delta=text)


def reasoning_event(text: str) -> SimpleNamespace:
    return SimpleNamespace(type="response.reasoning_summary_text.delta", delta=text)


def completed_event(input_tokens: int, output_tokens: int, **extra) -> SimpleNamespace:
    return SimpleNamespace(
        type="response.completed",
        response=SimpleNamespace(
            id="resp_1",
            usage=SimpleNamespace(input_tokens=input_tokens, output_tokens=output_tokens, **extra),
        ),
    )


@pytest.fixture
def events():
    """Responses API 流事件构造函数集合"""
    return SimpleNamespace(text=text_event, reasoning=reasoning_event, completed=completed_event)
