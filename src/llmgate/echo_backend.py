"""EchoBackend -- 离线回声后端

与 LiteLLMClient 相同的 create / create_stream / create_response / create_response_stream /
embed / generate_image 接口，
不发起任何网络调用。用于本地开发、CLI 演示与集成测试。
"""

import asyncio
import base64
import hashlib
import itertools
from collections.abc import AsyncIterator
from types import SimpleNamespace
from typing import Any

from .providers import (
    CAPABILITY_CONVERSATION,
    CAPABILITY_EMBEDDINGS,
    CAPABILITY_IMAGE_GENERATION,
    ProviderSpec,
)

ECHO_SPEC = ProviderSpec(
    name="echo",
    display_name="Echo",
    capabilities=frozenset(
        {CAPABILITY_EMBEDDINGS, CAPABILITY_IMAGE_GENERATION, CAPABILITY_CONVERSATION}
    ),
    requires_api_key=False,
)

# embedding 向量维度默认值
ECHO_EMBEDDING_DIMENSIONS = 8


def _response_usage(input_tokens: int, output_tokens: int) -> SimpleNamespace:
    return SimpleNamespace(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=input_tokens + output_tokens,
    )


def _usage(prompt_tokens: int, completion_tokens: int) -> SimpleNamespace:
    return SimpleNamespace(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=prompt_tokens + completion_tokens,
    )


class EchoBackend:
    """回声后端

    行为:
        1. 取 wire 请求中最后一条 user 消息的文本
        2. 回复 "Echo: {content}"
        3. token 按空白分词计数
    """

    def __init__(self, chunk_delay_s: float = 0.0) -> None:
        """
        Args:
            chunk_delay_s: 流式输出时每个分片之间的延迟（秒）
        """
        self._chunk_delay_s = chunk_delay_s
        self._response_ids = itertools.count(1)

    @property
    def spec(self) -> ProviderSpec:
        return ECHO_SPEC

    @property
    def provider_name(self) -> str:
        return ECHO_SPEC.display_name

    def _reply(self, wire_request: dict[str, Any]) -> tuple[str, str]:
        user_content = self._extract_last_user_content(wire_request.get("messages", []))
        return user_content, f"Echo: {user_content}"

    async def create(self, wire_request: dict[str, Any]) -> SimpleNamespace:
        user_content, response_text = self._reply(wire_request)
        await asyncio.sleep(0)
        return SimpleNamespace(
            model="echo",
            choices=[SimpleNamespace(message=SimpleNamespace(content=response_text))],
            usage=_usage(len(user_content.split()), len(response_text.split())),
        )

    async def create_stream(self, wire_request: dict[str, Any]) -> AsyncIterator[SimpleNamespace]:
        user_content, response_text = self._reply(wire_request)
        return self._iter_stream(user_content, response_text)

    async def _iter_stream(
        self, user_content: str, response_text: str
    ) -> AsyncIterator[SimpleNamespace]:
        words = response_text.split(" ")
        for index, word in enumerate(words):
            text = word if index == len(words) - 1 else f"{word} "
            await asyncio.sleep(self._chunk_delay_s)
            yield SimpleNamespace(
                choices=[SimpleNamespace(delta=SimpleNamespace(content=text))],
                usage=None,
            )
        yield SimpleNamespace(
            choices=[],
            usage=_usage(len(user_content.split()), len(response_text.split())),
        )

    def _next_response_id(self) -> str:
        return f"resp_echo_{next(self._response_ids)}"

    async def create_response(self, wire_request: dict[str, Any]) -> SimpleNamespace:
        """回显 input 文本，返回 Responses API 形状的结果"""
        user_content = wire_request.get("input") or "(empty)"
        response_text = f"Echo: {user_content}"
        await asyncio.sleep(0)
        return SimpleNamespace(
            id=self._next_response_id(),
            model="echo",
            output=[
                SimpleNamespace(
                    type="message",
                    role="assistant",
                    content=[SimpleNamespace(type="output_text", text=response_text)],
                )
            ],
            usage=_response_usage(len(user_content.split()), len(response_text.split())),
        )

    async def create_response_stream(
        self, wire_request: dict[str, Any]
    ) -> AsyncIterator[SimpleNamespace]:
        user_content = wire_request.get("input") or "(empty)"
        return self._iter_response_events(user_content, f"Echo: {user_content}")

    async def _iter_response_events(
        self, user_content: str, response_text: str
    ) -> AsyncIterator[SimpleNamespace]:
        response_id = self._next_response_id()
        yield SimpleNamespace(type="response.created", response=SimpleNamespace(id=response_id))
        words = response_text.split(" ")
        for index, word in enumerate(words):
            await asyncio.sleep(self._chunk_delay_s)
            yield SimpleNamespace(
                type="response.output_text.delta",
                delta=word if index == len(words) - 1 else f"{word} ",
            )
        yield SimpleNamespace(type="response.output_text.done", text=response_text)
        yield SimpleNamespace(
            type="response.completed",
            response=SimpleNamespace(
                id=response_id,
                usage=_response_usage(len(user_content.split()), len(response_text.split())),
            ),
        )

    async def embed(
        self,
        model: str,
        contents: list[str],
        dimensions: int | None = None,
        encoding_format: str | None = None,
    ) -> SimpleNamespace:
        """按内容哈希生成确定性向量"""
        size = dimensions or ECHO_EMBEDDING_DIMENSIONS
        data = []
        for index, content in enumerate(contents):
            digest = hashlib.sha256(content.encode("utf-8")).digest()
            vector = [digest[i % len(digest)] / 255.0 for i in range(size)]
            data.append({"index": index, "embedding": vector, "object": "embedding"})
        prompt_tokens = sum(len(content.split()) for content in contents)
        return SimpleNamespace(data=data, usage=_usage(prompt_tokens, 0))

    async def generate_image(
        self,
        model: str,
        prompt: str,
        size: str | None = None,
        quality: str | None = None,
        style: str | None = None,
    ) -> SimpleNamespace:
        """返回以 prompt 文本为内容的伪图片"""
        payload = base64.b64encode(f"Echo: {prompt}".encode()).decode("ascii")
        return SimpleNamespace(data=[SimpleNamespace(b64_json=payload)])

    @staticmethod
    def _extract_last_user_content(messages: list[dict[str, Any]]) -> str:
        """提取最后一条 user 消息的文本

        多模态消息只取 text 部分；无 user 消息时返回 "(empty)"。
        """
        for msg in reversed(messages):
            if msg.get("role") != "user":
                continue
            content = msg.get("content", "")
            if isinstance(content, list):
                return " ".join(
                    part.get("text", "") for part in content if part.get("type") == "text"
                )
            return content

        if messages:
            content = messages[-1].get("content", "(empty)")
            return content if isinstance(content, str) else "(empty)"
        return "(empty)"
