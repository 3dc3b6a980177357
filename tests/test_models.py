"""数据模型单元测试

验证 TokenUsage 累加/合并、ModelMessage 载荷约束、ToolCall 序列化、目录字段别名。
"""

import json

import pytest
from llmgate.exceptions import ValidationError
from llmgate.models import (
    CompletionOptions,
    MessageArtifact,
    ModelInfo,
    ModelMessage,
    TokenUsage,
    ToolCall,
)


class TestTokenUsage:
    """TokenUsage 累加语义测试"""

    def test_append_in_place(self):
        total = TokenUsage(input_tokens=10, output_tokens=5, requests=1)
        result = total.append(TokenUsage(input_tokens=3, reasoning_tokens=2, requests=1))

        assert result is total
        assert total.input_tokens == 13
        assert total.output_tokens == 5
        assert total.reasoning_tokens == 2
        assert total.requests == 2

    def test_merge_does_not_mutate(self):
        a = TokenUsage(input_tokens=1, images=1)
        b = TokenUsage(input_tokens=2, web_searches=4)
        merged = TokenUsage.merge(a, b)

        assert merged.input_tokens == 3
        assert merged.images == 1
        assert merged.web_searches == 4
        assert a.input_tokens == 1
        assert b.input_tokens == 2

    def test_merge_is_associative(self):
        a = TokenUsage(input_tokens=1, output_tokens=2, cache_read_tokens=3)
        b = TokenUsage(input_tokens=10, cache_write_tokens=20)
        c = TokenUsage(output_tokens=100, requests=1)

        left = TokenUsage.merge(TokenUsage.merge(a, b), c)
        right = TokenUsage.merge(a, TokenUsage.merge(b, c))
        assert left == right

    def test_negative_counts_rejected(self):
        with pytest.raises(Exception):
            TokenUsage(input_tokens=-1)


class TestModelMessage:
    """ModelMessage 载荷约束测试"""

    def test_user_message(self):
        msg = ModelMessage.user("hi")
        assert msg.role == "user"
        assert msg.content == "hi"

    def test_empty_message_rejected(self):
        """content、tool_call、artifacts 全为空时抛 ValidationError"""
        with pytest.raises(ValidationError) as exc_info:
            ModelMessage(role="user")
        assert exc_info.value.field == "message"

    def test_tool_message_without_content(self):
        msg = ModelMessage.tool(ToolCall(id="c1", name="search", output={"hits": 2}))
        assert msg.content == ""
        assert msg.tool_call.name == "search"

    def test_artifact_only_message(self):
        artifact = MessageArtifact(name="a.png", content_type="image/png", content=b"\x89PNG")
        msg = ModelMessage(role="user", artifacts=[artifact])
        assert len(msg.artifacts) == 1

    def test_unknown_role_kept_for_later_validation(self):
        """非法角色在构造时保留，由校验/转换阶段按下标报告"""
        msg = ModelMessage(role="system", content="x")
        assert msg.role == "system"


class TestToolCall:
    """ToolCall 序列化测试"""

    def test_wire_json_fields(self):
        call = ToolCall(id="call_1", name="weather", input={"city": "上海"}, error_message=None)
        payload = json.loads(call.to_wire_json())
        assert payload == {
            "id": "call_1",
            "name": "weather",
            "input": {"city": "上海"},
            "output": None,
            "errorMessage": None,
        }

    def test_camel_case_alias(self):
        call = ToolCall.model_validate({"name": "t", "errorMessage": "boom"})
        assert call.error_message == "boom"


class TestModelInfo:
    """目录条目字段别名测试"""

    def test_camel_case_catalog_entry(self):
        info = ModelInfo.model_validate(
            {
                "id": "x",
                "contextWindow": 1000,
                "maxOutputTokens": 100,
                "pricing": {"prompt": "1", "inputCacheRead": "0.1", "internalReasoning": 2},
            }
        )
        assert info.context_window == 1000
        assert info.max_output_tokens == 100
        assert info.pricing.input_cache_read == "0.1"
        assert info.pricing.internal_reasoning == 2

    def test_remote_style_entry(self):
        info = ModelInfo.model_validate(
            {"id": "y", "context_length": 4096, "pricing": {"input_cache_write": "0.5"}}
        )
        assert info.context_window == 4096
        assert info.pricing.input_cache_write == "0.5"

    def test_frozen(self):
        info = ModelInfo(id="z")
        with pytest.raises(Exception):
            info.id = "changed"


class TestCompletionOptions:
    """CompletionOptions 默认值测试"""

    def test_all_numeric_options_unset(self):
        options = CompletionOptions()
        assert options.temperature is None
        assert options.top_p is None
        assert options.max_tokens is None
        assert options.seed is None
        assert options.with_usage is False
        assert options.with_cost is False

    def test_explicit_zero_preserved(self):
        options = CompletionOptions(temperature=0.0)
        assert options.temperature == 0.0
        assert options.temperature is not None
