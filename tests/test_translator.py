"""RequestTranslator 单元测试

验证 system 消息、角色映射、工具调用内联、附件、选项映射、response_format。
"""

import base64
import json

import pytest
from llmgate.exceptions import ValidationError
from llmgate.models import CompletionOptions, MessageArtifact, ModelMessage, ToolCall
from llmgate.translator import to_wire_message, to_wire_request


class TestMessages:
    """消息映射测试"""

    def test_instructions_become_leading_system_message(self):
        wire = to_wire_request("m1", "sys", [ModelMessage.user("hi")])
        assert wire["model"] == "m1"
        assert wire["messages"] == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "hi"},
        ]

    def test_empty_instructions_omitted(self):
        wire = to_wire_request("m1", "", [ModelMessage.user("hi")])
        assert wire["messages"] == [{"role": "user", "content": "hi"}]

    def test_order_preserved_and_nothing_dropped(self):
        messages = [
            ModelMessage.user("q1"),
            ModelMessage.assistant("a1"),
            ModelMessage.assistant("", tool_call=ToolCall(id="t1", name="lookup", input={"k": 1})),
            ModelMessage.tool(ToolCall(id="t1", name="lookup", output="v")),
            ModelMessage.user("q2"),
        ]
        wire = to_wire_request("m1", "sys", messages)

        assert len(wire["messages"]) == len(messages) + 1
        contents = [m["content"] for m in wire["messages"][1:]]
        assert contents[0] == "q1"
        assert contents[1] == "a1"
        assert contents[2].startswith("call tool: ```")
        assert contents[3].startswith("call tool results: ```")
        assert contents[4] == "q2"

    def test_assistant_tool_call_inlined(self):
        call = ToolCall(id="t1", name="lookup", input={"k": 1})
        wire_msg = to_wire_message(ModelMessage.assistant("", tool_call=call), 0)

        assert wire_msg["role"] == "assistant"
        body = wire_msg["content"]
        assert body.startswith("call tool: ```") and body.endswith("```")
        payload = json.loads(body[len("call tool: ```") : -3])
        assert payload["name"] == "lookup"
        assert payload["input"] == {"k": 1}
        assert "errorMessage" in payload

    def test_tool_result_sent_as_user_turn(self):
        call = ToolCall(id="t1", name="lookup", output={"v": 2}, error_message="partial")
        wire_msg = to_wire_message(ModelMessage.tool(call), 3)

        assert wire_msg["role"] == "user"
        payload = json.loads(wire_msg["content"][len("call tool results: ```") : -3])
        assert payload["output"] == {"v": 2}
        assert payload["errorMessage"] == "partial"

    @pytest.mark.parametrize("role", ["system", "developer", "", "USER"])
    def test_unknown_role_rejected_with_index(self, role):
        messages = [ModelMessage.user("ok"), ModelMessage(role=role, content="x")]
        with pytest.raises(ValidationError) as exc_info:
            to_wire_request("m1", "", messages)
        assert exc_info.value.field == "messages[1].role"
        assert exc_info.value.value == role


class TestArtifacts:
    """附件映射测试"""

    def test_image_artifact_as_data_url(self):
        artifact = MessageArtifact(name="cat.png", content_type="image/png", content=b"\x89PNG")
        wire_msg = to_wire_message(ModelMessage.user("what is this?", artifacts=[artifact]), 0)

        parts = wire_msg["content"]
        assert parts[0] == {"type": "text", "text": "what is this?"}
        expected_url = "data:image/png;base64," + base64.b64encode(b"\x89PNG").decode()
        assert parts[1] == {"type": "image_url", "image_url": {"url": expected_url}}

    def test_text_artifact_inlined(self):
        artifact = MessageArtifact(name="notes.txt", content_type="text/plain", content=b"line one")
        wire_msg = to_wire_message(ModelMessage(role="user", artifacts=[artifact]), 0)
        assert wire_msg["content"] == [{"type": "text", "text": "notes.txt:\nline one"}]

    def test_unsupported_artifact_type(self):
        artifact = MessageArtifact(name="a.zip", content_type="application/zip", content=b"PK")
        with pytest.raises(ValidationError) as exc_info:
            to_wire_message(ModelMessage.user("x", artifacts=[artifact]), 2)
        assert exc_info.value.field == "messages[2].artifacts[0].contentType"

    def test_artifacts_on_assistant_rejected(self):
        artifact = MessageArtifact(name="a.png", content_type="image/png", content=b"x")
        msg = ModelMessage(role="assistant", content="here", artifacts=[artifact])
        with pytest.raises(ValidationError):
            to_wire_message(msg, 0)


class TestOptions:
    """选项映射测试"""

    def test_unset_options_not_sent(self):
        wire = to_wire_request("m1", "", [ModelMessage.user("hi")], CompletionOptions())
        for key in (
            "temperature",
            "top_p",
            "max_tokens",
            "presence_penalty",
            "frequency_penalty",
            "seed",
            "stop",
            "reasoning_effort",
            "response_format",
        ):
            assert key not in wire

    def test_explicit_zero_temperature_sent(self):
        wire = to_wire_request(
            "m1", "", [ModelMessage.user("hi")], CompletionOptions(temperature=0.0, seed=0)
        )
        assert wire["temperature"] == 0.0
        assert wire["seed"] == 0

    def test_sampling_options_mapped(self):
        options = CompletionOptions(
            temperature=0.7,
            top_p=0.9,
            max_tokens=256,
            presence_penalty=0.5,
            frequency_penalty=-0.5,
            stop=["\n\n"],
            reasoning_effort="high",
        )
        wire = to_wire_request("m1", "", [ModelMessage.user("hi")], options)
        assert wire["temperature"] == 0.7
        assert wire["top_p"] == 0.9
        assert wire["max_tokens"] == 256
        assert wire["presence_penalty"] == 0.5
        assert wire["frequency_penalty"] == -0.5
        assert wire["stop"] == ["\n\n"]
        assert wire["reasoning_effort"] == "high"

    def test_invalid_reasoning_effort_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            to_wire_request(
                "m1", "", [ModelMessage.user("hi")], CompletionOptions(reasoning_effort="max")
            )
        assert exc_info.value.field == "reasoningEffort"

    def test_json_mode(self):
        wire = to_wire_request(
            "m1", "", [ModelMessage.user("hi")], CompletionOptions(response_format="json")
        )
        assert wire["response_format"] == {"type": "json_object"}

    def test_json_schema_mode(self):
        schema = {"type": "object", "properties": {"a": {"type": "string"}}}
        wire = to_wire_request(
            "m1",
            "",
            [ModelMessage.user("hi")],
            CompletionOptions(response_format="json_schema", json_schema=schema),
        )
        assert wire["response_format"] == {
            "type": "json_schema",
            "json_schema": {"name": "response_schema", "schema": schema},
        }

    def test_json_schema_mode_requires_schema(self):
        with pytest.raises(ValidationError) as exc_info:
            to_wire_request(
                "m1",
                "",
                [ModelMessage.user("hi")],
                CompletionOptions(response_format="json_schema"),
            )
        assert exc_info.value.field == "jsonSchema"
