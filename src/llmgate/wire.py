"""wire 响应字段读取

provider SDK 返回对象，echo 后端与测试桩可能返回 dict，统一按字段名读取。
"""

from typing import Any


def read_field(obj: Any, name: str) -> Any:
    """读取 obj.name 或 obj[name]，缺失时返回 None"""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def first_choice(obj: Any) -> Any:
    """choices[0]，choices 缺失或为空时返回 None"""
    choices = read_field(obj, "choices")
    if not isinstance(choices, list | tuple) or not choices:
        return None
    return choices[0]


def response_output_text(obj: Any) -> str:
    """Responses API 结果中的输出文本

    优先读取 output_text 汇总字段；否则拼接 output 中 message 项的 output_text 部分。
    """
    summary = read_field(obj, "output_text")
    if isinstance(summary, str) and summary:
        return summary
    output = read_field(obj, "output")
    if not isinstance(output, list | tuple):
        return ""
    texts: list[str] = []
    for item in output:
        if read_field(item, "type") != "message":
            continue
        for part in read_field(item, "content") or ():
            text = read_field(part, "text")
            if read_field(part, "type") == "output_text" and isinstance(text, str):
                texts.append(text)
    return "".join(texts)
