"""PromptTemplateCache / SchemaCache

由 CompletionService 持有的实例级缓存，各自用锁保护。
不同 service 实例之间互不共享。
"""

import copy
import threading
from string import Template
from typing import Any

import structlog
from pydantic import BaseModel

from .exceptions import ValidationError

log = structlog.get_logger()


class PromptTemplateCache:
    """prompt 模板缓存：模板字符串 -> 已解析的 string.Template"""

    def __init__(self) -> None:
        self._templates: dict[str, Template] = {}
        self._lock = threading.Lock()

    def get(self, template: str) -> Template:
        with self._lock:
            compiled = self._templates.get(template)
            if compiled is None:
                compiled = Template(template)
                if not compiled.is_valid():
                    raise ValidationError("template", "contains invalid placeholders", template)
                self._templates[template] = compiled
            return compiled

    def render(self, template: str, params: dict[str, Any] | None = None) -> str:
        """渲染模板

        Raises:
            ValidationError: 模板占位符非法，或缺少参数
        """
        compiled = self.get(template)
        try:
            return compiled.substitute(params or {})
        except KeyError as e:
            raise ValidationError("params", "missing template parameter", e.args[0]) from e

    def __len__(self) -> int:
        return len(self._templates)

    def clear(self) -> None:
        with self._lock:
            self._templates.clear()


def _forbid_additional_properties(schema: Any) -> None:
    """递归为所有 object 节点设置 additionalProperties: false"""
    if isinstance(schema, dict):
        if schema.get("type") == "object":
            schema.setdefault("additionalProperties", False)
        for value in schema.values():
            _forbid_additional_properties(value)
    elif isinstance(schema, list):
        for item in schema:
            _forbid_additional_properties(item)


class SchemaCache:
    """JSON schema 缓存：pydantic 模型类 -> 严格 JSON schema"""

    def __init__(self) -> None:
        self._schemas: dict[type[BaseModel], dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, model_cls: type[BaseModel]) -> dict[str, Any]:
        """返回模型的 JSON schema（副本，调用方可自由修改）"""
        with self._lock:
            schema = self._schemas.get(model_cls)
            if schema is None:
                schema = model_cls.model_json_schema()
                _forbid_additional_properties(schema)
                self._schemas[model_cls] = schema
                log.debug("schema_generated", model=model_cls.__name__)
            return copy.deepcopy(schema)

    def resolve(self, schema: dict[str, Any] | type[BaseModel] | None) -> dict[str, Any] | None:
        """dict 原样返回，pydantic 模型类转换为 schema"""
        if schema is None or isinstance(schema, dict):
            return schema
        if isinstance(schema, type) and issubclass(schema, BaseModel):
            return self.get(schema)
        raise ValidationError(
            "jsonSchema",
            "must be a JSON object or a pydantic model class",
            type(schema).__name__,
        )

    def __len__(self) -> int:
        return len(self._schemas)

    def clear(self) -> None:
        with self._lock:
            self._schemas.clear()
