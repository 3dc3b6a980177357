"""ModelRegistry -- 模型目录注册表

管理 model id/name -> ModelInfo 映射，供成本计算与 CLI 使用。
目录来源：包内静态 JSON、自定义 JSON 文件、或构造时一次性拉取的远程列表。
"""

import json
import threading
from collections.abc import Callable, Iterable
from importlib import resources
from pathlib import Path
from typing import Any

import httpx
import structlog
from pydantic import TypeAdapter
from pydantic import ValidationError as SchemaValidationError

from .cost import TOKENS_PER_MILLION, CostCalculator
from .exceptions import CatalogLoadError
from .models import ModelInfo

log = structlog.get_logger()

_MODEL_LIST = TypeAdapter(list[ModelInfo])

# 远程目录拉取超时（秒）
REMOTE_CATALOG_TIMEOUT_S = 30

# 远程目录中按「每 token」计价、需换算为「每百万 token」的字段
_PER_TOKEN_PRICE_FIELDS = (
    "prompt",
    "completion",
    "internal_reasoning",
    "input_cache_read",
    "input_cache_write",
)


def _parse_catalog(data: Any, source: str) -> list[ModelInfo]:
    """解析目录 JSON：模型列表，或 {"data": [...]} 包装形式"""
    if isinstance(data, dict) and "data" in data:
        data = data["data"]
    try:
        return _MODEL_LIST.validate_python(data)
    except SchemaValidationError as e:
        raise CatalogLoadError(source, e) from e


def _per_token_to_per_million(entry: dict[str, Any]) -> dict[str, Any]:
    """远程目录价格为每 token 单价，换算为每百万 token；无法解析的原样保留"""
    pricing = dict(entry.get("pricing") or {})
    for field_name in _PER_TOKEN_PRICE_FIELDS:
        price = CostCalculator.parse_price(pricing.get(field_name))
        if price is not None:
            pricing[field_name] = price * TOKENS_PER_MILLION
    return {**entry, "pricing": pricing}


class ModelRegistry:
    """模型注册表

    按 id 与 name 双索引，O(1) 查询。目录加载后只读；
    注册与惰性加载路径由锁保护。_loaded 只在索引全部写入后置位，
    未置位时查询方进入锁等待加载完成。
    """

    def __init__(
        self,
        models: Iterable[ModelInfo] | None = None,
        loader: Callable[[], Iterable[ModelInfo]] | None = None,
    ) -> None:
        """初始化注册表

        Args:
            models: 初始模型列表
            loader: 惰性加载函数，首次查询时调用；失败时保留，下次查询重试
        """
        self._by_id: dict[str, ModelInfo] = {}
        self._by_name: dict[str, ModelInfo] = {}
        self._lock = threading.Lock()
        self._loader = loader
        self._loaded = loader is None
        for info in models or ():
            self._index(info)

    def _index(self, info: ModelInfo) -> None:
        self._by_id[info.id] = info
        if info.name:
            self._by_name.setdefault(info.name, info)

    def _ensure_loaded(self) -> None:
        """执行惰性加载（至多成功一次）

        Raises:
            CatalogLoadError: loader 失败；loader 保留，下次访问重新加载
        """
        if self._loaded:
            return
        with self._lock:
            if self._loaded:
                return
            try:
                models = list(self._loader())
            except CatalogLoadError:
                raise
            except Exception as e:
                log.error("catalog_lazy_load_failed", error=str(e), error_type=type(e).__name__)
                raise CatalogLoadError("lazy loader", e) from e
            for info in models:
                self._index(info)
            self._loader = None
            self._loaded = True

    def register(self, info: ModelInfo) -> None:
        """注册单个模型（覆盖同 id 条目）"""
        with self._lock:
            self._index(info)

    def get_model_info(self, model_id: str) -> ModelInfo | None:
        """按 id 查询，未命中时按 name 查询

        Returns:
            ModelInfo；未知模型返回 None（调用方视为成本不可计算）
        """
        if not model_id:
            return None
        self._ensure_loaded()
        info = self._by_id.get(model_id) or self._by_name.get(model_id)
        if info is None:
            log.debug("model_not_found", model_id=model_id)
        return info

    def list_models(self) -> list[ModelInfo]:
        """列出所有模型（按 id 排序）"""
        self._ensure_loaded()
        return sorted(self._by_id.values(), key=lambda m: m.id)

    def __len__(self) -> int:
        self._ensure_loaded()
        return len(self._by_id)

    def __contains__(self, model_id: object) -> bool:
        return isinstance(model_id, str) and self.get_model_info(model_id) is not None

    # ============================================================
    # 构造
    # ============================================================

    @classmethod
    def from_catalog_data(cls, data: Any, source: str = "<memory>") -> "ModelRegistry":
        models = _parse_catalog(data, source)
        log.info("catalog_loaded", source=source, model_count=len(models))
        return cls(models)

    @classmethod
    def from_catalog_file(cls, path: str | Path) -> "ModelRegistry":
        """从 JSON 文件加载目录

        Raises:
            CatalogLoadError: 文件不可读或格式非法
        """
        source = str(path)
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise CatalogLoadError(source, e) from e
        return cls.from_catalog_data(data, source)

    @classmethod
    def from_package_catalog(cls, name: str) -> "ModelRegistry":
        """加载包内置目录（llmgate/catalogs/<name>.json）"""
        source = f"catalogs/{name}.json"
        try:
            text = resources.files("llmgate").joinpath("catalogs", f"{name}.json").read_text(
                encoding="utf-8"
            )
            data = json.loads(text)
        except (OSError, ValueError) as e:
            raise CatalogLoadError(source, e) from e
        return cls.from_catalog_data(data, source)

    @classmethod
    async def from_remote(
        cls,
        url: str,
        api_key: str = "",
        timeout_s: float = REMOTE_CATALOG_TIMEOUT_S,
        http_client: httpx.AsyncClient | None = None,
    ) -> "ModelRegistry":
        """从远程模型列表接口拉取目录（构造时调用一次）

        远程列表按每 token 计价，加载时换算为每百万 token。

        Args:
            url: 模型列表接口完整 URL
            api_key: Bearer token
            timeout_s: 请求超时
            http_client: 可选的外部 httpx 客户端（测试注入）

        Raises:
            CatalogLoadError: 网络错误、非 200 响应或响应格式非法
        """
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        try:
            if http_client is not None:
                resp = await http_client.get(url, headers=headers, timeout=timeout_s)
            else:
                async with httpx.AsyncClient() as client:
                    resp = await client.get(url, headers=headers, timeout=timeout_s)
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            log.error("catalog_fetch_failed", url=url, error=str(e))
            raise CatalogLoadError(url, e) from e

        entries = payload.get("data") if isinstance(payload, dict) else payload
        if not isinstance(entries, list):
            raise CatalogLoadError(url, ValueError("response has no model list"))
        entries = [_per_token_to_per_million(e) for e in entries if isinstance(e, dict)]
        return cls.from_catalog_data(entries, url)
