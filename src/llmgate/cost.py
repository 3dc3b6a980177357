"""CostCalculator -- 成本计算

基于模型价格表与 TokenUsage 计算单次调用的 USD 成本。
价格缺失或无法解析时返回 None（成本不可用），所有方法不抛异常。
"""

import math

import structlog

from .models import ModelInfo, TokenUsage
from .wire import read_field

log = structlog.get_logger()

# token 类价格均以「每百万 token」计
TOKENS_PER_MILLION = 1_000_000.0


def _as_count(value) -> int:
    """provider 返回的计数可能为 None 或其他占位对象，统一转为非负 int"""
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return max(value, 0)


def _first_field(obj, *names: str):
    """按顺序读取第一个非 None 的字段"""
    for name in names:
        value = read_field(obj, name)
        if value is not None:
            return value
    return None


class CostCalculator:
    """成本计算器

    提供价格解析、文本补全成本、图片成本计算，以及 provider usage 解析。
    """

    @staticmethod
    def parse_price(value: str | float | None) -> float | None:
        """解析目录中的价格字段

        Returns:
            非负价格；未设置、无法解析、负数或 NaN 时返回 None
        """
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
            try:
                price = float(value)
            except ValueError:
                return None
        elif isinstance(value, int | float):
            price = float(value)
        else:
            return None
        if math.isnan(price) or math.isinf(price) or price < 0:
            return None
        return price

    @staticmethod
    def calculate_cost(model_info: ModelInfo | None, usage: TokenUsage | None) -> float | None:
        """计算文本补全成本

        计费规则:
            1. 配置了 cache-read 价格（>0）时，缓存命中的输入 token 按 cache-read 单价，
               其余输入 token 按 prompt 单价；否则全部输入按 prompt 单价
            2. 配置了 internal-reasoning 价格（>0）时，推理 token 单独计费；
               否则不额外计费（不按 completion 单价重复计费）
            3. 配置了 cache-write 价格（>0）时，写入缓存的输入 token 按 cache-write 单价，
               同样从 prompt 计费部分扣除
            4. 全部输出 token 按 completion 单价

        Args:
            model_info: 模型目录条目，None 表示未知模型
            usage: 本次调用的 token 统计

        Returns:
            USD 成本；模型未知或 prompt/completion 价格无法解析时返回 None
        """
        if model_info is None or usage is None:
            return None

        pricing = model_info.pricing
        prompt_price = CostCalculator.parse_price(pricing.prompt)
        completion_price = CostCalculator.parse_price(pricing.completion)
        if prompt_price is None or completion_price is None:
            log.debug(
                "pricing_unavailable",
                model_id=model_info.id,
                prompt=pricing.prompt,
                completion=pricing.completion,
            )
            return None

        cache_read_price = CostCalculator.parse_price(pricing.input_cache_read) or 0.0
        cache_write_price = CostCalculator.parse_price(pricing.input_cache_write) or 0.0
        reasoning_price = CostCalculator.parse_price(pricing.internal_reasoning) or 0.0

        # cache 计数包含在 input_tokens 内，按各自单价计费的部分从 prompt 计费中扣除
        total = 0.0
        fresh_tokens = usage.input_tokens
        if cache_read_price > 0.0:
            fresh_tokens -= usage.cache_read_tokens
            total += usage.cache_read_tokens / TOKENS_PER_MILLION * cache_read_price
        if cache_write_price > 0.0:
            fresh_tokens -= usage.cache_write_tokens
            total += usage.cache_write_tokens / TOKENS_PER_MILLION * cache_write_price
        total += max(fresh_tokens, 0) / TOKENS_PER_MILLION * prompt_price

        if reasoning_price > 0.0:
            total += usage.reasoning_tokens / TOKENS_PER_MILLION * reasoning_price

        total += usage.output_tokens / TOKENS_PER_MILLION * completion_price
        return total

    @staticmethod
    def calculate_image_cost(model_info: ModelInfo | None, image_count: int) -> float | None:
        """计算图片生成成本（按张计费，与 token 无关）"""
        if model_info is None or image_count <= 0:
            return None
        image_price = CostCalculator.parse_price(model_info.pricing.image)
        if image_price is None:
            return None
        return image_price * image_count

    @staticmethod
    def parse_usage(usage) -> TokenUsage:
        """将 provider 返回的 usage 块解析为 TokenUsage

        兼容 OpenAI 风格字段:
            prompt_tokens / completion_tokens（chat completions）
            input_tokens / output_tokens（Responses API）
            prompt_tokens_details.cached_tokens / input_tokens_details.cached_tokens
            completion_tokens_details.reasoning_tokens / output_tokens_details.reasoning_tokens
            cache_creation_input_tokens（Anthropic 兼容层）

        Args:
            usage: SDK usage 对象或 dict，None 时返回全零

        Returns:
            TokenUsage 实例（requests 固定为 1）
        """
        if usage is None:
            return TokenUsage(requests=1)
        try:
            input_details = _first_field(usage, "prompt_tokens_details", "input_tokens_details")
            output_details = _first_field(
                usage, "completion_tokens_details", "output_tokens_details"
            )
            return TokenUsage(
                input_tokens=_as_count(_first_field(usage, "prompt_tokens", "input_tokens")),
                output_tokens=_as_count(_first_field(usage, "completion_tokens", "output_tokens")),
                reasoning_tokens=_as_count(read_field(output_details, "reasoning_tokens")),
                cache_read_tokens=_as_count(read_field(input_details, "cached_tokens")),
                cache_write_tokens=_as_count(read_field(usage, "cache_creation_input_tokens")),
                requests=1,
            )
        except Exception as e:
            log.debug("parse_usage_failed", error=str(e))
            return TokenUsage(requests=1)
